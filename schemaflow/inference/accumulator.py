"""
Running schema accumulation and change detection.

A SchemaAccumulator owns the schema of one collection for the lifetime of
an import session. Every batch is merged into it, and the canonical bytes
of the result are compared against the last snapshot so callers only push
schema updates that actually change something.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from schemaflow.common.metrics import track_evolve_time
from schemaflow.inference.builder import build_document_type
from schemaflow.inference.classifier import DEFAULT_DETECTORS, DetectorConfig
from schemaflow.inference.field_types import FieldType
from schemaflow.inference.merger import ConflictPolicy, merge_object_fields
from schemaflow.inference.schema import Schema, SchemaField, marshal_schema, unmarshal_schema

logger = logging.getLogger(__name__)


@dataclass
class EvolveResult:
    """Outcome of one evolve call."""
    changed: bool
    schema: bytes


class SchemaAccumulator:
    """
    Accumulates the inferred schema of one collection across batches.

    Not thread-safe: one import stream drives one accumulator, batches in
    arrival order. Independent collections use independent instances.
    """

    def __init__(
        self,
        collection_name: str,
        detectors: Optional[DetectorConfig] = None,
        schema: Optional[Schema] = None,
    ):
        """
        Initialize accumulator.

        Args:
            collection_name: Target collection
            detectors: Enabled string/number detectors
            schema: Existing schema to start from (copied)
        """
        self.collection_name = collection_name
        self.detectors = detectors or DEFAULT_DETECTORS
        self.schema = schema.copy() if schema is not None else Schema(collection_name)
        self.schema.collection_name = collection_name
        self._snapshot: Optional[bytes] = None

    @classmethod
    def from_wire(
        cls,
        collection_name: str,
        data: Union[bytes, str, Dict[str, Any]],
        detectors: Optional[DetectorConfig] = None,
    ) -> "SchemaAccumulator":
        """
        Seed an accumulator from a collection's existing wire schema.

        The seeded schema becomes the snapshot, so a batch that adds nothing
        new reports no change.
        """
        accumulator = cls(collection_name, detectors, unmarshal_schema(data, collection_name))
        accumulator._snapshot = marshal_schema(accumulator.schema)
        return accumulator

    @property
    def snapshot(self) -> Optional[bytes]:
        """Bytes of the last committed schema, None before the first evolve."""
        return self._snapshot

    def invalidate_snapshot(self) -> None:
        """Forget the snapshot so the next evolve reports a change."""
        self._snapshot = None

    @track_evolve_time
    def evolve(
        self,
        documents: Iterable[Dict[str, Any]],
        primary_key: Sequence[str] = (),
        auto_generate: Sequence[str] = (),
        inference_depth: int = 0,
        on_conflict: Optional[ConflictPolicy] = None,
    ) -> EvolveResult:
        """
        Merge a batch into the running schema.

        The new schema and snapshot are committed only after the whole batch
        merged and serialized; on error the previous state is untouched.

        Args:
            documents: Decoded JSON objects of the batch
            primary_key: Top-level fields forming the primary key
            auto_generate: Top-level fields generated by storage
            inference_depth: Documents to inspect, 0 or less inspects all
            on_conflict: Policy for incompatible types, raises by default

        Returns:
            EvolveResult with the change flag and the serialized schema

        Raises:
            SchemaConflictError: On incompatible types without a policy
            SchemaSerializationError: If the schema cannot be serialized
        """
        documents = list(documents)
        candidate = self.schema.copy()

        if documents:
            batch_type = build_document_type(
                documents, self.detectors, inference_depth, on_conflict)
            candidate.fields = self._merge_fields(candidate, batch_type, on_conflict)

        self._annotate(candidate, primary_key, auto_generate)
        data = marshal_schema(candidate)

        if self._snapshot is not None and data == self._snapshot:
            logger.debug(
                f"Schema of '{self.collection_name}' unchanged after {len(documents)} documents")
            return EvolveResult(changed=False, schema=data)

        self.schema = candidate
        self._snapshot = data
        logger.debug(
            f"Schema of '{self.collection_name}' changed: {len(candidate.fields)} fields")
        return EvolveResult(changed=True, schema=data)

    @staticmethod
    def _merge_fields(
        running: Schema,
        batch_type: FieldType,
        on_conflict: Optional[ConflictPolicy],
    ) -> List[SchemaField]:
        if not running.fields:
            # First structure seen for this collection
            merged = {name: ft.copy() for name, ft in batch_type.properties.items()}
        else:
            merged = merge_object_fields(
                running.as_object_type().properties, batch_type.properties, "", on_conflict)

        fields = []
        for name, field_type in merged.items():
            existing = running.get_field(name)
            fields.append(SchemaField(
                name=name,
                type=field_type,
                is_primary_key=existing.is_primary_key if existing else False,
                is_auto_generated=existing.is_auto_generated if existing else False,
            ))
        return fields

    @staticmethod
    def _annotate(schema: Schema, primary_key: Sequence[str], auto_generate: Sequence[str]) -> None:
        # Only top-level fields can be marked
        names = set(schema.field_names)

        for name in primary_key:
            if name in names and name not in schema.primary_key:
                schema.primary_key.append(name)

        for schema_field in schema.fields:
            if schema_field.name in schema.primary_key:
                schema_field.is_primary_key = True
            if schema_field.name in auto_generate:
                schema_field.is_auto_generated = True
