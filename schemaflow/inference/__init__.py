"""
Schema inference engine.

Classifies JSON values, builds structural types for documents, merges
them across samples and batches, and detects real schema changes.
"""

from schemaflow.inference.field_types import FieldKind, FieldType
from schemaflow.inference.classifier import (
    DetectorConfig,
    DEFAULT_DETECTORS,
    classify_kind,
    classify_value,
    is_uuid,
    is_date_time,
    is_byte_array,
)
from schemaflow.inference.builder import build_field_type, build_document_type
from schemaflow.inference.merger import (
    merge_field_types,
    merge_object_fields,
    coerce_to_string,
    raise_conflict,
)
from schemaflow.inference.schema import (
    Schema,
    SchemaField,
    marshal_schema,
    unmarshal_schema,
    schema_to_dict,
)
from schemaflow.inference.accumulator import SchemaAccumulator, EvolveResult
from schemaflow.inference.errors import (
    SchemaInferenceError,
    SchemaConflictError,
    SchemaSerializationError,
)

__all__ = [  # ruff: noqa: RUF022
    # Types
    "FieldKind",
    "FieldType",
    # Classification
    "DetectorConfig",
    "DEFAULT_DETECTORS",
    "classify_kind",
    "classify_value",
    "is_uuid",
    "is_date_time",
    "is_byte_array",
    # Building and merging
    "build_field_type",
    "build_document_type",
    "merge_field_types",
    "merge_object_fields",
    "coerce_to_string",
    "raise_conflict",
    # Schema
    "Schema",
    "SchemaField",
    "marshal_schema",
    "unmarshal_schema",
    "schema_to_dict",
    "SchemaAccumulator",
    "EvolveResult",
    # Errors
    "SchemaInferenceError",
    "SchemaConflictError",
    "SchemaSerializationError",
]
