"""
Unit tests for schema accumulation and change detection.
"""

import json
import random

import pytest

from schemaflow.inference.accumulator import SchemaAccumulator
from schemaflow.inference.classifier import DetectorConfig
from schemaflow.inference.errors import SchemaConflictError
from schemaflow.inference.field_types import FieldKind, FieldType
from schemaflow.inference.merger import coerce_to_string
from schemaflow.inference.schema import unmarshal_schema


class TestEvolve:
    """Tests for merging batches into the running schema."""

    def test_first_batch_with_primary_key(self):
        """First batch sets field types and the primary key."""
        accumulator = SchemaAccumulator("users")
        docs = [{"id": 1, "name": "a"}, {"id": 2, "name": "b", "age": 30}]

        result = accumulator.evolve(docs, primary_key=["id"], inference_depth=2)

        assert result.changed
        schema = accumulator.schema
        assert schema.field_names == ["id", "name", "age"]
        assert schema.primary_key == ["id"]
        assert schema.get_field("id").is_primary_key
        assert schema.get_field("id").type == FieldType.scalar(FieldKind.INT64)
        assert schema.get_field("name").type == FieldType.scalar(FieldKind.STRING)
        assert schema.get_field("age").type == FieldType.scalar(FieldKind.INT64, nullable=True)

    def test_widening_across_batches(self):
        """Int64 followed by Float64 widens the field."""
        accumulator = SchemaAccumulator("readings")

        first = accumulator.evolve([{"id": 1, "val": 5}])
        second = accumulator.evolve([{"id": 2, "val": 5.5}])

        assert first.changed
        assert second.changed
        assert accumulator.schema.get_field("val").type.kind == FieldKind.FLOAT64

    def test_identical_batch_is_unchanged(self):
        """Repeating a batch reports no change."""
        accumulator = SchemaAccumulator("users")
        docs = [{"id": 1, "name": "a"}]

        first = accumulator.evolve(docs, primary_key=["id"])
        second = accumulator.evolve(docs, primary_key=["id"])

        assert first.changed
        assert not second.changed
        assert first.schema == second.schema

    def test_narrower_batch_is_unchanged(self):
        """A narrower type does not shrink the schema."""
        accumulator = SchemaAccumulator("readings")
        accumulator.evolve([{"val": 5.5}])

        result = accumulator.evolve([{"val": 5}])

        assert not result.changed
        assert accumulator.schema.get_field("val").type.kind == FieldKind.FLOAT64

    def test_fields_missing_from_later_batch_become_nullable(self):
        """Fields absent from a later batch become nullable."""
        accumulator = SchemaAccumulator("users")
        accumulator.evolve([{"id": 1, "email": "a@b.c"}])

        result = accumulator.evolve([{"id": 2}])

        assert result.changed
        assert accumulator.schema.get_field("email").type.nullable
        assert not accumulator.schema.get_field("id").type.nullable

    def test_new_fields_appended_in_order(self):
        """New fields go after the existing ones."""
        accumulator = SchemaAccumulator("users")
        accumulator.evolve([{"b": 1, "a": 1}])
        accumulator.evolve([{"c": 1, "a": 1}])

        assert accumulator.schema.field_names == ["b", "a", "c"]

    def test_depth_bounds_inspected_documents(self):
        """inference_depth bounds the documents inspected."""
        accumulator = SchemaAccumulator("users")
        docs = [{"id": 1}, {"id": 2}, {"id": 3, "extra": True}]

        accumulator.evolve(docs, inference_depth=2)

        assert accumulator.schema.field_names == ["id"]

    def test_empty_batch_on_fresh_accumulator(self):
        """An empty first batch yields an empty schema once."""
        accumulator = SchemaAccumulator("empty")

        result = accumulator.evolve([])

        assert result.changed
        assert json.loads(result.schema) == {"title": "empty", "properties": {}}

    def test_unknown_primary_key_ignored(self):
        """Primary key names with no field are dropped."""
        accumulator = SchemaAccumulator("users")

        accumulator.evolve([{"id": 1}], primary_key=["missing", "id"])

        assert accumulator.schema.primary_key == ["id"]

    def test_primary_key_is_sticky(self):
        """Later batches keep the primary key."""
        accumulator = SchemaAccumulator("users")
        accumulator.evolve([{"id": 1}], primary_key=["id"])

        result = accumulator.evolve([{"id": 2}])

        assert not result.changed
        assert accumulator.schema.primary_key == ["id"]

    def test_auto_generate(self):
        """Autogenerated fields are flagged on the wire."""
        accumulator = SchemaAccumulator("users")

        result = accumulator.evolve([{"id": 1}], auto_generate=["id"])

        assert json.loads(result.schema)["properties"]["id"]["autoGenerate"] is True

    def test_detector_config_applied(self):
        """The accumulator classifies with its detector config."""
        accumulator = SchemaAccumulator("users", DetectorConfig(detect_uuids=False))

        accumulator.evolve([{"ref": "123e4567-e89b-12d3-a456-426614174000"}])

        assert accumulator.schema.get_field("ref").type.kind == FieldKind.STRING


class TestEvolveFailure:
    """State is untouched when a batch cannot be merged."""

    def test_conflict_leaves_state_unchanged(self):
        """A conflict raises with its path and keeps the schema."""
        accumulator = SchemaAccumulator("users")
        accumulator.evolve([{"id": 1, "name": "a"}])
        before = accumulator.snapshot

        with pytest.raises(SchemaConflictError) as exc_info:
            accumulator.evolve([{"id": 2, "name": {"first": "b"}}])

        assert exc_info.value.path == "name"
        assert accumulator.snapshot == before
        assert accumulator.schema.get_field("name").type.kind == FieldKind.STRING

    def test_conflict_policy(self):
        """A conflict policy resolves the clash instead of raising."""
        accumulator = SchemaAccumulator("users")
        accumulator.evolve([{"flag": True}])

        result = accumulator.evolve([{"flag": 1}], on_conflict=coerce_to_string)

        assert result.changed
        assert accumulator.schema.get_field("flag").type.kind == FieldKind.STRING


class TestSnapshot:
    """Tests for snapshot handling."""

    def test_snapshot_none_before_first_evolve(self):
        """No snapshot exists before the first evolve."""
        assert SchemaAccumulator("users").snapshot is None

    def test_invalidate_forces_change(self):
        """Invalidating the snapshot makes the next evolve report a change."""
        accumulator = SchemaAccumulator("users")
        docs = [{"id": 1}]
        accumulator.evolve(docs)

        accumulator.invalidate_snapshot()

        assert accumulator.evolve(docs).changed

    def test_seeded_from_wire(self):
        """A schema loaded from the wire matches its source."""
        seed = SchemaAccumulator("users")
        seed.evolve([{"id": 1, "name": "a"}], primary_key=["id"])

        accumulator = SchemaAccumulator.from_wire("users", seed.snapshot)
        result = accumulator.evolve([{"id": 2, "name": "b"}])

        assert not result.changed
        assert accumulator.snapshot == seed.snapshot

    def test_seeded_schema_grows(self):
        """New fields extend a schema loaded from the wire."""
        accumulator = SchemaAccumulator.from_wire(
            "users",
            b'{"title":"users","properties":{"id":{"type":"integer","format":"int64"}}}',
        )

        result = accumulator.evolve([{"id": 1, "name": "a"}])

        assert result.changed
        assert accumulator.schema.get_field("name").type.nullable

    def test_independent_instances(self):
        """Accumulators share no state."""
        first = SchemaAccumulator("a")
        second = SchemaAccumulator("b")

        first.evolve([{"x": 1}])

        assert second.schema.fields == []


class TestEvolveProperties:
    """Determinism and order independence."""

    DOCS = [
        {"id": 1, "score": 5, "tags": ["a"]},
        {"id": 2, "score": 2.5, "meta": {"source": "api"}},
        {"id": 3, "score": None, "tags": []},
        {"id": 4, "meta": {"source": "csv", "line": 7}},
    ]

    def test_deterministic_bytes(self):
        """Same input gives byte-identical wire output."""
        first = SchemaAccumulator("items").evolve(self.DOCS, primary_key=["id"])
        second = SchemaAccumulator("items").evolve(self.DOCS, primary_key=["id"])

        assert first.schema == second.schema

    def test_order_independent_types(self):
        """Document order does not change the resulting types."""
        expected = SchemaAccumulator("items")
        expected.evolve(self.DOCS)
        expected_type = unmarshal_schema(expected.snapshot).as_object_type()

        rng = random.Random(7)
        for _ in range(10):
            shuffled = list(self.DOCS)
            rng.shuffle(shuffled)
            accumulator = SchemaAccumulator("items")
            accumulator.evolve(shuffled)

            assert unmarshal_schema(accumulator.snapshot).as_object_type() == expected_type

    def test_batch_split_matches_single_batch(self):
        """Splitting a batch gives the same types as one batch."""
        whole = SchemaAccumulator("items")
        whole.evolve(self.DOCS)

        split = SchemaAccumulator("items")
        split.evolve(self.DOCS[:2])
        split.evolve(self.DOCS[2:])

        assert split.schema.as_object_type() == whole.schema.as_object_type()
