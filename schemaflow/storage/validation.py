"""
Document validation against a stored collection schema.

Used by the local stores to reject documents the way a remote collection
service does: unknown fields, type mismatches and NULL values in
non-nullable fields are INVALID_ARGUMENT errors. Missing autogenerated
fields are filled in before validation.
"""

import copy
import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Union

from schemaflow.inference.classifier import INT64_MAX, INT64_MIN, is_byte_array, is_date_time, is_uuid
from schemaflow.inference.errors import SchemaSerializationError
from schemaflow.inference.field_types import FieldKind, FieldType
from schemaflow.inference.merger import child_path
from schemaflow.inference.schema import Schema, unmarshal_schema
from schemaflow.storage.adapter import Document, ErrorKind, StorageError

_NAME_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def _invalid(message: str) -> StorageError:
    return StorageError(message, ErrorKind.INVALID_ARGUMENT)


def check_collection_name(name: str) -> str:
    """Reject names that are not plain identifiers."""
    if not _NAME_PATTERN.fullmatch(name or ""):
        raise _invalid(f"Invalid collection name: {name!r}")
    return name


def parse_schema(name: str, schema: Union[bytes, str]) -> Schema:
    """Decode wire schema bytes, mapping failures to INVALID_ARGUMENT."""
    try:
        return unmarshal_schema(schema, name)
    except SchemaSerializationError as e:
        raise _invalid(f"Invalid schema for '{name}': {e}") from e


def _is_int64(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return INT64_MIN <= value <= INT64_MAX
    if isinstance(value, float):
        return value.is_integer() and INT64_MIN <= value <= INT64_MAX
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_counter_value(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


_SCALAR_CHECKS = {
    FieldKind.BOOL: lambda v: isinstance(v, bool),
    FieldKind.INT64: _is_int64,
    FieldKind.FLOAT64: _is_number,
    FieldKind.STRING: lambda v: isinstance(v, str),
    FieldKind.UUID: lambda v: isinstance(v, str) and is_uuid(v),
    FieldKind.DATE_TIME: lambda v: isinstance(v, str) and is_date_time(v),
    FieldKind.BYTE_ARRAY: lambda v: isinstance(v, str) and is_byte_array(v),
}


def validate_value(field_type: FieldType, value: Any, path: str) -> None:
    """
    Check one value against its field type.

    Raises:
        StorageError: INVALID_ARGUMENT on mismatch
    """
    if value is None:
        if field_type.nullable:
            return
        raise _invalid(f"NULL value for non-nullable field '{path}'")

    kind = field_type.kind
    if kind == FieldKind.NULL:
        raise _invalid(f"Field '{path}' only accepts NULL")

    if kind == FieldKind.ARRAY:
        if not isinstance(value, list):
            raise _invalid(f"Field '{path}' expects an array")
        if field_type.items is not None:
            for index, element in enumerate(value):
                validate_value(field_type.items, element, f"{path}[{index}]")
        return

    if kind == FieldKind.OBJECT:
        if not isinstance(value, dict):
            raise _invalid(f"Field '{path}' expects an object")
        validate_fields(field_type.properties, value, path)
        return

    if not _SCALAR_CHECKS[kind](value):
        raise _invalid(
            f"Field '{path}' expects {kind.value}, got {type(value).__name__}")


def validate_fields(properties: Dict[str, FieldType], document: Dict[str, Any], path: str = "") -> None:
    """Check every field of an object; unknown fields are rejected."""
    for name, value in document.items():
        field_type = properties.get(name)
        if field_type is None:
            raise _invalid(f"Unknown field '{child_path(path, name)}'")
        validate_value(field_type, value, child_path(path, name))


def initial_sequences(schema: Schema, documents: Iterable[Document]) -> Dict[str, int]:
    """Highest stored value of every autogenerated numeric field."""
    names = [
        f.name for f in schema.fields
        if f.is_auto_generated and f.type.kind in (FieldKind.INT64, FieldKind.FLOAT64)
    ]
    sequences = {name: 0 for name in names}
    for document in documents:
        for name in names:
            value = document.get(name)
            if _is_counter_value(value):
                sequences[name] = max(sequences[name], int(value))
    return sequences


def _generate_value(kind: FieldKind, name: str, sequences: Dict[str, int]) -> Any:
    if kind == FieldKind.UUID:
        return str(uuid.uuid4())
    if kind == FieldKind.DATE_TIME:
        return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    if kind in (FieldKind.INT64, FieldKind.FLOAT64):
        sequences[name] = sequences.get(name, 0) + 1
        return sequences[name]
    if kind == FieldKind.STRING:
        return uuid.uuid4().hex
    raise _invalid(f"Cannot autogenerate a value of type {kind.value} for field '{name}'")


def prepare_documents(
    schema: Schema,
    documents: List[Document],
    sequences: Dict[str, int],
) -> List[Document]:
    """
    Fill autogenerated fields and validate a batch.

    Args:
        schema: Collection schema
        documents: Incoming documents (not modified)
        sequences: Counters of autogenerated numeric fields, advanced in place

    Returns:
        Copies of the documents ready to store

    Raises:
        StorageError: INVALID_ARGUMENT for the first offending document
    """
    properties = schema.as_object_type().properties
    prepared = []

    for index, document in enumerate(documents):
        if not isinstance(document, dict):
            raise _invalid(f"Document {index} is not a JSON object")

        stored = copy.deepcopy(document)
        for schema_field in schema.fields:
            if not schema_field.is_auto_generated:
                continue
            value = stored.get(schema_field.name)
            if value is None:
                stored[schema_field.name] = _generate_value(
                    schema_field.type.kind, schema_field.name, sequences)
            elif schema_field.name in sequences and _is_counter_value(value):
                # Supplied values move the counter past them
                sequences[schema_field.name] = max(sequences[schema_field.name], int(value))

        try:
            validate_fields(properties, stored)
        except StorageError as e:
            raise _invalid(f"Document {index}: {e}") from e
        prepared.append(stored)

    return prepared
