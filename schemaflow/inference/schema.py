"""
Collection schema model and its wire format.

The wire format is the JSON document exchanged with the storage layer:

    {"title": "users",
     "properties": {
        "id": {"type": "integer", "format": "int64"},
        "tags": {"type": "array", "items": {"type": "string"}},
        "seen": {"type": "string", "format": "date-time", "nullable": true}},
     "primary_key": ["id"]}

Marshaling is canonical: compact separators, fields in first-seen order and
a fixed key order inside every node, so equal schemas give equal bytes.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from schemaflow.inference.errors import SchemaSerializationError
from schemaflow.inference.field_types import FieldKind, FieldType
from schemaflow.inference.merger import child_path

# FieldKind -> (wire type, wire format)
_WIRE_TAGS = {
    FieldKind.NULL: ("null", None),
    FieldKind.BOOL: ("boolean", None),
    FieldKind.INT64: ("integer", "int64"),
    FieldKind.FLOAT64: ("number", None),
    FieldKind.STRING: ("string", None),
    FieldKind.UUID: ("string", "uuid"),
    FieldKind.DATE_TIME: ("string", "date-time"),
    FieldKind.BYTE_ARRAY: ("string", "byte"),
    FieldKind.ARRAY: ("array", None),
    FieldKind.OBJECT: ("object", None),
}

_STRING_FORMATS = {
    "uuid": FieldKind.UUID,
    "date-time": FieldKind.DATE_TIME,
    "byte": FieldKind.BYTE_ARRAY,
}

_SIMPLE_TYPES = {
    "null": FieldKind.NULL,
    "boolean": FieldKind.BOOL,
    "integer": FieldKind.INT64,
    "number": FieldKind.FLOAT64,
    "array": FieldKind.ARRAY,
    "object": FieldKind.OBJECT,
}


@dataclass
class SchemaField:
    """A top-level field of a collection."""
    name: str
    type: FieldType
    is_primary_key: bool = False
    is_auto_generated: bool = False

    def copy(self) -> "SchemaField":
        return SchemaField(self.name, self.type.copy(), self.is_primary_key, self.is_auto_generated)


@dataclass
class Schema:
    """Schema of one collection, fields in first-seen order."""
    collection_name: str
    fields: List[SchemaField] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[SchemaField]:
        for schema_field in self.fields:
            if schema_field.name == name:
                return schema_field
        return None

    def as_object_type(self) -> FieldType:
        """Top-level fields as an OBJECT type."""
        return FieldType.object({f.name: f.type for f in self.fields})

    def copy(self) -> "Schema":
        return Schema(
            collection_name=self.collection_name,
            fields=[f.copy() for f in self.fields],
            primary_key=list(self.primary_key),
        )


def encode_field_type(field_type: FieldType) -> Dict[str, Any]:
    """Encode a FieldType as a wire schema node."""
    type_tag, fmt = _WIRE_TAGS[field_type.kind]
    node: Dict[str, Any] = {"type": type_tag}
    if fmt:
        node["format"] = fmt
    if field_type.kind == FieldKind.ARRAY and field_type.items is not None:
        node["items"] = encode_field_type(field_type.items)
    if field_type.kind == FieldKind.OBJECT:
        node["properties"] = {
            name: encode_field_type(child) for name, child in field_type.properties.items()
        }
    if field_type.nullable and not field_type.is_null:
        node["nullable"] = True
    return node


def schema_to_dict(schema: Schema) -> Dict[str, Any]:
    """Wire form of a schema as a plain dict."""
    properties: Dict[str, Any] = {}
    for schema_field in schema.fields:
        node = encode_field_type(schema_field.type)
        if schema_field.is_auto_generated:
            node["autoGenerate"] = True
        properties[schema_field.name] = node

    document: Dict[str, Any] = {"title": schema.collection_name, "properties": properties}
    if schema.primary_key:
        document["primary_key"] = list(schema.primary_key)
    return document


def marshal_schema(schema: Schema) -> bytes:
    """
    Serialize a schema to its canonical wire bytes.

    Raises:
        SchemaSerializationError: If the schema cannot be encoded
    """
    try:
        document = schema_to_dict(schema)
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (KeyError, TypeError, ValueError) as e:
        raise SchemaSerializationError(
            f"Cannot serialize schema of '{schema.collection_name}': {e}") from e


def _decode_kind(type_tag: Any, fmt: Any, path: str) -> FieldKind:
    if type_tag == "string":
        return _STRING_FORMATS.get(fmt, FieldKind.STRING)
    if isinstance(type_tag, str) and type_tag in _SIMPLE_TYPES:
        return _SIMPLE_TYPES[type_tag]
    raise SchemaSerializationError(f"Unsupported type {type_tag!r}", path)


def decode_field_type(node: Any, path: str = "") -> FieldType:
    """
    Decode a wire schema node into a FieldType.

    Raises:
        SchemaSerializationError: If the node is malformed
    """
    if not isinstance(node, dict):
        raise SchemaSerializationError("Schema node must be an object", path)

    type_tag = node.get("type")
    nullable = bool(node.get("nullable", False))

    # ["integer", "null"] style unions
    if isinstance(type_tag, list):
        tags = [t for t in type_tag if t != "null"]
        if len(tags) != len(type_tag):
            nullable = True
        if not tags:
            type_tag = "null"
        elif len(tags) == 1:
            type_tag = tags[0]
        else:
            raise SchemaSerializationError(f"Union of {tags} is not supported", path)

    kind = _decode_kind(type_tag, node.get("format"), path)

    if kind == FieldKind.ARRAY:
        items = node.get("items")
        return FieldType.array(
            decode_field_type(items, f"{path}[]") if items is not None else None,
            nullable=nullable,
        )
    if kind == FieldKind.OBJECT:
        properties = node.get("properties") or {}
        if not isinstance(properties, dict):
            raise SchemaSerializationError("'properties' must be an object", path)
        return FieldType.object(
            {
                name: decode_field_type(child, child_path(path, name))
                for name, child in properties.items()
            },
            nullable=nullable,
        )
    if kind == FieldKind.NULL:
        return FieldType.null()
    return FieldType.scalar(kind, nullable=nullable)


def unmarshal_schema(
    data: Union[bytes, str, Dict[str, Any]],
    collection_name: Optional[str] = None,
) -> Schema:
    """
    Parse wire schema bytes into a Schema.

    Args:
        data: Wire schema as bytes, text or an already decoded dict
        collection_name: Name to use when the document carries no title

    Raises:
        SchemaSerializationError: If the document is not a valid schema
    """
    if isinstance(data, (bytes, str)):
        try:
            document = json.loads(data)
        except ValueError as e:
            raise SchemaSerializationError(f"Schema is not valid JSON: {e}") from e
    else:
        document = data

    if not isinstance(document, dict):
        raise SchemaSerializationError("Schema must be a JSON object")

    properties = document.get("properties") or {}
    if not isinstance(properties, dict):
        raise SchemaSerializationError("'properties' must be an object")

    primary_key = document.get("primary_key") or []
    if not isinstance(primary_key, list) or not all(isinstance(k, str) for k in primary_key):
        raise SchemaSerializationError("'primary_key' must be a list of field names")

    fields = []
    for name, node in properties.items():
        fields.append(SchemaField(
            name=name,
            type=decode_field_type(node, name),
            is_primary_key=name in primary_key,
            is_auto_generated=bool(isinstance(node, dict) and node.get("autoGenerate")),
        ))

    return Schema(
        collection_name=document.get("title") or collection_name or "",
        fields=fields,
        primary_key=list(primary_key),
    )
