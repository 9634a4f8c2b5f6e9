"""
Structural field types.

A FieldType is a tagged variant describing one JSON value: a scalar kind,
an array with its element type, or an object with its fields in first-seen
order. Every variant carries a nullable flag.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class FieldKind(str, Enum):
    """Enumeration of inferred field kinds."""
    NULL = "null"
    BOOL = "bool"
    INT64 = "int64"
    FLOAT64 = "float64"
    STRING = "string"
    UUID = "uuid"
    DATE_TIME = "date-time"
    BYTE_ARRAY = "byte-array"
    ARRAY = "array"
    OBJECT = "object"


# Kinds that are strings on the wire and widen to plain STRING when mixed
STRING_KINDS = frozenset({
    FieldKind.STRING,
    FieldKind.UUID,
    FieldKind.DATE_TIME,
    FieldKind.BYTE_ARRAY,
})

SCALAR_KINDS = frozenset({
    FieldKind.NULL,
    FieldKind.BOOL,
    FieldKind.INT64,
    FieldKind.FLOAT64,
}) | STRING_KINDS


@dataclass
class FieldType:
    """
    Structural type of a JSON value.

    Attributes:
        kind: Variant tag
        nullable: Whether NULL has been observed (or the field was missing
            from some samples)
        items: Element type of an ARRAY, None while no element was observed
        properties: Fields of an OBJECT in first-seen order
    """
    kind: FieldKind
    nullable: bool = False
    items: Optional["FieldType"] = None
    properties: Dict[str, "FieldType"] = field(default_factory=dict)

    def __post_init__(self):
        # NULL is always nullable
        if self.kind == FieldKind.NULL:
            self.nullable = True

    @classmethod
    def null(cls) -> "FieldType":
        return cls(FieldKind.NULL, nullable=True)

    @classmethod
    def scalar(cls, kind: FieldKind, nullable: bool = False) -> "FieldType":
        if kind not in SCALAR_KINDS:
            raise ValueError(f"{kind.value} is not a scalar kind")
        return cls(kind, nullable=nullable)

    @classmethod
    def array(cls, items: Optional["FieldType"] = None, nullable: bool = False) -> "FieldType":
        return cls(FieldKind.ARRAY, nullable=nullable, items=items)

    @classmethod
    def object(cls, properties: Optional[Dict[str, "FieldType"]] = None,
               nullable: bool = False) -> "FieldType":
        return cls(FieldKind.OBJECT, nullable=nullable, properties=dict(properties or {}))

    @property
    def is_null(self) -> bool:
        return self.kind == FieldKind.NULL

    def with_nullable(self, nullable: bool = True) -> "FieldType":
        """Return a copy with the nullable flag set."""
        copied = self.copy()
        copied.nullable = nullable or copied.is_null
        return copied

    def copy(self) -> "FieldType":
        """Deep copy of the type tree."""
        return FieldType(
            kind=self.kind,
            nullable=self.nullable,
            items=self.items.copy() if self.items is not None else None,
            properties={name: ft.copy() for name, ft in self.properties.items()},
        )

    def describe(self) -> str:
        """Short human readable form, used in error messages."""
        if self.kind == FieldKind.ARRAY:
            inner = self.items.describe() if self.items is not None else "?"
            text = f"array<{inner}>"
        elif self.kind == FieldKind.OBJECT:
            text = "object{" + ", ".join(self.properties) + "}"
        else:
            text = self.kind.value
        if self.nullable and not self.is_null:
            text += "?"
        return text

    def __str__(self) -> str:
        return self.describe()
