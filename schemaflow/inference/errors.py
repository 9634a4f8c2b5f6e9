"""Errors raised by schema inference."""

from typing import Optional

from schemaflow.inference.field_types import FieldType


class SchemaInferenceError(Exception):
    """Base exception for schema inference failures."""
    pass


class SchemaConflictError(SchemaInferenceError):
    """Two samples impose incompatible types on the same field path."""

    def __init__(self, path: str, left: FieldType, right: FieldType):
        self.path = path or "<root>"
        self.left = left
        self.right = right
        super().__init__(
            f"Conflicting types for field '{self.path}': "
            f"{left.describe()} vs {right.describe()}"
        )


class SchemaSerializationError(SchemaInferenceError):
    """The schema cannot be encoded to or decoded from its wire form."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{message} (field '{path}')"
        super().__init__(message)
