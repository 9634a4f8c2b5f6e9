"""
Field type merging.

Combines two observations of the same field into one compatible type.
Merging is commutative and associative, so folding any number of samples
gives the same type regardless of their order (object field order aside,
which follows first-seen order).

Widening rules:
- NULL + T -> T, nullable
- INT64 + FLOAT64 -> FLOAT64
- any two different string formats (string, uuid, date-time, byte-array) -> STRING
- OBJECT + OBJECT -> field union, one-sided fields become nullable
- ARRAY + ARRAY -> ARRAY of the merged element type

Everything else is a conflict. Conflicts raise SchemaConflictError unless
the caller passes an on_conflict policy.
"""

from typing import Callable, Dict, Optional

from schemaflow.inference.errors import SchemaConflictError
from schemaflow.inference.field_types import FieldKind, FieldType, STRING_KINDS

ConflictPolicy = Callable[[str, FieldType, FieldType], FieldType]

_NUMERIC_KINDS = frozenset({FieldKind.INT64, FieldKind.FLOAT64})


def child_path(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def raise_conflict(path: str, left: FieldType, right: FieldType) -> FieldType:
    """Default policy: surface the conflict to the caller."""
    raise SchemaConflictError(path, left, right)


def coerce_to_string(path: str, left: FieldType, right: FieldType) -> FieldType:
    """Lossy policy: incompatible observations become a plain string field."""
    return FieldType.scalar(FieldKind.STRING, nullable=left.nullable or right.nullable)


def merge_field_types(
    left: FieldType,
    right: FieldType,
    path: str = "",
    on_conflict: Optional[ConflictPolicy] = None,
) -> FieldType:
    """
    Merge two types observed for the same field.

    Args:
        left: Previously accumulated type
        right: Newly observed type
        path: Dotted field path, used in conflict reports
        on_conflict: Policy for incompatible types, raises by default

    Returns:
        Merged FieldType (a new object, inputs are not modified)

    Raises:
        SchemaConflictError: If the types are incompatible and no policy
            resolves them
    """
    if left.is_null and right.is_null:
        return FieldType.null()
    if left.is_null:
        return right.with_nullable(True)
    if right.is_null:
        return left.with_nullable(True)

    nullable = left.nullable or right.nullable

    if left.kind == right.kind:
        if left.kind == FieldKind.ARRAY:
            return FieldType.array(
                _merge_items(left.items, right.items, f"{path}[]", on_conflict),
                nullable=nullable,
            )
        if left.kind == FieldKind.OBJECT:
            return FieldType.object(
                merge_object_fields(left.properties, right.properties, path, on_conflict),
                nullable=nullable,
            )
        return FieldType.scalar(left.kind, nullable=nullable)

    if left.kind in _NUMERIC_KINDS and right.kind in _NUMERIC_KINDS:
        return FieldType.scalar(FieldKind.FLOAT64, nullable=nullable)

    if left.kind in STRING_KINDS and right.kind in STRING_KINDS:
        return FieldType.scalar(FieldKind.STRING, nullable=nullable)

    policy = on_conflict or raise_conflict
    return policy(path, left, right)


def _merge_items(
    left: Optional[FieldType],
    right: Optional[FieldType],
    path: str,
    on_conflict: Optional[ConflictPolicy],
) -> Optional[FieldType]:
    # None means no element observed yet
    if left is None:
        return right.copy() if right is not None else None
    if right is None:
        return left.copy()
    return merge_field_types(left, right, path, on_conflict)


def merge_object_fields(
    left: Dict[str, FieldType],
    right: Dict[str, FieldType],
    path: str = "",
    on_conflict: Optional[ConflictPolicy] = None,
) -> Dict[str, FieldType]:
    """
    Union two field mappings.

    Fields present on both sides are merged recursively, fields present on
    one side only are kept and marked nullable. Order is the left side's
    order followed by fields first seen on the right.
    """
    merged: Dict[str, FieldType] = {}

    for name, left_type in left.items():
        right_type = right.get(name)
        if right_type is None:
            merged[name] = left_type.with_nullable(True)
        else:
            merged[name] = merge_field_types(
                left_type, right_type, child_path(path, name), on_conflict)

    for name, right_type in right.items():
        if name not in left:
            merged[name] = right_type.with_nullable(True)

    return merged
