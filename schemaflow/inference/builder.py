"""Structural type building for decoded JSON documents."""

from itertools import islice
from typing import Any, Dict, Iterable, Optional

from schemaflow.inference.classifier import DetectorConfig, classify_value
from schemaflow.inference.errors import SchemaInferenceError
from schemaflow.inference.field_types import FieldType
from schemaflow.inference.merger import ConflictPolicy, child_path, merge_field_types


def build_field_type(
    value: Any,
    detectors: Optional[DetectorConfig] = None,
    path: str = "",
    on_conflict: Optional[ConflictPolicy] = None,
) -> FieldType:
    """
    Build the structural type of a JSON value.

    Objects keep their key order, array elements are folded into a single
    element type, scalars are classified.

    Args:
        value: Decoded JSON value of any shape
        detectors: Enabled string/number detectors
        path: Dotted path of the value, used in conflict reports
        on_conflict: Policy for incompatible array elements

    Returns:
        FieldType describing the value
    """
    if isinstance(value, dict):
        return FieldType.object({
            name: build_field_type(item, detectors, child_path(path, name), on_conflict)
            for name, item in value.items()
        })

    if isinstance(value, list):
        items_path = f"{path}[]"
        items: Optional[FieldType] = None
        for element in value:
            element_type = build_field_type(element, detectors, items_path, on_conflict)
            if items is None:
                items = element_type
            else:
                items = merge_field_types(items, element_type, items_path, on_conflict)
        return FieldType.array(items)

    return classify_value(value, detectors)


def build_document_type(
    documents: Iterable[Dict[str, Any]],
    detectors: Optional[DetectorConfig] = None,
    inference_depth: int = 0,
    on_conflict: Optional[ConflictPolicy] = None,
) -> FieldType:
    """
    Fold the leading documents of a batch into one object type.

    Args:
        documents: Decoded JSON objects
        detectors: Enabled string/number detectors
        inference_depth: Number of documents to inspect, 0 or less inspects all
        on_conflict: Policy for incompatible field types

    Returns:
        OBJECT FieldType with the union of the inspected documents' fields

    Raises:
        SchemaInferenceError: If an inspected document is not a JSON object
        SchemaConflictError: If field types conflict and no policy resolves them
    """
    if inference_depth > 0:
        documents = islice(documents, inference_depth)

    accumulated: Optional[FieldType] = None
    for index, document in enumerate(documents):
        if not isinstance(document, dict):
            raise SchemaInferenceError(
                f"Document {index} is not a JSON object: {type(document).__name__}")

        document_type = build_field_type(document, detectors, "", on_conflict)
        if accumulated is None:
            accumulated = document_type
        else:
            accumulated = merge_field_types(accumulated, document_type, "", on_conflict)

    return accumulated if accumulated is not None else FieldType.object()
