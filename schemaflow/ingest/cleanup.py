"""Document cleanup applied before retrying a rejected batch."""

from typing import Any, Dict


def _clean(value: Any) -> Any:
    if isinstance(value, dict):
        return cleanup_null_values(value)
    if isinstance(value, list):
        return [_clean(element) for element in value]
    return value


def cleanup_null_values(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove NULL-valued and empty-array fields from a document.

    Applies to nested objects too, including objects inside arrays.
    Array elements themselves are never dropped.

    Args:
        document: Decoded JSON object (not modified)

    Returns:
        Cleaned copy of the document
    """
    cleaned = {}
    for name, value in document.items():
        if value is None:
            continue
        if isinstance(value, list) and not value:
            continue
        cleaned[name] = _clean(value)
    return cleaned
