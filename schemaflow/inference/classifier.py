"""
Value type classification.

Maps one scalar JSON value to its most specific FieldKind. String values
are checked against optional format detectors: UUID first, then RFC 3339
date-time, then base64 byte arrays.
"""

import base64
import binascii
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from schemaflow.inference.field_types import FieldKind, FieldType

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_UUID_PATTERN = re.compile(
    r'^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$'
)
_DATE_TIME_PATTERN = re.compile(
    r'^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$'
)
_BASE64_PATTERN = re.compile(r'^[A-Za-z0-9+/]+={0,2}$')


@dataclass(frozen=True)
class DetectorConfig:
    """Which special string formats and number kinds to detect."""
    detect_byte_arrays: bool = False
    detect_uuids: bool = True
    detect_times: bool = True
    detect_integers: bool = True

    @classmethod
    def from_settings(cls, settings) -> "DetectorConfig":
        return cls(
            detect_byte_arrays=settings.detect_byte_arrays,
            detect_uuids=settings.detect_uuids,
            detect_times=settings.detect_times,
            detect_integers=settings.detect_integers,
        )


DEFAULT_DETECTORS = DetectorConfig()


def is_uuid(value: str) -> bool:
    """Canonical 8-4-4-4-12 hyphenated hex form."""
    return bool(_UUID_PATTERN.fullmatch(value))


def is_date_time(value: str) -> bool:
    """RFC 3339 date-time with a valid calendar date and time."""
    match = _DATE_TIME_PATTERN.fullmatch(value)
    if not match:
        return False

    # fromisoformat handles fractions and offsets but not 'z' or 't'
    normalized = value[:10] + "T" + value[11:]
    if normalized[-1] in "Zz":
        normalized = normalized[:-1] + "+00:00"
    fraction = match.group(1)
    if fraction:
        # Python parses microseconds only
        normalized = normalized.replace(
            fraction, "." + (fraction[1:] + "000000")[:6], 1)
    try:
        datetime.fromisoformat(normalized)
    except ValueError:
        return False
    return True


def is_byte_array(value: str) -> bool:
    """Padded standard base64 that decodes cleanly."""
    if len(value) < 4 or len(value) % 4 != 0:
        return False
    if not _BASE64_PATTERN.fullmatch(value):
        return False
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def _classify_number(value: Any, detectors: DetectorConfig) -> FieldKind:
    if not detectors.detect_integers:
        return FieldKind.FLOAT64

    if isinstance(value, int):
        return FieldKind.INT64 if INT64_MIN <= value <= INT64_MAX else FieldKind.FLOAT64

    if math.isfinite(value) and value.is_integer() and INT64_MIN <= value <= INT64_MAX:
        return FieldKind.INT64
    return FieldKind.FLOAT64


def _classify_string(value: str, detectors: DetectorConfig) -> FieldKind:
    if detectors.detect_uuids and is_uuid(value):
        return FieldKind.UUID
    if detectors.detect_times and is_date_time(value):
        return FieldKind.DATE_TIME
    if detectors.detect_byte_arrays and is_byte_array(value):
        return FieldKind.BYTE_ARRAY
    return FieldKind.STRING


def classify_kind(value: Any, detectors: Optional[DetectorConfig] = None) -> FieldKind:
    """
    Classify a scalar JSON value.

    Args:
        value: Decoded JSON scalar (None, bool, int, float or str)
        detectors: Enabled detectors, defaults to DEFAULT_DETECTORS

    Returns:
        FieldKind of the value

    Raises:
        TypeError: If the value is not a JSON scalar
    """
    detectors = detectors or DEFAULT_DETECTORS

    if value is None:
        return FieldKind.NULL
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return FieldKind.BOOL
    if isinstance(value, (int, float)):
        return _classify_number(value, detectors)
    if isinstance(value, str):
        return _classify_string(value, detectors)

    raise TypeError(f"Not a JSON scalar: {type(value).__name__}")


def classify_value(value: Any, detectors: Optional[DetectorConfig] = None) -> FieldType:
    """Classify a scalar JSON value into a scalar FieldType."""
    kind = classify_kind(value, detectors)
    if kind == FieldKind.NULL:
        return FieldType.null()
    return FieldType.scalar(kind)
