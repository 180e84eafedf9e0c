"""
Storage - Metric Values and Merge Rules.

============================================================
RESPONSIBILITY
============================================================
Defines how a raw textual update is turned into a stored value.

- Gauge: parsed as float, REPLACES the prior value
- Counter: parsed as int64, ADDED to the prior value
- Canonical text encoding shared by every backend and the dump

============================================================
"""

import math
import re
from typing import Optional, Union

from core.constants import COUNTER, GAUGE, INT64_MAX, INT64_MIN
from core.exceptions import (
    InvalidNameError,
    InvalidValueError,
    MissingValueError,
    UnknownMetricTypeError,
)
from core.models import MetricRecord


MetricValue = Union[int, float]

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


# ============================================================
# PARSING
# ============================================================

def parse_gauge(raw_value: str) -> float:
    """Parse a gauge update. NaN and infinities are rejected."""
    try:
        value = float(raw_value)
    except (TypeError, ValueError) as e:
        raise InvalidValueError(GAUGE, raw_value, cause=e) from e

    if not math.isfinite(value):
        raise InvalidValueError(GAUGE, raw_value)
    return value


def parse_counter(raw_value: str) -> int:
    """Parse a counter delta as a signed 64-bit integer."""
    if not isinstance(raw_value, str) or not _INTEGER_RE.fullmatch(raw_value):
        raise InvalidValueError(COUNTER, raw_value)

    delta = int(raw_value)
    if delta < INT64_MIN or delta > INT64_MAX:
        raise InvalidValueError(COUNTER, raw_value)
    return delta


def parse_value(kind: str, raw_value: str) -> MetricValue:
    """Parse ``raw_value`` according to ``kind``."""
    if kind == GAUGE:
        return parse_gauge(raw_value)
    if kind == COUNTER:
        return parse_counter(raw_value)
    raise UnknownMetricTypeError(kind)


# ============================================================
# MERGE
# ============================================================

def apply_update(
    current: Optional[MetricValue],
    kind: str,
    name: str,
    raw_value: str,
) -> MetricValue:
    """
    Compute the value stored after applying one update.

    Args:
        current: Value currently stored for (kind, name), None if absent
        kind: "gauge" or "counter"
        name: Metric name, must be non-empty
        raw_value: Textual value or delta

    Returns:
        The new value (gauge: parsed value, counter: current + delta)

    Raises:
        UnknownMetricTypeError, InvalidValueError, InvalidNameError.
        A counter total outside int64 raises InvalidValueError.
    """
    parsed = parse_value(kind, raw_value)

    if not name:
        raise InvalidNameError(name)

    if kind == GAUGE:
        return parsed

    total = int(current or 0) + parsed
    if total < INT64_MIN or total > INT64_MAX:
        raise InvalidValueError(COUNTER, raw_value)
    return total


# ============================================================
# TEXT ENCODING
# ============================================================

def format_value(value: MetricValue) -> str:
    """
    Canonical text form of a stored value.

    Integers print as-is. Floats use the shortest round-tripping
    form with a trailing ".0" dropped, so 2.0 -> "2" and 1.5 -> "1.5".
    """
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, int):
        return str(value)

    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def record_raw_value(record: MetricRecord) -> str:
    """
    Extract the textual update carried by a wire record.

    Raises:
        UnknownMetricTypeError: type is not gauge/counter
        MissingValueError: the field required by the type is absent
    """
    if record.type == COUNTER:
        if record.delta is None:
            raise MissingValueError(record.type, record.id)
        return str(record.delta)

    if record.type == GAUGE:
        if record.value is None:
            raise MissingValueError(record.type, record.id)
        return repr(float(record.value))

    raise UnknownMetricTypeError(record.type)


def to_record(kind: str, name: str, value: MetricValue) -> MetricRecord:
    """Wire record populated with a stored value."""
    if kind == COUNTER:
        return MetricRecord.counter(name, int(value))
    return MetricRecord.gauge(name, float(value))
