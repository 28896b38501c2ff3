# events/serialization.py
"""
Canonical serialization utilities for the event store.

Parameter values are stored as text. Numeric values are written in a
canonical form that parses back to the same number, and alongside it as a
float copy that numeric filters compare against:

    >>> to_param_text(42)
    '42'
    >>> to_param_text(42.0)
    '42'
    >>> to_param_text(0.1)
    '0.1'
    >>> parse_numeric('42')
    42
    >>> parse_numeric('0.1')
    0.1
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Union


Number = Union[int, float]


def is_number(value: Any) -> bool:
    """True for int/float values; bool is not a number here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_param_text(value: Union[str, Number]) -> str:
    """
    Convert a parameter value to its stored text form.

    Strings are stored as-is. Integral numbers drop the fractional part,
    other floats use repr(), which round-trips exactly through float().

    Raises:
        ValueError: For NaN/infinity (no stable text form) or non-scalars
    """
    if isinstance(value, str):
        return value
    if not is_number(value):
        raise ValueError(f"Unsupported parameter value type: {type(value).__name__}")
    if isinstance(value, int):
        to_float(value)
        return str(value)
    if not math.isfinite(value):
        raise ValueError(f"Non-finite numeric value: {value!r}")
    if value.is_integer() and abs(value) < 2 ** 53:
        return str(int(value))
    return repr(value)


def to_float(value: Number) -> float:
    """
    Float copy of a numeric parameter, used for range comparisons.

    Raises:
        ValueError: For integers outside the float range
    """
    try:
        return float(value)
    except OverflowError:
        raise ValueError(f"Numeric value out of range: {value!r}")


def parse_numeric(text: str) -> Number:
    """
    Inverse of to_param_text for numeric values.

    Integral text comes back as int, anything else as float.
    """
    try:
        return int(text)
    except ValueError:
        return float(text)


# =============================================================================
# Timestamps
# =============================================================================

def datetime_to_epoch(value: datetime) -> float:
    """Unix seconds (with microseconds) for an aware datetime."""
    return value.timestamp()


def epoch_to_datetime(seconds: Number) -> datetime:
    """Aware UTC datetime for unix seconds."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def epoch_second_bounds(seconds: Number) -> Dict[str, datetime]:
    """
    Start and end of the whole second containing `seconds`.

    createdAt filters compare at second granularity:
    start <= created_at < end.
    """
    start = epoch_to_datetime(math.floor(seconds))
    return {"start": start, "end": start + timedelta(seconds=1)}
