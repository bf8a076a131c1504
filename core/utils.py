"""
Core utility functions used across domains
"""
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple, Union

Number = Union[int, float, Decimal]

_NATURAL_CHUNK = re.compile(r"(\d+)")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a loosely-typed value to Decimal, None if not numeric"""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def round2(value: Number) -> float:
    """Round half-up to 2 decimal places"""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def calculate_percentage(earned: Number, maximum: Number) -> float:
    """earned / maximum * 100 rounded half-up to 2 decimals, 0 when maximum is not positive"""
    earned_dec = Decimal(str(earned))
    max_dec = Decimal(str(maximum))
    if max_dec <= 0:
        return 0.0
    return round2(earned_dec / max_dec * 100)


def natural_sort_key(value: Optional[str]) -> Tuple[Any, ...]:
    """
    Numeric-aware sort key, so that "1.2" < "1.10" and "2" < "10"

    Digit runs compare as integers, other runs case-insensitively.
    """
    text = "" if value is None else str(value)
    key: List[Tuple[int, Any]] = []
    for chunk in _NATURAL_CHUNK.split(text):
        if not chunk:
            continue
        if chunk.isdigit():
            key.append((0, int(chunk)))
        else:
            key.append((1, chunk.lower()))
    return tuple(key)


def clean_text(text: Optional[str]) -> Optional[str]:
    """Turn escaped newlines/tabs from list exports into real whitespace"""
    if not text:
        return text
    return (
        str(text)
        .replace("\\r\\n", "\n")
        .replace("\\n", "\n")
        .replace("\\t", "    ")
        .replace("\t", "    ")
        .strip()
    )


def first_present(record: dict, *keys: str) -> Any:
    """Return the first value among keys that is neither None nor an empty string"""
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncate text to max length with suffix"""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix
