"""Generic coercion utilities shared across the camstream codebase."""
from __future__ import annotations

from typing import Any, Optional

_TRUTHY = {"true", "1", "yes", "on"}
_FALSY = {"false", "0", "no", "off"}


def to_bool(value: Any, *, default: bool = False) -> bool:
    """Best-effort conversion of common truthy/falsey inputs to ``bool``."""

    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
    return default


def to_optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def to_optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_int(value: Any, fallback: int) -> int:
    coerced = to_optional_int(value)
    return fallback if coerced is None else coerced


def coerce_float(value: Any, fallback: float) -> float:
    coerced = to_optional_float(value)
    return fallback if coerced is None else coerced


__all__ = [
    "coerce_float",
    "coerce_int",
    "to_bool",
    "to_optional_float",
    "to_optional_int",
    "to_optional_str",
]
