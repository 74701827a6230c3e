"""Lenient conversions for values read from the environment or app config."""
from __future__ import annotations

from typing import Any, Optional

_TRUTHY = frozenset({"true", "1", "yes", "on"})
_FALSY = frozenset({"false", "0", "no", "off", ""})


def to_bool(value: Any, *, default: bool = False) -> bool:
    """Interpret flags such as ``"yes"``/``"off"``; unknown values give ``default``."""

    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
    return default


def coerce_int(value: Any, fallback: int, *, minimum: Optional[int] = None) -> int:
    try:
        result = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        result = fallback
    if minimum is not None:
        result = max(minimum, result)
    return result


def coerce_float(value: Any, fallback: float, *, minimum: Optional[float] = None) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        result = fallback
    if minimum is not None:
        result = max(minimum, result)
    return result


def to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


__all__ = ["coerce_float", "coerce_int", "to_bool", "to_optional_str"]
