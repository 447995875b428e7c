from __future__ import annotations

from typing import Any


def parse_bounded_int(
    value: Any, *, default: int, name: str, min_val: int, max_val: int
) -> int:
    """Parse an integer setting, falling back to ``default`` for blank values."""
    try:
        parsed = int(str(value if value not in (None, "") else default))
    except ValueError as exc:
        msg = f"{name} must be a valid integer"
        raise ValueError(msg) from exc
    if parsed < min_val or parsed > max_val:
        msg = f"{name.capitalize()} must be between {min_val} and {max_val}"
        raise ValueError(msg)
    return parsed


def parse_bounded_float(
    value: Any, *, default: float, name: str, min_val: float, max_val: float
) -> float:
    """Parse a float setting, falling back to ``default`` for blank values."""
    try:
        parsed = float(str(value if value not in (None, "") else default))
    except ValueError as exc:
        msg = f"{name} must be a valid number"
        raise ValueError(msg) from exc
    if parsed < min_val or parsed > max_val:
        msg = f"{name.capitalize()} must be between {min_val} and {max_val}"
        raise ValueError(msg)
    return parsed
