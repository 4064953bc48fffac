from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation

from gami_vaults.core.constants.base import ADDRESS_PATTERN, DECIMAL_STRING_PATTERN
from gami_vaults.core.utils.units import format_units, plain_decimal_string

_DECIMAL_RE = re.compile(DECIMAL_STRING_PATTERN)
_ADDRESS_RE = re.compile(ADDRESS_PATTERN)


def is_valid_decimal_string(value: object) -> bool:
    return isinstance(value, str) and bool(_DECIMAL_RE.match(value))


def is_address(value: object) -> bool:
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def _float_to_str(value: float) -> str:
    if not math.isfinite(value):
        return "0"
    text = repr(float(value))
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if text.endswith(".0"):
        text = text[:-2]
    return text


def normalize_to_string(
    value: str | int | float | Decimal | None, decimals: int | None = None
) -> str:
    """
    Canonical decimal string for any upstream numeric.

    - ``None`` -> ``"0"``
    - strings pass through only if they already look like ``^\\d+(\\.\\d+)?$``
    - floats render without exponent; NaN/Infinity -> ``"0"``
    - ints with ``decimals`` are treated as fixed-point raw amounts
    """
    if value is None or isinstance(value, bool):
        return "0"
    if isinstance(value, str):
        return value if is_valid_decimal_string(value) else "0"
    if isinstance(value, int):
        if decimals is not None:
            return format_units(value, decimals)
        return str(value)
    if isinstance(value, Decimal):
        return plain_decimal_string(value) if value.is_finite() else "0"
    if isinstance(value, float):
        return _float_to_str(value)
    return "0"


def safe_parse_number(value: str | int | float | Decimal | None) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(float(value)) else 0.0
    try:
        parsed = float(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def safe_parse_int(value: str | int | None) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return 0


def calculate_percentage_change(old_value: str, new_value: str) -> str:
    old = safe_parse_number(old_value)
    current = safe_parse_number(new_value)
    if old == 0:
        return "100" if current > 0 else "0"
    return f"{(current - old) / old * 100:.2f}"
