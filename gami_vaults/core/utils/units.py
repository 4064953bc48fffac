from __future__ import annotations

import re
from decimal import ROUND_DOWN, Decimal, Inexact, InvalidOperation, localcontext

from gami_vaults.core.constants.base import DECIMAL_STRING_PATTERN
from gami_vaults.core.errors import InvalidInputError

_DECIMAL_RE = re.compile(DECIMAL_STRING_PATTERN)


def _to_decimal(value: str | int | float | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    return Decimal(str(value).strip())


def plain_decimal_string(value: Decimal) -> str:
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def format_units(raw: int, decimals: int) -> str:
    """Render a fixed-point integer as a canonical decimal string (``1500000, 6 -> "1.5"``)."""
    raw, decimals = int(raw), int(decimals)
    sign = "-" if raw < 0 else ""
    whole, frac = divmod(abs(raw), 10**decimals)
    if decimals == 0 or frac == 0:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"


def to_erc20_raw(amount_tokens: str | int | float | Decimal, decimals: int) -> int:
    try:
        amt = _to_decimal(amount_tokens)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid token amount: {amount_tokens}") from exc
    if amt < 0:
        raise ValueError("Amount must be non-negative")
    decimals = int(decimals)
    with localcontext() as ctx:
        # every digit of amt plus the scale must survive the multiplication
        ctx.prec = max(ctx.prec, len(amt.as_tuple().digits) + decimals + 2)
        ctx.traps[Inexact] = True
        scaled = amt * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def validate_amount(amount: str, decimals: int | None = None) -> str:
    """
    Check a user-supplied amount string before anything touches the chain.

    Rejects non ``^\\d+(\\.\\d+)?$`` strings and zero. When ``decimals`` is known,
    also rejects amounts with more fractional digits than the token supports.
    """
    if not isinstance(amount, str) or not _DECIMAL_RE.match(amount.strip()):
        raise InvalidInputError(f"Invalid amount: {amount!r}")
    amount = amount.strip()
    if Decimal(amount) <= 0:
        raise InvalidInputError("Amount must be greater than zero")
    if decimals is not None and "." in amount:
        fractional = amount.split(".", 1)[1]
        if len(fractional) > int(decimals):
            raise InvalidInputError(
                f"Amount {amount} has more than {decimals} fractional digits"
            )
    return amount


def parse_units(amount: str, decimals: int) -> int:
    """Strict inverse of ``format_units``: no silent truncation."""
    return to_erc20_raw(validate_amount(amount, decimals), decimals)
