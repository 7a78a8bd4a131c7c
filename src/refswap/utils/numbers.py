"""Amount helpers shared by the estimator, sessions and submitter.

Readable amounts are Decimals in token units; non-divisible amounts are
integers in the token's smallest unit.
"""

import re
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Optional, Union

ONLY_ZEROS = re.compile(r"^0*\.?0*$")

Amount = Union[str, int, Decimal]


def is_effectively_zero(amount: Optional[Amount]) -> bool:
    """True for None, blank strings and strings made only of zeros."""
    if amount is None:
        return True
    if isinstance(amount, Decimal):
        return amount.is_zero()
    if isinstance(amount, int):
        return amount == 0
    return bool(ONLY_ZEROS.match(amount.strip()))


def to_decimal(amount: Amount) -> Decimal:
    """Parse an amount, raising ValueError on garbage."""
    if isinstance(amount, Decimal):
        return amount
    try:
        return Decimal(str(amount).strip() or "0")
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")


def percent_less(percent: Amount, amount: Amount) -> Decimal:
    """Reduce amount by a percentage (0.5 means 0.5%)."""
    value = to_decimal(amount)
    reduction = to_decimal(percent) / Decimal(100)
    if reduction < 0:
        reduction = Decimal(0)
    if reduction > 1:
        reduction = Decimal(1)
    return value * (Decimal(1) - reduction)


def to_non_divisible_number(decimals: int, amount: Amount) -> int:
    """Convert readable units to base units, truncating dust."""
    scaled = to_decimal(amount).scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def to_readable_number(decimals: int, amount: Amount) -> Decimal:
    """Convert base units to readable units."""
    return to_decimal(amount).scaleb(-decimals)


def format_amount(amount: Decimal, places: int = 8) -> str:
    """Render an amount without trailing zeros."""
    text = f"{amount:,.{places}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
