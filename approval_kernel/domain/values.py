"""
Values -- Decimal helpers for monetary and percentage figures.

Responsibility:
    Coerces caller-supplied numbers into ``Decimal`` and applies the
    kernel's rounding rules.  Amounts are never represented as float.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - ValidationError when a value cannot be interpreted as a number.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from approval_kernel.exceptions import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")

_WHOLE_UNIT = Decimal("1")
_TWO_PLACES = Decimal("0.01")
_ONE_PLACE = Decimal("0.1")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """Convert an int/str/Decimal to Decimal.

    Floats are routed through ``str`` so ``0.1`` stays ``Decimal("0.1")``.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be numeric, got {value!r}", field=field)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(
            f"{field} must be numeric, got {value!r}", field=field,
        ) from exc


def round_whole(amount: Decimal) -> Decimal:
    """Round to a whole currency unit, half away from zero."""
    return amount.quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP)


def round_percent(amount: Decimal) -> Decimal:
    """Round a percentage to two decimal places."""
    return amount.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def round_tenth(amount: Decimal) -> Decimal:
    """Round to one decimal place (hours, headline percentages)."""
    return amount.quantize(_ONE_PLACE, rounding=ROUND_HALF_UP)


def percent_change(current: Decimal, proposed: Decimal) -> Decimal:
    """Signed change of ``proposed`` relative to ``current`` in percent.

    ``current`` must be non-zero; target constructors enforce that.
    """
    return (proposed - current) / current * HUNDRED
