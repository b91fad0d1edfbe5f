"""
Money helpers.

All amounts are Decimal, quantized to two places with half-up rounding.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from backend.app.core.exceptions import ValidationError

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value, field: str = "amount") -> Decimal:
    """Coerce int/float/str/Decimal to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", details={"field": field})
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} is not a number", details={"field": field}) from exc


def money(value, field: str = "amount") -> Decimal:
    return to_decimal(value, field).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def non_negative_money(value, field: str = "amount") -> Decimal:
    amount = money(value, field)
    if amount < 0:
        raise ValidationError(f"{field} must not be negative", details={"field": field, "value": str(amount)})
    return amount


def positive_money(value, field: str = "amount") -> Decimal:
    amount = money(value, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero", details={"field": field, "value": str(amount)})
    return amount


def percent_of(amount, percent) -> Decimal:
    """amount * percent / 100, rounded to cents."""
    return money(to_decimal(amount) * to_decimal(percent, "percent") / HUNDRED)
