"""
Quote totals.

All amounts are integer minor currency units (cents). Discount and tax are
rounded half-up to the nearest unit before summation, so recomputing with the
same inputs always yields the same totals.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from quotepay.contracts.interfaces import QuoteTotals
from quotepay.errors import ValidationError

HUNDRED = Decimal(100)
UNIT = Decimal(1)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(UNIT, rounding=ROUND_HALF_UP))


def to_minor_units(amount: Any, exponent: int = 2) -> int:
    """Convert a major-unit price ("10.50", 10.5) to minor units (1050)."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("amount", f"not a number: {amount!r}") from exc
    if not value.is_finite():
        raise ValidationError("amount", f"not a finite number: {amount!r}")
    return round_half_up(value.scaleb(exponent))


def compute_totals(items: Iterable[Any], discount_pct: Any = 0, tax_pct: Any = 0) -> QuoteTotals:
    """
    subtotal = sum(unit_price * quantity)
    discount_amount = subtotal * discount_pct / 100
    tax_amount = (subtotal - discount_amount) * tax_pct / 100
    total = subtotal - discount_amount + tax_amount

    Raises ValidationError naming the offending field; never clamps.
    """
    discount = _percentage(discount_pct, "discount_pct")
    tax = _percentage(tax_pct, "tax_pct")

    subtotal = 0
    for index, item in enumerate(items):
        unit_price = _unit_price(_field(item, "unit_price"), f"items[{index}].unit_price")
        quantity = _quantity(_field(item, "quantity"), f"items[{index}].quantity")
        subtotal += unit_price * quantity

    discount_amount = round_half_up(Decimal(subtotal) * discount / HUNDRED)
    after_discount = subtotal - discount_amount
    tax_amount = round_half_up(Decimal(after_discount) * tax / HUNDRED)

    return QuoteTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=after_discount + tax_amount,
    )


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        if name in item:
            return item[name]
        camel = {"unit_price": "unitPrice"}.get(name)
        return item.get(camel) if camel else None
    return getattr(item, name, None)


def _quantity(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, f"must be an integer, got {value!r}")
    if value < 1:
        raise ValidationError(field, f"must be at least 1, got {value}")
    return value


def _unit_price(value: Any, field: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError(field, f"must be an amount in minor units, got {value!r}")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(field, f"must be an amount in minor units, got {value!r}") from exc
    if not amount.is_finite() or amount != amount.to_integral_value():
        raise ValidationError(field, f"must be a whole number of minor units, got {value!r}")
    if amount < 0:
        raise ValidationError(field, f"must not be negative, got {value!r}")
    return int(amount)


def _percentage(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(field, f"must be a number between 0 and 100, got {value!r}")
    try:
        pct = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(field, f"must be a number between 0 and 100, got {value!r}") from exc
    if not pct.is_finite() or pct < 0 or pct > HUNDRED:
        raise ValidationError(field, f"must be between 0 and 100, got {value!r}")
    return pct
