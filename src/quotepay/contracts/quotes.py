"""
Quote contract helpers: request validation and quote numbering.
"""

import random
import re
from datetime import datetime
from typing import Any, Iterable, List, Optional

from .interfaces import Customer

MAX_QUANTITY = 1000
MAX_NOTES_LENGTH = 500

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")


def validate_quote_request(
    customer: Customer,
    items: Iterable[Any],
    discount_pct: Any = 0,
    tax_pct: Any = 0,
    notes: Optional[str] = None,
) -> List[str]:
    """
    Return a list of validation errors for a quote draft.
    Empty list means the request is valid.

    This is the form-level check. compute_totals() enforces the arithmetic
    constraints on its own and raises instead of returning messages.
    """
    errors: List[str] = []

    if not customer.name or len(customer.name.strip()) < 2:
        errors.append("customer name is required")
    if customer.email and not _EMAIL_RE.match(customer.email):
        errors.append(f"customer email '{customer.email}' is not valid")
    if customer.phone and not _PHONE_RE.match(re.sub(r"[\s\-()]", "", customer.phone)):
        errors.append(f"customer phone '{customer.phone}' is not valid")

    items = list(items or [])
    if not items:
        errors.append("at least one item is required")
    for index, item in enumerate(items):
        quantity = getattr(item, "quantity", None)
        if quantity is None and isinstance(item, dict):
            quantity = item.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            errors.append(f"items[{index}].quantity must be greater than 0")
        elif quantity > MAX_QUANTITY:
            errors.append(f"items[{index}].quantity must be at most {MAX_QUANTITY}")

    for label, value in (("discount_pct", discount_pct), ("tax_pct", tax_pct)):
        try:
            in_range = 0 <= float(value) <= 100
        except (TypeError, ValueError):
            in_range = False
        if not in_range:
            errors.append(f"{label} must be between 0 and 100")

    if notes and len(notes) > MAX_NOTES_LENGTH:
        errors.append(f"notes must be at most {MAX_NOTES_LENGTH} characters")

    return errors


def generate_quote_number(now: datetime) -> str:
    """Q-YYYYMMDD-NNNN"""
    return f"Q-{now:%Y%m%d}-{random.randint(0, 9999):04d}"
