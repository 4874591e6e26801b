"""
Payment contract helpers.

Used by:
- integrations/clients/mocks/gateway.py (terminal check when a cancel arrives)
- settlement/orchestrator.py (request validation before create)

is_terminal_status also accepts raw status strings, e.g. from a UI route.
"""

from typing import List, Optional, Union

from .interfaces import PaymentStatus


TERMINAL_STATUSES = frozenset(
    {PaymentStatus.APPROVED, PaymentStatus.REJECTED, PaymentStatus.CANCELLED}
)


def is_terminal_status(status: Union[PaymentStatus, str]) -> bool:
    """Return True if the payment has reached a final, non-changeable state."""
    return PaymentStatus(status) in TERMINAL_STATUSES


def validate_payment_request(quote_id: Optional[str]) -> List[str]:
    """
    Return a list of validation errors.
    Empty list means the request is valid.
    """
    errors: List[str] = []
    if not quote_id or not str(quote_id).strip():
        errors.append("quote_id is required")
    return errors
