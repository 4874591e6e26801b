"""
quotepay: quote-to-payment settlement core.

Builds priced quotes, turns them into payment orders at an external gateway
and reconciles those orders until they settle.
"""

from .contracts import (
    Customer,
    Payment,
    PaymentGateway,
    PaymentStatus,
    ProductSnapshot,
    Quote,
    QuoteItem,
    QuoteStatus,
    QuoteTotals,
    Urgency,
)
from .errors import (
    IntegrationResponseError,
    PreconditionError,
    SettlementError,
    TerminalMismatchError,
    TransientError,
    ValidationError,
)
from .settlement import (
    PaymentOrchestrator,
    ReconciliationPoller,
    compute_totals,
    payment_time_left,
    quote_time_left,
)

__all__ = [
    "Customer", "Payment", "PaymentGateway", "PaymentStatus", "ProductSnapshot",
    "Quote", "QuoteItem", "QuoteStatus", "QuoteTotals", "Urgency",
    "IntegrationResponseError", "PreconditionError", "SettlementError",
    "TerminalMismatchError", "TransientError", "ValidationError",
    "PaymentOrchestrator", "ReconciliationPoller", "compute_totals",
    "payment_time_left", "quote_time_left",
]
