"""
Contracts (data models).

This folder defines the shapes the settlement core works with:
- Quote / QuoteItem / QuoteTotals
- Payment and the normalized gateway results
- the PaymentGateway interface implemented by mock and real HTTP clients

Flows rely on these stable models, never on ad-hoc dicts coming off the wire.
"""

from .interfaces import (
    CreatedPayment,
    Customer,
    GatewayFields,
    Payment,
    PaymentGateway,
    PaymentStatus,
    PaymentStatusReport,
    ProductSnapshot,
    Quote,
    QuoteItem,
    QuoteStatus,
    QuoteTotals,
    Urgency,
)
from .payments import TERMINAL_STATUSES, is_terminal_status, validate_payment_request
from .quotes import generate_quote_number, validate_quote_request

__all__ = [
    "CreatedPayment", "Customer", "GatewayFields", "Payment", "PaymentGateway",
    "PaymentStatus", "PaymentStatusReport", "ProductSnapshot", "Quote",
    "QuoteItem", "QuoteStatus", "QuoteTotals", "Urgency",
    "TERMINAL_STATUSES", "is_terminal_status", "validate_payment_request",
    "generate_quote_number", "validate_quote_request",
]
