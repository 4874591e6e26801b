from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class QuoteStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def label(self) -> str:
        return _QUOTE_STATUS_LABELS[self]


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING

    @property
    def label(self) -> str:
        return _PAYMENT_STATUS_LABELS[self]


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_QUOTE_STATUS_LABELS = {
    QuoteStatus.PENDING: "Pending",
    QuoteStatus.PAID: "Paid",
    QuoteStatus.CANCELLED: "Cancelled",
    QuoteStatus.EXPIRED: "Expired",
}

_PAYMENT_STATUS_LABELS = {
    PaymentStatus.PENDING: "Pending",
    PaymentStatus.APPROVED: "Approved",
    PaymentStatus.REJECTED: "Rejected",
    PaymentStatus.CANCELLED: "Cancelled",
}


# ---------------------------------------------------------------------------
# Quote models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Customer:
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class ProductSnapshot:
    name: str
    unit_price: int                      # minor currency units, price at quote time
    product_id: Optional[str] = None


@dataclass(frozen=True)
class QuoteItem:
    product: ProductSnapshot
    quantity: int

    @property
    def unit_price(self) -> int:
        return self.product.unit_price

    @property
    def subtotal(self) -> int:
        return self.product.unit_price * self.quantity


@dataclass(frozen=True)
class QuoteTotals:
    subtotal: int
    discount_amount: int
    tax_amount: int
    total: int

    @property
    def after_discount(self) -> int:
        return self.subtotal - self.discount_amount


@dataclass(frozen=True)
class Quote:
    id: str
    quote_number: str
    customer: Customer
    items: Tuple[QuoteItem, ...]
    discount_pct: Any
    tax_pct: Any
    totals: QuoteTotals
    created_at: datetime
    expires_at: datetime
    status: QuoteStatus = QuoteStatus.PENDING
    payment_id: Optional[str] = None
    notes: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def total(self) -> int:
        return self.totals.total

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_aware(now or utcnow()) >= as_aware(self.expires_at)

    def effective_status(self, now: Optional[datetime] = None) -> QuoteStatus:
        """Observed status: a pending quote past its deadline reads as expired."""
        if self.status is QuoteStatus.PENDING and self.is_expired(now):
            return QuoteStatus.EXPIRED
        return self.status


# ---------------------------------------------------------------------------
# Payment models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayFields:
    """Gateway-specific blobs. Carried along, never parsed."""
    qr_code: Optional[str] = None
    qr_code_data: Optional[str] = None
    init_point: Optional[str] = None
    preference_id: Optional[str] = None
    external_id: Optional[str] = None


@dataclass(frozen=True)
class Payment:
    id: str
    quote_id: str
    amount: int
    status: PaymentStatus
    expires_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    gateway: GatewayFields = field(default_factory=GatewayFields)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return as_aware(now or utcnow()) >= as_aware(self.expires_at)


# ---------------------------------------------------------------------------
# Gateway wire results (normalized)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreatedPayment:
    payment_id: str
    amount: int
    expires_at: Optional[datetime]
    gateway: GatewayFields = field(default_factory=GatewayFields)
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentStatusReport:
    payment_id: str
    status: PaymentStatus
    quote_id: Optional[str] = None
    quote_status: Optional[QuoteStatus] = None
    amount: Optional[int] = None
    expires_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    gateway: Optional[GatewayFields] = None
    raw: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Abstract gateway interface
# ---------------------------------------------------------------------------

class PaymentGateway(ABC):
    """Every payment gateway client (mock or HTTP) must implement this interface."""

    @abstractmethod
    async def create_payment(self, quote_id: str) -> CreatedPayment:
        """Create a payment order for the quote's current total."""

    @abstractmethod
    async def get_payment_status(self, payment_id: str) -> PaymentStatusReport:
        """Fetch the current status. Idempotent, safe to call repeatedly."""

    @abstractmethod
    async def cancel_payment(self, payment_id: str) -> None:
        """Best-effort cancellation of the remote order."""


DEFAULT_QUOTE_VALIDITY = timedelta(days=30)


class QuoteRepository(ABC):
    """Where the settlement core reads quotes and records their settlement."""

    @abstractmethod
    def get_quote(self, quote_id: str) -> Optional[Quote]:
        """Return the quote or None."""

    @abstractmethod
    def attach_payment(self, quote_id: str, payment_id: Optional[str]) -> Quote:
        """Associate (or clear) the quote's active payment."""

    @abstractmethod
    def mark_paid(self, quote_id: str, payment_id: str, at: Optional[datetime] = None) -> Quote:
        """Record a successful settlement."""
