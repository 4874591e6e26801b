"""
Lightweight in-memory quote store.

Stands in for the backend's quote storage so the settlement core can run and
be tested without a server. It is NOT intended for production use.

Totals are always produced by compute_totals(); a failed recomputation leaves
the stored quote untouched.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from quotepay.contracts.interfaces import (
    DEFAULT_QUOTE_VALIDITY,
    Customer,
    Quote,
    QuoteItem,
    QuoteRepository,
    QuoteStatus,
    utcnow,
)
from quotepay.contracts.quotes import generate_quote_number, validate_quote_request
from quotepay.errors import PreconditionError, ValidationError
from quotepay.settlement.calculator import compute_totals

logger = logging.getLogger(__name__)


class InMemoryQuoteStore(QuoteRepository):
    def __init__(
        self,
        validity: timedelta = DEFAULT_QUOTE_VALIDITY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.validity = validity
        self._clock = clock
        self._quotes: Dict[str, Quote] = {}

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def get_quote(self, quote_id: str) -> Optional[Quote]:
        return self._quotes.get(quote_id)

    def list_quotes(self, status: Optional[QuoteStatus] = None, now: Optional[datetime] = None) -> List[Quote]:
        quotes = sorted(self._quotes.values(), key=lambda q: q.created_at, reverse=True)
        if status is None:
            return quotes
        return [q for q in quotes if q.effective_status(now or self._clock()) is status]

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def create_quote(
        self,
        customer: Customer,
        items: Iterable[QuoteItem],
        discount_pct: Any = 0,
        tax_pct: Any = 0,
        *,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        validity: Optional[timedelta] = None,
    ) -> Quote:
        items = tuple(items)
        totals = compute_totals(items, discount_pct, tax_pct)

        errors = validate_quote_request(customer, items, discount_pct, tax_pct, notes)
        if errors:
            raise ValidationError("quote", "; ".join(errors))

        validity = validity or self.validity
        if validity <= timedelta(0):
            raise ValidationError("validity", "must be positive")

        created_at = now or self._clock()
        quote = Quote(
            id=str(uuid.uuid4()),
            quote_number=generate_quote_number(created_at),
            customer=customer,
            items=items,
            discount_pct=discount_pct,
            tax_pct=tax_pct,
            totals=totals,
            created_at=created_at,
            expires_at=created_at + validity,
            notes=notes,
            updated_at=created_at,
        )
        self._quotes[quote.id] = quote
        logger.info("Created quote %s (%s) total=%s", quote.id, quote.quote_number, totals.total)
        return quote

    def update_quote(
        self,
        quote_id: str,
        *,
        items: Optional[Iterable[QuoteItem]] = None,
        discount_pct: Any = None,
        tax_pct: Any = None,
    ) -> Quote:
        quote = self._require(quote_id)
        if quote.status is not QuoteStatus.PENDING or quote.payment_id:
            raise PreconditionError(f"Quote {quote_id} can no longer be edited.")

        new_items = tuple(items) if items is not None else quote.items
        new_discount = quote.discount_pct if discount_pct is None else discount_pct
        new_tax = quote.tax_pct if tax_pct is None else tax_pct

        # Compute before writing so a ValidationError leaves the old totals in place.
        totals = compute_totals(new_items, new_discount, new_tax)

        updated = replace(
            quote,
            items=new_items,
            discount_pct=new_discount,
            tax_pct=new_tax,
            totals=totals,
            updated_at=self._clock(),
        )
        self._quotes[quote_id] = updated
        return updated

    def cancel_quote(self, quote_id: str) -> Quote:
        quote = self._require(quote_id)
        if quote.status is not QuoteStatus.PENDING:
            raise PreconditionError(f"Quote {quote_id} is {quote.status.value} and cannot be cancelled.")
        if quote.payment_id:
            raise PreconditionError(
                f"Quote {quote_id} has payment {quote.payment_id} in progress; cancel the payment first."
            )
        return self._save(replace(quote, status=QuoteStatus.CANCELLED, updated_at=self._clock()))

    def attach_payment(self, quote_id: str, payment_id: Optional[str]) -> Quote:
        quote = self._require(quote_id)
        return self._save(replace(quote, payment_id=payment_id, updated_at=self._clock()))

    def mark_paid(self, quote_id: str, payment_id: str, at: Optional[datetime] = None) -> Quote:
        quote = self._require(quote_id)
        if quote.status is QuoteStatus.PAID:
            return quote
        logger.info("Quote %s paid by payment %s", quote_id, payment_id)
        return self._save(
            replace(quote, status=QuoteStatus.PAID, payment_id=payment_id, updated_at=at or self._clock())
        )

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _require(self, quote_id: str) -> Quote:
        quote = self._quotes.get(quote_id)
        if quote is None:
            raise PreconditionError(f"Quote {quote_id} not found.")
        return quote

    def _save(self, quote: Quote) -> Quote:
        self._quotes[quote.id] = quote
        return quote
