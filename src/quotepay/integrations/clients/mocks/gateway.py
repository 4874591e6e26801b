"""
Payment gateway: MOCK client.

⚠️  This is a mock implementation for development and testing.
    It keeps payments in memory and never touches the network.
    Status sequences and transient failures can be scripted per payment so
    polling scenarios are reproducible.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, Iterable, Optional

from quotepay.contracts.interfaces import (
    CreatedPayment,
    GatewayFields,
    PaymentGateway,
    PaymentStatus,
    PaymentStatusReport,
    utcnow,
)
from quotepay.contracts.payments import is_terminal_status
from quotepay.database.quotes import InMemoryQuoteStore
from quotepay.errors import IntegrationResponseError, TransientError

logger = logging.getLogger(__name__)


class MockPaymentGateway(PaymentGateway):
    """
    Mock gateway backed by an InMemoryQuoteStore.

    Parameters
    ----------
    quote_store : InMemoryQuoteStore
        Source of quote totals for created payments.
    payment_ttl : timedelta or None
        Lifetime of a payment order. None means no deadline. Default 30 minutes.
    clock : callable
        Returns the current time. Injected for deterministic tests.
    """

    def __init__(
        self,
        quote_store: InMemoryQuoteStore,
        payment_ttl: Optional[timedelta] = timedelta(minutes=30),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._quotes = quote_store
        self._ttl = payment_ttl
        self._clock = clock

        # In-memory stores (reset on restart)
        self._statuses: Dict[str, PaymentStatus] = {}
        self._quote_of: Dict[str, str] = {}
        self._amounts: Dict[str, int] = {}
        self._expires: Dict[str, Optional[datetime]] = {}
        self._scripts: Dict[str, Deque[PaymentStatus]] = {}
        self._failures: Dict[str, int] = {"create": 0, "status": 0, "cancel": 0}

        # When set, status calls wait on this event before answering.
        self.status_gate: Optional[asyncio.Event] = None

        self.create_calls = 0
        self.status_calls: Dict[str, int] = {}
        self.cancel_calls: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Scripting helpers
    # ------------------------------------------------------------------

    def script_statuses(self, payment_id: str, statuses: Iterable[PaymentStatus]) -> None:
        """Answer the next status calls with these statuses, in order; the last one repeats."""
        self._scripts[payment_id] = deque(PaymentStatus(s) for s in statuses)

    def set_status(self, payment_id: str, status: PaymentStatus) -> None:
        self._statuses[payment_id] = PaymentStatus(status)

    def fail_next(self, times: int = 1, operation: str = "status") -> None:
        """Make the next `times` calls of `operation` raise TransientError."""
        if operation not in self._failures:
            raise ValueError(f"Unknown operation '{operation}'")
        self._failures[operation] += times

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _maybe_fail(self, operation: str) -> None:
        if self._failures[operation] > 0:
            self._failures[operation] -= 1
            logger.info("[GATEWAY MOCK] Simulating timeout for %s", operation)
            raise TransientError(f"Simulated timeout during {operation}", attempts=1)

    def _require(self, payment_id: str) -> PaymentStatus:
        if payment_id not in self._statuses:
            raise IntegrationResponseError(f"Payment {payment_id} not found.", status_code=404)
        return self._statuses[payment_id]

    # ------------------------------------------------------------------
    # PaymentGateway
    # ------------------------------------------------------------------

    async def create_payment(self, quote_id: str) -> CreatedPayment:
        self.create_calls += 1
        self._maybe_fail("create")

        quote = self._quotes.get_quote(quote_id)
        if quote is None:
            raise IntegrationResponseError(f"Quote {quote_id} not found.", status_code=404)

        payment_id = f"PAY-{uuid.uuid4().hex[:12].upper()}"
        expires_at = self._clock() + self._ttl if self._ttl is not None else None

        self._statuses[payment_id] = PaymentStatus.PENDING
        self._quote_of[payment_id] = quote_id
        self._amounts[payment_id] = quote.total
        self._expires[payment_id] = expires_at

        logger.info("[GATEWAY MOCK] Created payment %s for quote %s amount=%s", payment_id, quote_id, quote.total)
        return CreatedPayment(
            payment_id=payment_id,
            amount=quote.total,
            expires_at=expires_at,
            gateway=GatewayFields(
                qr_code=f"data:image/png;base64,MOCK-{payment_id}",
                qr_code_data=f"https://mock-gateway.local/pay/{payment_id}",
                init_point=f"https://mock-gateway.local/checkout/{payment_id}",
                preference_id=f"PREF-{payment_id}",
            ),
        )

    async def get_payment_status(self, payment_id: str) -> PaymentStatusReport:
        self.status_calls[payment_id] = self.status_calls.get(payment_id, 0) + 1
        if self.status_gate is not None:
            await self.status_gate.wait()
        self._maybe_fail("status")

        status = self._require(payment_id)
        script = self._scripts.get(payment_id)
        if script:
            status = script.popleft() if len(script) > 1 else script[0]
            self._statuses[payment_id] = status

        quote = self._quotes.get_quote(self._quote_of.get(payment_id, ""))
        return PaymentStatusReport(
            payment_id=payment_id,
            status=status,
            quote_id=self._quote_of.get(payment_id),
            quote_status=quote.status if quote else None,
            amount=self._amounts.get(payment_id),
            expires_at=self._expires.get(payment_id),
            settled_at=self._clock() if status is PaymentStatus.APPROVED else None,
        )

    async def cancel_payment(self, payment_id: str) -> None:
        self.cancel_calls[payment_id] = self.cancel_calls.get(payment_id, 0) + 1
        self._maybe_fail("cancel")

        status = self._require(payment_id)
        if not is_terminal_status(status):
            self._statuses[payment_id] = PaymentStatus.CANCELLED
            self._scripts.pop(payment_id, None)
        logger.info("[GATEWAY MOCK] Cancel requested for %s (was %s)", payment_id, status.value)
