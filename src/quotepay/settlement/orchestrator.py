"""
Payment orchestrator.

The single owner of payment state. Consumers (UI, poller) only ever receive
frozen Payment snapshots; every transition goes through this class and only
after the gateway has answered (write-through, never write-before).

State machine (terminal states are sinks):

    pending --approved-->  approved
    pending --rejected-->  rejected
    pending --cancelled or local cancel()--> cancelled

An expired pending payment is reported through expiration(), not a transition.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Optional, Set

from quotepay.contracts.interfaces import (
    GatewayFields,
    Payment,
    PaymentGateway,
    PaymentStatus,
    PaymentStatusReport,
    QuoteRepository,
    QuoteStatus,
    utcnow,
)
from quotepay.contracts.payments import validate_payment_request
from quotepay.errors import (
    IntegrationResponseError,
    PreconditionError,
    TerminalMismatchError,
    TransientError,
)
from quotepay.settlement.expiration import (
    PAYMENT_THRESHOLDS,
    ExpirationStatus,
    UrgencyThresholds,
    time_until,
)

logger = logging.getLogger(__name__)


class PaymentOrchestrator:
    def __init__(
        self,
        gateway: PaymentGateway,
        quotes: QuoteRepository,
        clock: Callable[[], datetime] = utcnow,
        thresholds: UrgencyThresholds = PAYMENT_THRESHOLDS,
    ) -> None:
        self._gateway = gateway
        self._quotes = quotes
        self._clock = clock
        self._thresholds = thresholds
        self._payments: Dict[str, Payment] = {}
        self._active_by_quote: Dict[str, str] = {}
        self._creating: Set[str] = set()

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def get(self, payment_id: str) -> Payment:
        payment = self._payments.get(payment_id)
        if payment is None:
            raise PreconditionError(f"Unknown payment {payment_id}.")
        return payment

    def active_payment_for(self, quote_id: str) -> Optional[Payment]:
        payment_id = self._active_by_quote.get(quote_id)
        if payment_id is None:
            return None
        payment = self._payments[payment_id]
        return None if payment.is_terminal else payment

    def expiration(self, payment_id: str, now: Optional[datetime] = None) -> ExpirationStatus:
        payment = self.get(payment_id)
        return time_until(now or self._clock(), payment.expires_at, self._thresholds)

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #
    async def create(self, quote_id: str) -> Payment:
        errors = validate_payment_request(quote_id)
        if errors:
            raise PreconditionError("; ".join(errors))

        quote = self._quotes.get_quote(quote_id)
        if quote is None:
            raise PreconditionError(f"Quote {quote_id} not found.")

        now = self._clock()
        status = quote.effective_status(now)
        if status is QuoteStatus.EXPIRED:
            raise PreconditionError(f"Quote {quote_id} expired at {quote.expires_at.isoformat()}.")
        if status is not QuoteStatus.PENDING:
            raise PreconditionError(f"Quote {quote_id} is {status.value}; nothing to settle.")

        active = self.active_payment_for(quote_id)
        if active is not None:
            raise PreconditionError(f"Quote {quote_id} already has an active payment {active.id}.")
        if quote_id in self._creating:
            raise PreconditionError(f"A payment for quote {quote_id} is already being created.")

        # Held until the gateway answers so overlapping calls cannot both open an order.
        self._creating.add(quote_id)
        try:
            if quote.payment_id and quote.payment_id not in self._payments:
                await self._adopt_existing(quote_id, quote.payment_id)
            return await self._open_order(quote_id, quote.total, now)
        finally:
            self._creating.discard(quote_id)

    async def _adopt_existing(self, quote_id: str, payment_id: str) -> None:
        """The store knows a payment this instance has not seen, e.g. after a view was reopened."""
        existing = await self.attach(payment_id)
        if not existing.is_terminal:
            raise PreconditionError(f"Quote {quote_id} already has an active payment {payment_id}.")
        if existing.status is PaymentStatus.APPROVED:
            raise PreconditionError(f"Quote {quote_id} was already paid by payment {payment_id}.")

    async def _open_order(self, quote_id: str, total: int, now: datetime) -> Payment:
        created = await self._gateway.create_payment(quote_id)
        if created.amount != total:
            try:
                await self._gateway.cancel_payment(created.payment_id)
            except (TransientError, IntegrationResponseError) as exc:
                logger.warning("Could not cancel mismatched payment %s: %s", created.payment_id, exc)
            raise IntegrationResponseError(
                f"Gateway amount {created.amount} does not match quote total {total}.",
                payload=created.raw,
            )

        payment = Payment(
            id=created.payment_id,
            quote_id=quote_id,
            amount=created.amount,
            status=PaymentStatus.PENDING,
            expires_at=created.expires_at,
            gateway=created.gateway,
            created_at=now,
            updated_at=now,
        )
        self._payments[payment.id] = payment
        self._active_by_quote[quote_id] = payment.id
        self._quotes.attach_payment(quote_id, payment.id)
        logger.info("Payment %s created for quote %s amount=%s", payment.id, quote_id, payment.amount)
        return payment

    async def attach(self, payment_id: str) -> Payment:
        """Adopt an existing gateway payment, e.g. when a view is reopened."""
        if payment_id in self._payments:
            return await self.refresh(payment_id)

        report = await self._gateway.get_payment_status(payment_id)
        if not report.quote_id:
            raise IntegrationResponseError(f"Payment {payment_id} is not linked to a quote.", payload=report.raw)

        now = self._clock()
        payment = Payment(
            id=payment_id,
            quote_id=report.quote_id,
            amount=report.amount or 0,
            status=report.status,
            expires_at=report.expires_at,
            settled_at=report.settled_at,
            gateway=report.gateway or GatewayFields(),
            created_at=now,
            updated_at=now,
        )
        self._payments[payment_id] = payment
        if not payment.is_terminal:
            self._active_by_quote[payment.quote_id] = payment_id
        elif payment.status is PaymentStatus.APPROVED:
            self._quotes.mark_paid(payment.quote_id, payment_id, payment.settled_at or now)
        logger.info("Attached payment %s (%s) for quote %s", payment_id, payment.status.value, payment.quote_id)
        return payment

    async def refresh(self, payment_id: str, accept: Optional[Callable[[], bool]] = None) -> Payment:
        """
        Fetch the gateway status and apply it.

        Raises TransientError (with .payment set to the unchanged payment) when
        the gateway cannot be reached. `accept` is checked once the response
        arrives; when it returns False the response is discarded.
        """
        payment = self.get(payment_id)
        if payment.is_terminal:
            return payment

        try:
            report = await self._gateway.get_payment_status(payment_id)
        except TransientError as exc:
            exc.payment = self._payments[payment_id]
            logger.warning("Status check for payment %s failed transiently: %s", payment_id, exc)
            raise

        if accept is not None and not accept():
            logger.debug("Discarding stale status %s for payment %s", report.status.value, payment_id)
            return self._payments[payment_id]

        return self._apply(payment_id, report)

    async def cancel(self, payment_id: str) -> None:
        payment = self.get(payment_id)
        if payment.is_terminal:
            logger.info("Cancel ignored: payment %s already %s", payment_id, payment.status.value)
            return

        now = self._clock()
        self._payments[payment_id] = replace(payment, status=PaymentStatus.CANCELLED, updated_at=now)
        self._release(payment)
        logger.info("Payment %s cancelled locally", payment_id)

        try:
            await self._gateway.cancel_payment(payment_id)
        except (TransientError, IntegrationResponseError) as exc:
            # Best effort: the local cancellation stands either way.
            logger.warning("Gateway cancel for payment %s failed: %s", payment_id, exc)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _apply(self, payment_id: str, report: PaymentStatusReport) -> Payment:
        current = self._payments[payment_id]

        if current.is_terminal:
            # A local cancel() landed while this fetch was in flight.
            if report.status is not current.status:
                mismatch = TerminalMismatchError(payment_id, current.status.value, report.status.value)
                logger.warning("%s", mismatch)
            return current

        if report.status is current.status:
            return current

        now = self._clock()
        updated = replace(
            current,
            status=report.status,
            settled_at=(report.settled_at or now) if report.status is PaymentStatus.APPROVED else None,
            updated_at=now,
        )
        self._payments[payment_id] = updated
        logger.info("Payment %s: %s -> %s", payment_id, current.status.value, updated.status.value)

        if updated.status is PaymentStatus.APPROVED:
            self._quotes.mark_paid(updated.quote_id, payment_id, updated.settled_at)
        if updated.is_terminal:
            self._release(updated)
        return updated

    def _release(self, payment: Payment) -> None:
        if self._active_by_quote.get(payment.quote_id) == payment.id:
            del self._active_by_quote[payment.quote_id]
            if payment.status is not PaymentStatus.APPROVED:
                self._quotes.attach_payment(payment.quote_id, None)
