"""
Reconciliation poller.

Drives PaymentOrchestrator.refresh() on a fixed interval while a payment is
pending. One refresh is in flight per payment at any time:
- a timer tick that finds a refresh in flight is skipped, not queued
- a manual refresh_now() joins the in-flight refresh instead of issuing another

Every refresh is tagged with the handle's generation. stop() bumps the
generation, so a result arriving after stop() is discarded: no callback fires
and the orchestrator does not apply it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from quotepay.contracts.interfaces import Payment
from quotepay.errors import IntegrationResponseError, PreconditionError, TransientError
from quotepay.settlement.orchestrator import PaymentOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 10_000

Callback = Optional[Callable[..., Any]]


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class PollerHandle:
    def __init__(
        self,
        poller: "ReconciliationPoller",
        payment_id: str,
        interval_ms: int,
        on_update: Callback,
        on_terminal: Callback,
        on_warning: Callback,
        on_expired: Callback,
    ) -> None:
        self.payment_id = payment_id
        self.interval_ms = interval_ms
        self.tick_count = 0
        self.last_checked_at: Optional[datetime] = None

        self._poller = poller
        self._on_update = on_update
        self._on_terminal = on_terminal
        self._on_warning = on_warning
        self._on_expired = on_expired

        self._generation = 0
        self._stopped = False
        self._terminal_fired = False
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._tasks: set = set()

    @property
    def is_running(self) -> bool:
        return not self._stopped

    def stop(self) -> None:
        """Stop polling. Idempotent; late results of an in-flight refresh are discarded."""
        if self._stopped:
            return
        self._stopped = True
        self._generation += 1
        timer = self._timer
        if timer is not None and not timer.done() and timer is not _current_task():
            timer.cancel()
        self._poller._forget(self)
        logger.info("Stopped polling payment %s after %s ticks", self.payment_id, self.tick_count)

    async def refresh_now(self) -> Optional[Payment]:
        """Manual refresh through the same single-flight guard as timer ticks."""
        if self._stopped:
            return None
        if self._in_flight is not None:
            logger.debug("Manual refresh for %s joined the in-flight refresh", self.payment_id)
            return await asyncio.shield(self._in_flight)
        return await self._refresh(self._generation)

    async def wait(self) -> None:
        """Wait until the timer loop and any in-flight refresh have finished."""
        while True:
            pending = {t for t in (self._timer, *self._tasks) if t is not None and not t.done()}
            if not pending:
                return
            await asyncio.wait(pending)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _start(self) -> None:
        self._timer = asyncio.ensure_future(self._run(self._generation))

    async def _run(self, generation: int) -> None:
        interval = self.interval_ms / 1000
        while not self._stopped and generation == self._generation:
            await self._poller._sleep(interval)
            if self._stopped or generation != self._generation:
                break
            if self._in_flight is not None:
                logger.debug("Tick skipped for %s: refresh already in flight", self.payment_id)
                continue
            self.tick_count += 1
            await self._refresh(generation)

    async def _refresh(self, generation: int) -> Optional[Payment]:
        task = asyncio.ensure_future(self._refresh_once(generation))
        self._in_flight = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        # Shielded so stopping the timer never cancels a request mid-flight.
        return await asyncio.shield(task)

    def _is_current(self, generation: int) -> bool:
        return not self._stopped and generation == self._generation

    async def _refresh_once(self, generation: int) -> Optional[Payment]:
        try:
            payment = await self._poller._orchestrator.refresh(
                self.payment_id, accept=lambda: self._is_current(generation)
            )
        except TransientError as exc:
            if self._is_current(generation):
                logger.warning("Payment %s status check failed, will retry next tick: %s", self.payment_id, exc)
                await self._notify(self._on_warning, exc)
            return None
        except IntegrationResponseError as exc:
            if self._is_current(generation):
                logger.error("Payment %s status response rejected: %s", self.payment_id, exc)
                await self._notify(self._on_warning, exc)
            return None
        except PreconditionError as exc:
            logger.error("Payment %s cannot be polled: %s", self.payment_id, exc)
            if self._is_current(generation):
                self.stop()
                await self._notify(self._on_warning, exc)
            return None
        except Exception as exc:
            # The timer keeps running; the next tick tries again.
            logger.exception("Unexpected error refreshing payment %s", self.payment_id)
            if self._is_current(generation):
                await self._notify(self._on_warning, exc)
            return None
        finally:
            if self._in_flight is _current_task():
                self._in_flight = None

        if not self._is_current(generation):
            logger.debug("Discarding late result for payment %s", self.payment_id)
            return None

        self.last_checked_at = self._poller._clock()
        await self._notify(self._on_update, payment)

        if payment.is_terminal:
            self.stop()
            if not self._terminal_fired:
                self._terminal_fired = True
                await self._notify(self._on_terminal, payment)
        elif payment.is_expired(self.last_checked_at):
            logger.info("Payment %s expired while pending", self.payment_id)
            self.stop()
            await self._notify(self._on_expired, payment)
        return payment

    async def _notify(self, callback: Callback, *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if hasattr(result, "__await__"):
                await result
        except Exception:
            logger.exception("Poller callback %r failed for payment %s", callback, self.payment_id)


class ReconciliationPoller:
    def __init__(
        self,
        orchestrator: PaymentOrchestrator,
        interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._orchestrator = orchestrator
        self.interval_ms = interval_ms
        self._sleep = sleep
        # Shares the orchestrator's notion of "now" unless told otherwise.
        self._clock = clock or orchestrator.clock
        self._handles: Dict[str, PollerHandle] = {}

    def start(
        self,
        payment_id: str,
        interval_ms: Optional[int] = None,
        on_update: Callback = None,
        on_terminal: Callback = None,
        *,
        on_warning: Callback = None,
        on_expired: Callback = None,
    ) -> PollerHandle:
        """Start polling a payment. Must be called from a running event loop."""
        interval_ms = interval_ms or self.interval_ms
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")

        existing = self._handles.get(payment_id)
        if existing is not None:
            existing.stop()

        handle = PollerHandle(
            self, payment_id, interval_ms, on_update, on_terminal, on_warning, on_expired
        )
        self._handles[payment_id] = handle
        handle._start()
        logger.info("Polling payment %s every %sms", payment_id, interval_ms)
        return handle

    def handle_for(self, payment_id: str) -> Optional[PollerHandle]:
        return self._handles.get(payment_id)

    def stop_all(self) -> None:
        for handle in list(self._handles.values()):
            handle.stop()

    def _forget(self, handle: PollerHandle) -> None:
        if self._handles.get(handle.payment_id) is handle:
            del self._handles[handle.payment_id]
