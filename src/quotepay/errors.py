"""
Settlement error taxonomy.

- ValidationError: bad input to the quote calculator. Never retried.
- PreconditionError: payment requested for a quote that cannot be settled.
- TransientError: network/timeout talking to the gateway. Retried by the API
  client, then surfaced as a recoverable warning.
- TerminalMismatchError: gateway contradicts a terminal payment state. Logged
  and ignored.
- IntegrationResponseError: the gateway answered with something we cannot use.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SettlementError(Exception):
    """Base class for every error raised by the settlement core."""


class ValidationError(SettlementError, ValueError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class PreconditionError(SettlementError):
    pass


class TransientError(SettlementError):
    def __init__(self, message: str, *, payment: Any = None, attempts: int = 0) -> None:
        super().__init__(message)
        # Last known payment, unchanged by the failed call.
        self.payment = payment
        self.attempts = attempts


class TerminalMismatchError(SettlementError):
    def __init__(self, payment_id: str, current: Any, reported: Any) -> None:
        super().__init__(
            f"Payment {payment_id} is already {current}; ignoring gateway status {reported}."
        )
        self.payment_id = payment_id
        self.current = current
        self.reported = reported


class IntegrationResponseError(SettlementError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.payload = payload or {}
        self.status_code = status_code
