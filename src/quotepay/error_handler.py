"""Error handling helpers for the settlement workflow."""
from typing import Any, Dict
import logging

from quotepay.errors import (
    IntegrationResponseError,
    PreconditionError,
    SettlementError,
    TerminalMismatchError,
    TransientError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            "error": str(exc),
            "error_type": type(exc).__name__,
            "context": context or {},
        }

        if isinstance(exc, ValidationError):
            logger.warning("Quote input rejected (%s): %s", exc.field, exc.message)
            metadata["field"] = exc.field
            return self._payload(f"Please check {exc.field}: {exc.message}.", False, False, metadata)

        if isinstance(exc, PreconditionError):
            logger.warning("Settlement precondition failed: %s", exc)
            return self._payload(str(exc), False, False, metadata)

        if isinstance(exc, TransientError):
            logger.warning("Payment gateway unreachable after %s attempts: %s", exc.attempts, exc)
            metadata["attempts"] = exc.attempts
            payment = exc.payment
            if payment is not None:
                metadata["payment_id"] = payment.id
                metadata["payment_status"] = payment.status.value
            return self._payload(
                "We could not reach the payment service. Showing the last known status; we will keep checking.",
                True,
                True,
                metadata,
            )

        if isinstance(exc, TerminalMismatchError):
            logger.warning("%s", exc)
            metadata["payment_id"] = exc.payment_id
            return self._payload(f"Payment is already {exc.current}.", False, False, metadata)

        if isinstance(exc, IntegrationResponseError):
            logger.error("Unusable payment service response: %s", exc)
            if exc.status_code is not None:
                metadata["status_code"] = exc.status_code
            return self._payload(
                "The payment service returned an unexpected response. Please try again later.",
                False,
                True,
                metadata,
            )

        if isinstance(exc, SettlementError):
            logger.error("Settlement error: %s", exc)
        else:
            logger.error("Unhandled exception in settlement workflow: %s", exc, exc_info=True)
        return self._payload(
            "An internal error occurred while processing your request. Please try again later.",
            False,
            True,
            metadata,
        )

    @staticmethod
    def _payload(message: str, retryable: bool, fallback: bool, metadata: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "message": message,
            "retryable": retryable,
            "fallback": fallback,
            "metadata": metadata,
        }
