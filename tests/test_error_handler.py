from quotepay.contracts import Payment, PaymentStatus
from quotepay.error_handler import ErrorHandler
from quotepay.errors import (
    IntegrationResponseError,
    PreconditionError,
    TerminalMismatchError,
    TransientError,
    ValidationError,
)


def test_handle_exception_returns_payload():
    eh = ErrorHandler()
    out = eh.handle_exception(Exception("boom"), context={"k": "v"})
    assert out["fallback"] is True
    assert out["retryable"] is False
    assert "internal error" in out["message"].lower()
    assert "boom" in out["metadata"]["error"]
    assert out["metadata"]["context"] == {"k": "v"}


def test_validation_error_names_the_field():
    out = ErrorHandler().handle_exception(ValidationError("discount_pct", "must be between 0 and 100"))
    assert out["metadata"]["field"] == "discount_pct"
    assert "discount_pct" in out["message"]
    assert out["retryable"] is False


def test_precondition_error_is_shown_as_is():
    out = ErrorHandler().handle_exception(PreconditionError("Quote q-1 expired."))
    assert out["message"] == "Quote q-1 expired."
    assert out["fallback"] is False


def test_transient_error_is_retryable_and_keeps_last_status():
    payment = Payment(id="PAY-1", quote_id="q-1", amount=100, status=PaymentStatus.PENDING)
    out = ErrorHandler().handle_exception(TransientError("timeout", payment=payment, attempts=3))
    assert out["retryable"] is True
    assert out["metadata"]["attempts"] == 3
    assert out["metadata"]["payment_status"] == "pending"


def test_terminal_mismatch_and_integration_errors():
    mismatch = ErrorHandler().handle_exception(TerminalMismatchError("PAY-1", "cancelled", "approved"))
    assert mismatch["message"] == "Payment is already cancelled."

    bad = ErrorHandler().handle_exception(IntegrationResponseError("nope", status_code=422))
    assert bad["metadata"]["status_code"] == 422
    assert bad["fallback"] is True
