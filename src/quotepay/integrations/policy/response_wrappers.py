from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from quotepay.contracts.interfaces import PaymentStatus, QuoteStatus
from quotepay.errors import IntegrationResponseError, ValidationError
from quotepay.settlement.calculator import to_minor_units


class ApiEnvelopeModel(BaseModel):
    success: bool
    message: str = ""
    data: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None


class CreatePaymentResponseModel(BaseModel):
    payment_id: str
    amount: int
    expires_at: Optional[datetime] = None
    qr_code: Optional[str] = None
    qr_code_data: Optional[str] = None
    init_point: Optional[str] = None
    preference_id: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class PaymentStatusResponseModel(BaseModel):
    payment_id: str
    status: PaymentStatus
    quote_id: Optional[str] = None
    quote_status: Optional[QuoteStatus] = None
    amount: Optional[int] = None
    expires_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    qr_code: Optional[str] = None
    qr_code_data: Optional[str] = None
    init_point: Optional[str] = None
    preference_id: Optional[str] = None
    external_id: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


def unwrap_envelope(raw: Any, *, status_code: Optional[int] = None) -> Any:
    """Return `data` from a {success, message, data} envelope or raise."""
    if not isinstance(raw, dict):
        raise IntegrationResponseError("Gateway response is not a JSON object.", status_code=status_code)
    envelope = _build_model(ApiEnvelopeModel, raw, raw)
    if not envelope.success:
        raise IntegrationResponseError(
            envelope.message or "Gateway reported failure.",
            payload=raw,
            status_code=status_code,
        )
    return envelope.data


def normalize_create_payment_response(
    raw: Dict[str, Any],
    *,
    amount_exponent: int = 0,
) -> CreatePaymentResponseModel:
    payment_id = _first_non_empty(raw, "paymentId", "payment_id", "id", "_id")
    amount = _coerce_amount(_first_non_empty(raw, "amount"), "payment amount", amount_exponent)

    return _build_model(
        CreatePaymentResponseModel,
        {
            "payment_id": str(payment_id),
            "amount": amount,
            "expires_at": _first_non_empty(raw, "expiresAt", "expires_at", default=None),
            "qr_code": _first_non_empty(raw, "qrCode", "qr_code", default=None),
            "qr_code_data": _first_non_empty(raw, "qrCodeData", "qr_code_data", default=None),
            "init_point": _first_non_empty(raw, "initPoint", "init_point", default=None),
            "preference_id": _first_non_empty(raw, "preferenceId", "preference_id", default=None),
            "raw": raw,
        },
        raw,
    )


def normalize_payment_status_response(
    raw: Dict[str, Any],
    *,
    fallback_payment_id: str,
    amount_exponent: int = 0,
) -> PaymentStatusResponseModel:
    # GET /payments/{id}/status answers {payment, quote}; a bare payment is accepted too.
    payment = raw.get("payment") if isinstance(raw.get("payment"), dict) else raw
    quote = raw.get("quote") if isinstance(raw.get("quote"), dict) else {}

    payment_id = _first_non_empty(payment, "id", "_id", "paymentId", default=fallback_payment_id)
    status = _map_payment_status(_first_non_empty(payment, "status", "payment_status"))
    amount = _first_non_empty(payment, "amount", default=None)
    quote_ref = _first_non_empty(payment, "quote", "quoteId", default=None)
    if isinstance(quote_ref, dict):
        quote_ref = _first_non_empty(quote_ref, "id", "_id", default=None)
    quote_status = _first_non_empty(quote, "status", default=None)

    return _build_model(
        PaymentStatusResponseModel,
        {
            "payment_id": str(payment_id),
            "status": status,
            "quote_id": str(quote_ref or _first_non_empty(quote, "id", "_id", default="")) or None,
            "quote_status": _map_quote_status(quote_status) if quote_status is not None else None,
            "amount": _coerce_amount(amount, "payment amount", amount_exponent) if amount is not None else None,
            "expires_at": _first_non_empty(payment, "expiresAt", "expires_at", default=None),
            "settled_at": _first_non_empty(payment, "paidAt", "settledAt", "paid_at", default=None),
            "qr_code": _first_non_empty(payment, "qrCode", "qr_code", default=None),
            "qr_code_data": _first_non_empty(payment, "qrCodeData", "qrData", default=None),
            "init_point": _first_non_empty(payment, "initPoint", "paymentUrl", default=None),
            "preference_id": _first_non_empty(payment, "preferenceId", default=None),
            "external_id": _first_non_empty(payment, "mercadopagoId", "externalId", "transaction_id", default=None),
            "raw": raw,
        },
        raw,
    )


_MISSING = object()


def _first_non_empty(data: Dict[str, Any], *keys: str, default: Any = _MISSING) -> Any:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    if default is not _MISSING:
        return default
    raise IntegrationResponseError(f"Missing required field. Checked keys: {', '.join(keys)}", payload=data)


def _coerce_amount(value: Any, label: str, exponent: int) -> int:
    try:
        amount = to_minor_units(value, exponent)
    except ValidationError as exc:
        raise IntegrationResponseError(f"Invalid {label}: {value!r}") from exc
    if amount < 0:
        raise IntegrationResponseError(f"{label.capitalize()} must be >= 0; got {amount}.")
    return amount


def _map_payment_status(raw_status: Any) -> PaymentStatus:
    value = str(raw_status or "").strip().lower()
    mapping = {
        "pending": PaymentStatus.PENDING,
        "in_process": PaymentStatus.PENDING,
        "authorized": PaymentStatus.PENDING,
        "in_mediation": PaymentStatus.PENDING,
        "approved": PaymentStatus.APPROVED,
        "rejected": PaymentStatus.REJECTED,
        "cancelled": PaymentStatus.CANCELLED,
        "canceled": PaymentStatus.CANCELLED,
    }
    if value in {"refunded", "charged_back"}:
        # Post-settlement reversals are handled by the backend, not this state machine.
        raise IntegrationResponseError(f"Payment reversal status '{value}' is not supported.")
    if value not in mapping:
        raise IntegrationResponseError(f"Unsupported payment status '{value}'.")
    return mapping[value]


def _map_quote_status(raw_status: Any) -> QuoteStatus:
    value = str(raw_status or "").strip().lower()
    try:
        return QuoteStatus(value)
    except ValueError as exc:
        raise IntegrationResponseError(f"Unsupported quote status '{value}'.") from exc


def _build_model(model_type, payload: Dict[str, Any], raw: Dict[str, Any]):
    try:
        return model_type(**payload)
    except PydanticValidationError as exc:
        raise IntegrationResponseError(f"Response validation failed: {exc}", payload=raw) from exc
