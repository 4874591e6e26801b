from datetime import datetime, timezone

import httpx
import pytest

from quotepay.contracts import PaymentStatus, QuoteStatus
from quotepay.errors import IntegrationResponseError
from quotepay.integrations.clients.real_http.api_client import ApiClient
from quotepay.integrations.clients.real_http.payments import HttpPaymentGateway
from quotepay.integrations.policy.response_wrappers import (
    normalize_create_payment_response,
    normalize_payment_status_response,
    unwrap_envelope,
)


class FakeBackend:
    """Routes requests to canned envelopes and records them."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append((request.method, request.url.path))
        status, data = self.routes[(request.method, request.url.path)]
        return httpx.Response(status, json={"success": True, "message": "", "data": data})


def _gateway(routes, amount_exponent=0):
    backend = FakeBackend(routes)
    api = ApiClient(
        base_url="https://backend.test/api",
        token_provider=lambda: "t",
        transport=httpx.MockTransport(backend),
    )
    return HttpPaymentGateway(api, amount_exponent=amount_exponent), backend


@pytest.mark.asyncio
async def test_create_payment():
    gateway, backend = _gateway(
        {
            ("POST", "/api/payments/create"): (
                201,
                {
                    "paymentId": "PAY-9",
                    "amount": 2723,
                    "qrCode": "data:image/png;base64,AAA",
                    "qrCodeData": "000201...",
                    "initPoint": "https://pay.test/checkout/PAY-9",
                    "preferenceId": "PREF-9",
                    "expiresAt": "2024-03-01T12:30:00Z",
                },
            )
        }
    )

    created = await gateway.create_payment("q-1")

    assert created.payment_id == "PAY-9"
    assert created.amount == 2723
    assert created.expires_at == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
    assert created.gateway.init_point == "https://pay.test/checkout/PAY-9"
    assert backend.requests == [("POST", "/api/payments/create")]


@pytest.mark.asyncio
async def test_payment_status_with_quote():
    gateway, _ = _gateway(
        {
            ("GET", "/api/payments/PAY-9/status"): (
                200,
                {
                    "payment": {
                        "_id": "PAY-9",
                        "status": "approved",
                        "amount": 2723,
                        "quote": "q-1",
                        "paidAt": "2024-03-01T12:10:00Z",
                        "mercadopagoId": "MP-1",
                    },
                    "quote": {"_id": "q-1", "status": "paid"},
                },
            )
        }
    )

    report = await gateway.get_payment_status("PAY-9")

    assert report.status is PaymentStatus.APPROVED
    assert report.quote_id == "q-1"
    assert report.quote_status is QuoteStatus.PAID
    assert report.settled_at == datetime(2024, 3, 1, 12, 10, tzinfo=timezone.utc)
    assert report.gateway.external_id == "MP-1"


@pytest.mark.asyncio
async def test_cancel_payment_posts_to_cancel_route():
    gateway, backend = _gateway({("POST", "/api/payments/PAY-9/cancel"): (200, None)})
    await gateway.cancel_payment("PAY-9")
    assert backend.requests == [("POST", "/api/payments/PAY-9/cancel")]


@pytest.mark.asyncio
async def test_amount_exponent_scales_major_units():
    gateway, _ = _gateway(
        {("POST", "/api/payments/create"): (201, {"paymentId": "PAY-1", "amount": "27.23"})},
        amount_exponent=2,
    )
    created = await gateway.create_payment("q-1")
    assert created.amount == 2723


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("pending", PaymentStatus.PENDING),
        ("in_process", PaymentStatus.PENDING),
        ("AUTHORIZED", PaymentStatus.PENDING),
        ("approved", PaymentStatus.APPROVED),
        ("rejected", PaymentStatus.REJECTED),
        ("canceled", PaymentStatus.CANCELLED),
        ("cancelled", PaymentStatus.CANCELLED),
    ],
)
def test_status_mapping(raw, expected):
    report = normalize_payment_status_response({"status": raw}, fallback_payment_id="PAY-1")
    assert report.status is expected
    assert report.payment_id == "PAY-1"


@pytest.mark.parametrize("raw", ["refunded", "charged_back", "mystery", ""])
def test_unknown_or_reversal_statuses_are_refused(raw):
    with pytest.raises(IntegrationResponseError):
        normalize_payment_status_response({"status": raw}, fallback_payment_id="PAY-1")


def test_create_response_requires_payment_id_and_amount():
    with pytest.raises(IntegrationResponseError):
        normalize_create_payment_response({"amount": 100})
    with pytest.raises(IntegrationResponseError):
        normalize_create_payment_response({"paymentId": "PAY-1"})
    with pytest.raises(IntegrationResponseError):
        normalize_create_payment_response({"paymentId": "PAY-1", "amount": -5})


def test_envelope_must_be_an_object():
    with pytest.raises(IntegrationResponseError):
        unwrap_envelope(["not", "an", "object"])
    with pytest.raises(IntegrationResponseError):
        unwrap_envelope({"message": "no success flag"})
