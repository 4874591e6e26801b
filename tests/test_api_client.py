import json

import httpx
import pytest

from quotepay.errors import IntegrationResponseError, TransientError
from quotepay.integrations.clients.real_http.api_client import ApiClient

BASE_URL = "https://backend.test/api"


def _client(handler, sleeps=None, **kwargs):
    async def fake_sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    kwargs.setdefault("token_provider", lambda: "secret-token")
    return ApiClient(
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_post_unwraps_envelope_and_sends_bearer_token():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"success": True, "message": "ok", "data": {"paymentId": "PAY-1"}})

    data = await _client(handler).post("/payments/create", {"quoteId": "q-1"})

    assert data == {"paymentId": "PAY-1"}
    assert seen["url"] == f"{BASE_URL}/payments/create"
    assert seen["auth"] == "Bearer secret-token"
    assert seen["body"] == {"quoteId": "q-1"}


@pytest.mark.asyncio
async def test_async_token_provider_and_missing_token():
    headers = []

    def handler(request):
        headers.append(request.headers.get("Authorization"))
        return httpx.Response(200, json={"success": True, "data": None})

    async def token():
        return "async-token"

    await _client(handler, token_provider=token).get("/ping")
    await _client(handler, token_provider=lambda: None).get("/ping")

    assert headers == ["Bearer async-token", None]


@pytest.mark.asyncio
async def test_server_errors_are_retried_with_growing_delay():
    calls = []
    sleeps = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502, json={"success": False, "message": "bad gateway"})
        return httpx.Response(200, json={"success": True, "data": {"status": "pending"}})

    data = await _client(handler, sleeps).get("/payments/PAY-1/status")

    assert data == {"status": "pending"}
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_network_errors_exhaust_into_transient_error():
    sleeps = []

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientError) as exc:
        await _client(handler, sleeps).get("/payments/PAY-1/status")

    assert exc.value.attempts == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_timeouts_are_transient():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(TransientError):
        await _client(handler, retry_attempts=2).get("/payments/PAY-1/status")


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, json={"success": False, "message": "Payment not found"})

    with pytest.raises(IntegrationResponseError) as exc:
        await _client(handler).get("/payments/PAY-X/status")

    assert exc.value.status_code == 404
    assert str(exc.value) == "Payment not found"
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_unsuccessful_envelope_raises():
    def handler(request):
        return httpx.Response(200, json={"success": False, "message": "Quote already paid"})

    with pytest.raises(IntegrationResponseError, match="Quote already paid"):
        await _client(handler).post("/payments/create", {"quoteId": "q-1"})


@pytest.mark.asyncio
async def test_non_json_body_raises():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(IntegrationResponseError):
        await _client(handler).get("/payments/PAY-1/status")


@pytest.mark.asyncio
async def test_missing_base_url(monkeypatch):
    monkeypatch.delenv("QUOTEPAY_API_URL", raising=False)
    client = ApiClient(base_url=None)
    with pytest.raises(ValueError):
        await client.get("/payments/PAY-1/status")


def test_base_url_from_environment(monkeypatch):
    monkeypatch.setenv("QUOTEPAY_API_URL", "https://env.test/api/")
    assert ApiClient().base_url == "https://env.test/api"
