"""
Shared REST client for the quoting backend.

Every gateway call goes through ApiClient.request(), which:
- attaches `Authorization: Bearer <token>` from the injected token provider
- bounds each call with a timeout
- retries network errors, timeouts and 5xx responses with a linearly growing
  delay (attempt * retry_delay)
- unwraps the backend's {success, message, data} envelope

Credentials are never stored here; the token provider is owned by the caller.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from quotepay.errors import IntegrationResponseError, TransientError
from quotepay.integrations.policy.response_wrappers import unwrap_envelope

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


def env_token_provider() -> Optional[str]:
    return os.getenv("QUOTEPAY_AUTH_TOKEN") or None


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        timeout_seconds: float = 10.0,
        retry_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.base_url = (base_url or os.getenv("QUOTEPAY_API_URL", "")).rstrip("/")
        self.token_provider = token_provider or env_token_provider
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self._transport = transport
        self._sleep = sleep

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, payload)

    async def request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        if not self.base_url:
            raise ValueError("QUOTEPAY_API_URL is not configured.")

        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = await self._headers()
        last_exc: Optional[Exception] = None
        reason = ""

        for attempt in range(1, self.retry_attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                    response = await client.request(method, url, json=payload, headers=headers)
            except httpx.TransportError as exc:
                # Covers timeouts, refused connections and other network failures.
                last_exc = exc
                reason = type(exc).__name__
            else:
                if response.status_code < 500:
                    return self._decode(method, path, response)
                last_exc = None
                reason = f"HTTP {response.status_code}"

            if attempt >= self.retry_attempts:
                break
            delay = self.retry_delay_seconds * attempt
            logger.warning(
                "%s %s failed on attempt %s/%s (%s). Retrying in %.2fs...",
                method, path, attempt, self.retry_attempts, reason, delay,
            )
            await self._sleep(delay)

        logger.error("%s %s failed after %s attempts (%s)", method, path, self.retry_attempts, reason)
        raise TransientError(
            f"{method} {path} failed after {self.retry_attempts} attempts: {reason}",
            attempts=self.retry_attempts,
        ) from last_exc

    async def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        token = self.token_provider()
        if hasattr(token, "__await__"):
            token = await token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _decode(self, method: str, path: str, response: httpx.Response) -> Any:
        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError as exc:
                raise IntegrationResponseError(
                    f"{method} {path} returned a non-JSON body.",
                    status_code=response.status_code,
                ) from exc

        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            logger.error("%s %s rejected: status=%s message=%s", method, path, response.status_code, message)
            raise IntegrationResponseError(
                message or f"{method} {path} failed with HTTP {response.status_code}.",
                payload=body if isinstance(body, dict) else None,
                status_code=response.status_code,
            )

        if body is None:
            return None
        return unwrap_envelope(body, status_code=response.status_code)
