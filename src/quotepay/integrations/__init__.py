"""
Integrations layer.
This package contains all code used to communicate with the payment side of
the quoting backend:
- clients/real_http: REST client and the HTTP PaymentGateway
- clients/mocks: in-memory gateway for development and tests
- policy: normalization of raw backend responses into contract models

Key rule:
- The settlement core MUST NOT call external APIs directly.
- It is handed a PaymentGateway and never knows which implementation it got.

Switching implementations:
- The selection of mock vs real clients happens in ONE place (build_gateway below).
"""

import logging
import os
from datetime import timedelta
from typing import Optional

from quotepay.contracts.interfaces import PaymentGateway
from quotepay.database.quotes import InMemoryQuoteStore
from quotepay.utils.config_loader import SettlementConfig

from .clients.mocks.gateway import MockPaymentGateway
from .clients.real_http.api_client import ApiClient
from .clients.real_http.payments import HttpPaymentGateway

logger = logging.getLogger(__name__)


def should_use_real_integrations(config: SettlementConfig) -> bool:
    mode = os.getenv("QUOTEPAY_INTEGRATIONS_MODE", "").strip().lower()
    if mode in {"real", "live"}:
        return True
    if mode in {"mock", "test"}:
        return False
    return config.integrations_mode == "real"


def build_gateway(
    config: SettlementConfig,
    quote_store: Optional[InMemoryQuoteStore] = None,
) -> PaymentGateway:
    """Return the HTTP gateway in real mode, otherwise the mock backed by quote_store."""
    if should_use_real_integrations(config):
        if not config.api.base_url:
            raise ValueError("Real integrations require api.base_url (or QUOTEPAY_API_URL)")
        api = ApiClient(
            base_url=config.api.base_url,
            timeout_seconds=config.api.timeout_seconds,
            retry_attempts=config.api.retry_attempts,
            retry_delay_seconds=config.api.retry_delay_seconds,
        )
        logger.info("Using HTTP payment gateway at %s", config.api.base_url)
        return HttpPaymentGateway(api, amount_exponent=config.api.amount_exponent)

    if quote_store is None:
        raise ValueError("Mock integrations need the quote store the payments are drawn from")
    logger.info("Using MOCK payment gateway")
    return MockPaymentGateway(
        quote_store,
        payment_ttl=timedelta(minutes=config.mock_payment_ttl_minutes),
    )


__all__ = [
    "ApiClient",
    "HttpPaymentGateway",
    "MockPaymentGateway",
    "build_gateway",
    "should_use_real_integrations",
]
