"""
Real payment gateway client.

Talks to the quoting backend, which fronts the actual payment provider:
- POST /payments/create {quoteId}
- GET  /payments/{id}/status -> {payment, quote}
- POST /payments/{id}/cancel
"""

from __future__ import annotations

import logging
from typing import Optional

from quotepay.contracts.interfaces import (
    CreatedPayment,
    GatewayFields,
    PaymentGateway,
    PaymentStatusReport,
)
from quotepay.errors import IntegrationResponseError
from quotepay.integrations.clients.real_http.api_client import ApiClient
from quotepay.integrations.policy.response_wrappers import (
    normalize_create_payment_response,
    normalize_payment_status_response,
)

logger = logging.getLogger(__name__)


class HttpPaymentGateway(PaymentGateway):
    def __init__(self, api: Optional[ApiClient] = None, amount_exponent: int = 0) -> None:
        self.api = api or ApiClient()
        # Wire amounts are scaled by 10**amount_exponent into minor units.
        self.amount_exponent = amount_exponent

    async def create_payment(self, quote_id: str) -> CreatedPayment:
        data = await self.api.post("/payments/create", {"quoteId": quote_id})
        if not isinstance(data, dict):
            raise IntegrationResponseError("Create payment response carried no data.")

        normalized = normalize_create_payment_response(data, amount_exponent=self.amount_exponent)
        logger.info("Gateway created payment %s for quote %s", normalized.payment_id, quote_id)

        return CreatedPayment(
            payment_id=normalized.payment_id,
            amount=normalized.amount,
            expires_at=normalized.expires_at,
            gateway=GatewayFields(
                qr_code=normalized.qr_code,
                qr_code_data=normalized.qr_code_data,
                init_point=normalized.init_point,
                preference_id=normalized.preference_id,
            ),
            raw=normalized.raw,
        )

    async def get_payment_status(self, payment_id: str) -> PaymentStatusReport:
        data = await self.api.get(f"/payments/{payment_id}/status")
        if not isinstance(data, dict):
            raise IntegrationResponseError(f"Status response for payment {payment_id} carried no data.")

        normalized = normalize_payment_status_response(
            data,
            fallback_payment_id=payment_id,
            amount_exponent=self.amount_exponent,
        )
        return PaymentStatusReport(
            payment_id=normalized.payment_id,
            status=normalized.status,
            quote_id=normalized.quote_id,
            quote_status=normalized.quote_status,
            amount=normalized.amount,
            expires_at=normalized.expires_at,
            settled_at=normalized.settled_at,
            gateway=GatewayFields(
                qr_code=normalized.qr_code,
                qr_code_data=normalized.qr_code_data,
                init_point=normalized.init_point,
                preference_id=normalized.preference_id,
                external_id=normalized.external_id,
            ),
            raw=normalized.raw,
        )

    async def cancel_payment(self, payment_id: str) -> None:
        await self.api.post(f"/payments/{payment_id}/cancel")
