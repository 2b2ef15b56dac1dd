"""
SumUp hosted checkouts.

Flow:
    1. POST /v0.1/checkouts with our transaction id as
       ``checkout_reference``; the user pays on ``hosted_checkout_url``.
    2. SumUp posts ``{"event_type": "CHECKOUT_STATUS_CHANGED", "id": ...}``
       to ``return_url``. The notification is unsigned, so the checkout is
       fetched back from the API and its status decides the outcome.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.conf import settings

from ledger.types import Money
from payments.exceptions import ProviderUnavailable
from payments.providers.base import (
    PaymentProvider,
    PaymentSession,
    ProviderConfig,
    WebhookOutcome,
    WebhookVerification,
)
from payments.providers.registry import register_provider

if TYPE_CHECKING:
    from collections.abc import Mapping

    from django.http import HttpRequest

logger = logging.getLogger(__name__)

CHECKOUT_OUTCOMES = {
    "PAID": WebhookOutcome.SUCCEEDED,
    "FAILED": WebhookOutcome.FAILED,
    "EXPIRED": WebhookOutcome.FAILED,
}


@dataclass(frozen=True)
class SumUpConfig(ProviderConfig):
    api_key: str
    merchant_code: str
    api_url: str = ""

    @property
    def checkouts_url(self) -> str:
        base = self.api_url or settings.SUMUP_API_URL
        return f"{base.rstrip('/')}/v0.1/checkouts"


@register_provider("sumup")
class SumUpProvider(PaymentProvider):
    config_class = SumUpConfig

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    def create_payment(
        self,
        amount_cents: int,
        payer_email: str,
        description: str,
        reference_id: str,
        options: Mapping[str, Any] | None = None,
    ) -> PaymentSession:
        total_cents = self.fees.total_cents(amount_cents)
        body = {
            "checkout_reference": reference_id,
            # SumUp takes a JSON number in euros
            "amount": float(Money(total_cents).as_decimal()),
            "currency": "EUR",
            "merchant_code": self.config.merchant_code,
            "description": description,
            "return_url": self.callback_url,
            "redirect_url": self.return_url(reference_id, "success"),
            "hosted_checkout": {"enabled": True},
        }
        if payer_email:
            body["personal_details"] = {"email": payer_email}

        payload = self._request(
            "create_payment",
            "POST",
            self.config.checkouts_url,
            json=body,
            headers=self._headers,
        )
        if not payload.get("id") or not payload.get("hosted_checkout_url"):
            raise ProviderUnavailable(
                "SumUp response is missing id or hosted_checkout_url",
                details={"provider": self.slug},
            )

        return PaymentSession(
            payment_id=str(payload["id"]),
            redirect_url=payload["hosted_checkout_url"],
            total_amount_cents=total_cents,
        )

    def verify_webhook(self, request: HttpRequest) -> WebhookVerification:
        try:
            notification = json.loads(request.body or b"{}")
        except ValueError:
            return WebhookVerification.invalid("body is not JSON")
        if not isinstance(notification, dict):
            return WebhookVerification.invalid("body is not an object")

        checkout_id = notification.get("id") or notification.get("checkout_id")
        if not checkout_id:
            return WebhookVerification.invalid("missing checkout id")
        if not isinstance(checkout_id, (str, int)):
            return WebhookVerification.invalid("malformed payload")

        checkout = self._request(
            "get_checkout",
            "GET",
            f"{self.config.checkouts_url}/{checkout_id}",
            headers=self._headers,
        )
        status = checkout.get("status")
        if status is not None and not isinstance(status, str):
            return WebhookVerification.invalid("malformed payload")
        outcome = CHECKOUT_OUTCOMES.get(status)
        if outcome is None:
            logger.info(
                "SumUp checkout not in a final state",
                extra={"checkout_id": checkout_id, "status": status},
            )
            return WebhookVerification.invalid(f"checkout status {status}")

        reference = checkout.get("checkout_reference")
        if not reference:
            return WebhookVerification.invalid("checkout has no reference")

        return WebhookVerification.valid(
            transaction_id=reference,
            provider_transaction_id=str(checkout.get("id") or checkout_id),
            outcome=outcome,
        )
