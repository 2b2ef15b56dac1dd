"""
HelloAsso checkout intents.

Flow:
    1. An OAuth2 client-credentials token is fetched (and cached) from
       HELLOASSO_AUTH_URL.
    2. POST /organizations/{slug}/checkout-intents with amounts in cents
       and our transaction id in ``metadata.internalTransactionId``.
    3. HelloAsso posts a notification whose ``eventType`` is ``Payment``;
       ``data.state`` decides the outcome.

When ``signature_key`` is configured, notifications must carry an
``x-ha-signature`` header equal to HMAC-SHA256(raw body).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.cache import cache

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

TOKEN_CACHE_KEY = "payments:helloasso:token:{client_id}"
TOKEN_EXPIRY_MARGIN_SECONDS = 60

PAYMENT_OUTCOMES = {
    "Authorized": WebhookOutcome.SUCCEEDED,
    "Refused": WebhookOutcome.FAILED,
}


@dataclass(frozen=True)
class HelloAssoConfig(ProviderConfig):
    client_id: str
    client_secret: str
    organization_slug: str
    signature_key: str = ""


@register_provider("helloasso")
class HelloAssoProvider(PaymentProvider):
    config_class = HelloAssoConfig

    def _access_token(self) -> str:
        cache_key = TOKEN_CACHE_KEY.format(client_id=self.config.client_id)
        token = cache.get(cache_key)
        if token:
            return token

        payload = self._request(
            "oauth_token",
            "POST",
            settings.HELLOASSO_AUTH_URL,
            data={
                "grant_type": "client_credentials",
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
        )
        token = payload.get("access_token")
        if not token:
            raise ProviderUnavailable(
                "HelloAsso token response has no access_token",
                details={"provider": self.slug},
            )
        expires_in = int(payload.get("expires_in", 0))
        cache.set(cache_key, token, timeout=max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 1))
        return token

    def create_payment(
        self,
        amount_cents: int,
        payer_email: str,
        description: str,
        reference_id: str,
        options: Mapping[str, Any] | None = None,
    ) -> PaymentSession:
        total_cents = self.fees.total_cents(amount_cents)
        token = self._access_token()
        url = (
            f"{settings.HELLOASSO_API_URL.rstrip('/')}"
            f"/organizations/{self.config.organization_slug}/checkout-intents"
        )
        body = {
            "totalAmount": total_cents,
            "initialAmount": total_cents,
            "itemName": description[:250],
            "backUrl": self.return_url(reference_id, "cancel"),
            "errorUrl": self.return_url(reference_id, "fail"),
            "returnUrl": self.return_url(reference_id, "success"),
            "containsDonation": False,
            "metadata": {"internalTransactionId": reference_id},
        }
        if payer_email:
            body["payer"] = {"email": payer_email}

        payload = self._request(
            "create_payment",
            "POST",
            url,
            json=body,
            headers={"Authorization": f"Bearer {token}"},
        )
        if payload.get("id") is None or not payload.get("redirectUrl"):
            raise ProviderUnavailable(
                "HelloAsso response is missing id or redirectUrl",
                details={"provider": self.slug},
            )

        return PaymentSession(
            payment_id=str(payload["id"]),
            redirect_url=payload["redirectUrl"],
            total_amount_cents=total_cents,
        )

    def _signature_matches(self, request: HttpRequest) -> bool:
        received = request.headers.get("x-ha-signature", "")
        expected = hmac.new(
            self.config.signature_key.encode(),
            request.body,
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, received.lower())

    def verify_webhook(self, request: HttpRequest) -> WebhookVerification:
        if self.config.signature_key and not self._signature_matches(request):
            return WebhookVerification.invalid("signature mismatch")

        try:
            notification = json.loads(request.body or b"{}")
        except ValueError:
            return WebhookVerification.invalid("body is not JSON")
        if not isinstance(notification, dict):
            return WebhookVerification.invalid("body is not an object")

        if notification.get("eventType") != "Payment":
            return WebhookVerification.invalid(
                f"unhandled event type {notification.get('eventType')}"
            )

        data = notification.get("data") or {}
        if not isinstance(data, dict):
            return WebhookVerification.invalid("malformed payload")
        metadata = notification.get("metadata") or data.get("metadata") or {}
        if not isinstance(metadata, dict):
            return WebhookVerification.invalid("malformed payload")
        reference = metadata.get("internalTransactionId")
        if not reference:
            return WebhookVerification.invalid("missing internalTransactionId")

        state = data.get("state")
        if not isinstance(state, str):
            return WebhookVerification.invalid("malformed payload")
        outcome = PAYMENT_OUTCOMES.get(state)
        if outcome is None:
            return WebhookVerification.invalid(f"payment state {state}")

        payment_id = data.get("id")
        return WebhookVerification.valid(
            transaction_id=str(reference),
            provider_transaction_id=str(payment_id) if payment_id is not None else None,
            outcome=outcome,
        )
