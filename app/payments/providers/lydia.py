"""
Lydia payment requests.

Flow:
    1. POST /api/request/do.json (form-encoded) opens a payment request;
       the user pays in the Lydia app or on ``mobile_url``.
    2. Lydia calls ``confirm_url`` with form fields including our
       ``order_ref`` and a ``sig`` computed with the vendor's private token.

Signature:
    sig = md5(urlencode(sorted signed params) + "&" + private_token)
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from django.conf import settings

from ledger.types import Money
from payments.exceptions import ProviderUnavailable
from payments.providers.base import (
    PaymentProvider,
    PaymentSession,
    ProviderConfig,
    WebhookVerification,
)
from payments.providers.registry import register_provider

if TYPE_CHECKING:
    from collections.abc import Mapping

    from django.http import HttpRequest

logger = logging.getLogger(__name__)

# Callback fields covered by ``sig``
SIGNED_PARAMS = (
    "amount",
    "currency",
    "order_ref",
    "request_id",
    "signed",
    "transaction_identifier",
    "vendor_token",
)


@dataclass(frozen=True)
class LydiaConfig(ProviderConfig):
    vendor_token: str
    private_token: str
    api_url: str = ""

    @property
    def request_url(self) -> str:
        base = self.api_url or settings.LYDIA_API_URL
        return f"{base.rstrip('/')}/api/request/do.json"


def compute_signature(params: Mapping[str, str], private_token: str) -> str:
    signed = sorted((key, params[key]) for key in SIGNED_PARAMS if key in params)
    payload = f"{urlencode(signed)}&{private_token}"
    return hashlib.md5(payload.encode()).hexdigest()


@register_provider("lydia")
class LydiaProvider(PaymentProvider):
    config_class = LydiaConfig

    def create_payment(
        self,
        amount_cents: int,
        payer_email: str,
        description: str,
        reference_id: str,
        options: Mapping[str, Any] | None = None,
    ) -> PaymentSession:
        options = options or {}
        total_cents = self.fees.total_cents(amount_cents)
        phone = options.get("phone")

        data = {
            "vendor_token": self.config.vendor_token,
            "amount": str(Money(total_cents).as_decimal()),
            "currency": "EUR",
            "recipient": phone or payer_email,
            "type": "phone" if phone else "email",
            "order_ref": reference_id,
            "sale_desc": description,
            "browser_success_url": self.return_url(reference_id, "success"),
            "browser_cancel_url": self.return_url(reference_id, "cancel"),
            "confirm_url": self.callback_url,
        }
        payload = self._request("create_payment", "POST", self.config.request_url, data=data)

        # Lydia reports business errors in a 200 body
        if str(payload.get("error", "0")) != "0":
            logger.warning(
                "Lydia rejected payment request",
                extra={
                    "reference_id": reference_id,
                    "lydia_error": payload.get("error"),
                    "lydia_message": payload.get("message"),
                },
            )
            raise ProviderUnavailable(
                f"Lydia error: {payload.get('message', 'unknown')}",
                details={"provider": self.slug, "lydia_error": str(payload.get("error"))},
            )
        if not payload.get("request_id") or not payload.get("mobile_url"):
            raise ProviderUnavailable(
                "Lydia response is missing request_id or mobile_url",
                details={"provider": self.slug},
            )

        return PaymentSession(
            payment_id=str(payload["request_id"]),
            redirect_url=payload["mobile_url"],
            total_amount_cents=total_cents,
        )

    def verify_webhook(self, request: HttpRequest) -> WebhookVerification:
        params = request.POST
        order_ref = params.get("order_ref")
        sig = params.get("sig")
        if not order_ref or not sig:
            return WebhookVerification.invalid("missing order_ref or sig")

        vendor_token = params.get("vendor_token")
        if vendor_token and vendor_token != self.config.vendor_token:
            return WebhookVerification.invalid("vendor_token mismatch")

        expected = compute_signature(params, self.config.private_token)
        if not hmac.compare_digest(expected, sig):
            return WebhookVerification.invalid("signature mismatch")

        return WebhookVerification.valid(
            transaction_id=order_ref,
            provider_transaction_id=params.get("request_id"),
        )
