"""
Payment providers.

Importing this package registers every built-in provider.

Providers:
    lydia: Lydia payment requests, MD5-signed confirmation callbacks
    sumup: SumUp hosted checkouts, status confirmed by API lookup
    helloasso: HelloAsso checkout intents, optional HMAC-signed notifications
"""

from payments.providers import helloasso, lydia, sumup  # noqa: F401
from payments.providers.base import (
    PaymentProvider,
    PaymentSession,
    ProviderConfig,
    WebhookOutcome,
    WebhookVerification,
)
from payments.providers.registry import PROVIDERS, get_payment_provider, register_provider

__all__ = [
    "PROVIDERS",
    "PaymentProvider",
    "PaymentSession",
    "ProviderConfig",
    "WebhookOutcome",
    "WebhookVerification",
    "get_payment_provider",
    "register_provider",
]
