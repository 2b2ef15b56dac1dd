"""
Provider registry.

Maps provider slugs to PaymentProvider classes and builds configured
instances from PaymentMethod rows.

Usage:
    @register_provider("lydia")
    class LydiaProvider(PaymentProvider):
        ...

    provider = get_payment_provider("lydia")
    if provider is None:
        raise ProviderNotAvailable(...)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from payments.exceptions import ProviderConfigurationError

if TYPE_CHECKING:
    import httpx

    from payments.providers.base import PaymentProvider

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[PaymentProvider]] = {}


def register_provider(slug: str):
    """Class decorator adding a provider under ``slug``."""

    def decorator(provider_class: type[PaymentProvider]) -> type[PaymentProvider]:
        if slug in PROVIDERS and PROVIDERS[slug] is not provider_class:
            raise ValueError(f"Payment provider '{slug}' is already registered")
        provider_class.slug = slug
        PROVIDERS[slug] = provider_class
        return provider_class

    return decorator


def get_payment_provider(
    slug: str,
    *,
    client: httpx.Client | None = None,
) -> PaymentProvider | None:
    """
    Build the provider for ``slug`` from its enabled PaymentMethod.

    Returns None when the slug is unknown, the method is missing or
    disabled, or its stored configuration is invalid.
    """
    from payments.models import PaymentMethod

    provider_class = PROVIDERS.get(slug)
    if provider_class is None:
        logger.warning("Unknown payment provider", extra={"provider": slug})
        return None

    method = PaymentMethod.objects.enabled().filter(slug=slug).first()
    if method is None:
        logger.warning("Payment method missing or disabled", extra={"provider": slug})
        return None

    try:
        return provider_class(config=method.config, fees=method.fees, client=client)
    except ProviderConfigurationError as e:
        logger.error(
            "Payment method has invalid configuration",
            extra={"provider": slug, "error_code": e.error_code, "details": e.details},
        )
        return None
