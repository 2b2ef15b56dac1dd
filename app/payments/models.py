"""
Payment method configuration.

One PaymentMethod row per provider slug. The row decides whether users can
top up through the provider, what the provider charges, and holds the
provider's credentials. ``config`` is parsed by the provider's typed config
class, so a row that would not work is rejected by ``full_clean()``.

Usage:
    PaymentMethod.objects.create(
        slug="lydia",
        name="Lydia",
        fees={"fixed": 10, "percentage": "1.5"},
        config={"vendor_token": "...", "private_token": "..."},
    )
"""

from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models

from core.models import BaseModel
from payments.exceptions import ProviderConfigurationError


class PaymentMethodQuerySet(models.QuerySet):
    def enabled(self) -> PaymentMethodQuerySet:
        return self.filter(is_enabled=True)


class PaymentMethod(BaseModel):
    """
    A configured payment provider.

    Fields:
        slug: Provider registry key ("lydia", "sumup", "helloasso")
        name: Display name shown to users
        is_enabled: Disabled methods cannot start payments or settle webhooks
        fees: {"fixed": cents, "percentage": "1.5"} charged on top of the amount
        config: Provider credentials, parsed by the provider's config class
    """

    slug = models.SlugField(max_length=50, unique=True)
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=255, blank=True)
    is_enabled = models.BooleanField(default=True)
    fees = models.JSONField(default=dict, blank=True)
    config = models.JSONField(default=dict, blank=True)

    objects = PaymentMethodQuerySet.as_manager()

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({'enabled' if self.is_enabled else 'disabled'})"

    @property
    def fee_schedule(self):
        from payments.fees import FeeSchedule

        return FeeSchedule.from_mapping(self.fees)

    def clean(self):
        from payments.fees import FeeSchedule
        from payments.providers.registry import PROVIDERS

        provider_class = PROVIDERS.get(self.slug)
        if provider_class is None:
            raise DjangoValidationError({"slug": f"Unknown payment provider '{self.slug}'"})
        try:
            FeeSchedule.from_mapping(self.fees)
        except ProviderConfigurationError as e:
            raise DjangoValidationError({"fees": e.message})
        try:
            provider_class.config_class.from_mapping(self.config)
        except ProviderConfigurationError as e:
            raise DjangoValidationError({"config": f"{e.message}: {e.details}"})
