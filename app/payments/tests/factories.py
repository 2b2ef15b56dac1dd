"""
Factory Boy factories for payments models.

Usage:
    from payments.tests.factories import PaymentMethodFactory

    lydia = PaymentMethodFactory(slug="lydia")
    sumup = PaymentMethodFactory(slug="sumup", fees={"fixed": 0, "percentage": "2.5"})
"""

import factory

from payments.models import PaymentMethod

PROVIDER_CONFIGS = {
    "lydia": {"vendor_token": "vendor-token", "private_token": "private-token"},
    "sumup": {"api_key": "sup_sk_test", "merchant_code": "MC123"},
    "helloasso": {
        "client_id": "ha-client",
        "client_secret": "ha-secret",
        "organization_slug": "bde-test",
    },
}


class PaymentMethodFactory(factory.django.DjangoModelFactory):
    """
    Factory for an enabled PaymentMethod with working credentials.

    Examples:
        method = PaymentMethodFactory()                 # lydia, no fees
        disabled = PaymentMethodFactory(slug="sumup", is_enabled=False)
    """

    class Meta:
        model = PaymentMethod
        django_get_or_create = ("slug",)

    slug = "lydia"
    name = factory.LazyAttribute(lambda o: o.slug.title())
    description = ""
    is_enabled = True
    fees = factory.LazyFunction(lambda: {"fixed": 0, "percentage": "0"})
    config = factory.LazyAttribute(lambda o: dict(PROVIDER_CONFIGS.get(o.slug, {})))
