"""
Tests for PaymentMethod validation and the provider registry.
"""

import pytest
from django.core.exceptions import ValidationError

from payments.models import PaymentMethod
from payments.providers import PROVIDERS, get_payment_provider
from payments.providers.lydia import LydiaProvider
from payments.tests.factories import PaymentMethodFactory


class TestRegistry:
    """Tests for provider registration and lookup."""

    def test_builtin_providers_registered(self):
        assert {"lydia", "sumup", "helloasso"} <= set(PROVIDERS)

    def test_enabled_method_builds_provider(self, db):
        PaymentMethodFactory(slug="lydia", fees={"fixed": 10, "percentage": "1.5"})

        provider = get_payment_provider("lydia")

        assert isinstance(provider, LydiaProvider)
        assert provider.config.vendor_token == "vendor-token"
        assert provider.fees.fixed == 10
        provider.close()

    def test_unknown_slug_returns_none(self, db):
        assert get_payment_provider("paypal") is None

    def test_registered_slug_without_method_returns_none(self, db):
        assert get_payment_provider("sumup") is None

    def test_disabled_method_returns_none(self, db):
        PaymentMethodFactory(slug="sumup", is_enabled=False)

        assert get_payment_provider("sumup") is None

    def test_invalid_config_returns_none(self, db):
        PaymentMethodFactory(slug="helloasso", config={"client_id": "only-this"})

        assert get_payment_provider("helloasso") is None


class TestPaymentMethodClean:
    """Tests for PaymentMethod.clean()."""

    def test_valid_method_passes(self, db):
        method = PaymentMethodFactory.build(slug="sumup")
        method.full_clean()

    def test_unknown_slug_rejected(self, db):
        method = PaymentMethodFactory.build(slug="paypal", config={})

        with pytest.raises(ValidationError) as exc_info:
            method.full_clean()

        assert "slug" in exc_info.value.message_dict

    def test_missing_config_keys_rejected(self, db):
        method = PaymentMethodFactory.build(slug="lydia", config={"vendor_token": "x"})

        with pytest.raises(ValidationError) as exc_info:
            method.full_clean()

        assert "config" in exc_info.value.message_dict

    def test_invalid_fees_rejected(self, db):
        method = PaymentMethodFactory.build(slug="lydia", fees={"percentage": "150"})

        with pytest.raises(ValidationError) as exc_info:
            method.full_clean()

        assert "fees" in exc_info.value.message_dict

    def test_enabled_queryset(self, db):
        PaymentMethodFactory(slug="lydia")
        PaymentMethodFactory(slug="sumup", is_enabled=False)

        assert list(PaymentMethod.objects.enabled().values_list("slug", flat=True)) == ["lydia"]
