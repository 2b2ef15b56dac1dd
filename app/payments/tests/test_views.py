"""
Tests for the payment webhook and the payments API.
"""

import hashlib
from unittest.mock import patch

import httpx
import pytest
from rest_framework.test import APIClient

from accounts.models import User
from accounts.tests.factories import UserFactory
from ledger.models import Transaction, TransactionStatus
from ledger.tests.factories import PendingTopUpFactory
from payments.providers.lydia import LydiaProvider
from payments.tests.factories import PROVIDER_CONFIGS, PaymentMethodFactory

WEBHOOK_URL = "/webhooks/payment"


def signed_lydia_callback(row, amount="20.00") -> dict:
    params = {
        "amount": amount,
        "currency": "EUR",
        "order_ref": str(row.id),
        "request_id": row.payment_provider_id or "req-1",
        "vendor_token": "vendor-token",
    }
    query = "&".join(f"{key}={value}" for key, value in sorted(params.items()))
    params["sig"] = hashlib.md5(f"{query}&private-token".encode()).hexdigest()
    return params


@pytest.fixture
def pending_row(user):
    return PendingTopUpFactory(
        issuer=user, target_user=user, amount=2000, payment_provider_id="req-1"
    )


# =============================================================================
# Webhook
# =============================================================================


class TestPaymentWebhook:
    """Tests for POST /webhooks/payment."""

    def test_missing_provider_returns_400(self, client, db):
        response = client.post(WEBHOOK_URL, data={})

        assert response.status_code == 400
        assert b"Missing provider" in response.content

    def test_unknown_provider_returns_400(self, client, db):
        response = client.post(f"{WEBHOOK_URL}?provider=paypal", data={})

        assert response.status_code == 400

    def test_disabled_provider_returns_400(self, client, user, pending_row):
        PaymentMethodFactory(slug="lydia", is_enabled=False)

        response = client.post(
            f"{WEBHOOK_URL}?provider=lydia", data=signed_lydia_callback(pending_row)
        )

        assert response.status_code == 400
        assert Transaction.objects.get(pk=pending_row.pk).status == TransactionStatus.PENDING

    def test_get_not_allowed(self, client, db):
        response = client.get(f"{WEBHOOK_URL}?provider=lydia")

        assert response.status_code == 405

    def test_valid_webhook_credits_wallet(self, client, user, lydia_method, pending_row):
        response = client.post(
            f"{WEBHOOK_URL}?provider=lydia", data=signed_lydia_callback(pending_row)
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "result": "completed"}
        assert Transaction.objects.get(pk=pending_row.pk).status == TransactionStatus.COMPLETED
        assert User.objects.get(pk=user.pk).balance == 2000

    def test_redelivery_is_a_noop_success(self, client, user, lydia_method, pending_row):
        params = signed_lydia_callback(pending_row)

        client.post(f"{WEBHOOK_URL}?provider=lydia", data=params)
        response = client.post(f"{WEBHOOK_URL}?provider=lydia", data=params)

        assert response.status_code == 200
        assert response.json()["result"] == "already_processed"
        assert User.objects.get(pk=user.pk).balance == 2000

    def test_forged_signature_returns_400(self, client, user, lydia_method, pending_row):
        params = signed_lydia_callback(pending_row)
        params["sig"] = "0" * 32

        response = client.post(f"{WEBHOOK_URL}?provider=lydia", data=params)

        assert response.status_code == 400
        assert Transaction.objects.get(pk=pending_row.pk).status == TransactionStatus.PENDING
        assert User.objects.get(pk=user.pk).balance == 0

    def test_provider_mismatch_returns_400(self, client, user, lydia_method):
        row = PendingTopUpFactory(issuer=user, target_user=user, payment_provider="sumup")

        response = client.post(f"{WEBHOOK_URL}?provider=lydia", data=signed_lydia_callback(row))

        assert response.status_code == 400

    def test_processing_error_returns_500(self, client, user, lydia_method, pending_row):
        with patch(
            "payments.views.settle_top_up", side_effect=RuntimeError("connection lost")
        ):
            response = client.post(
                f"{WEBHOOK_URL}?provider=lydia", data=signed_lydia_callback(pending_row)
            )

        assert response.status_code == 500
        assert User.objects.get(pk=user.pk).balance == 0

    def test_malformed_helloasso_body_returns_400(self, client, user, helloasso_method):
        response = client.post(
            f"{WEBHOOK_URL}?provider=helloasso",
            data={"eventType": "Payment", "data": "oops"},
            content_type="application/json",
        )

        assert response.status_code == 400

    def test_lydia_top_up_scenario(self, client, lydia_method):
        """Balance 5000, Lydia top-up of 10000, webhook delivered twice."""
        arya = UserFactory(email="arya@example.com", balance=5000)
        row = PendingTopUpFactory(
            issuer=arya, target_user=arya, amount=10000, payment_provider_id="req-arya"
        )
        params = signed_lydia_callback(row, amount="100.00")

        first = client.post(f"{WEBHOOK_URL}?provider=lydia", data=params)

        assert first.status_code == 200
        assert Transaction.objects.get(pk=row.pk).status == TransactionStatus.COMPLETED
        assert User.objects.get(pk=arya.pk).balance == 15000

        second = client.post(f"{WEBHOOK_URL}?provider=lydia", data=params)

        assert second.status_code == 200
        assert second.json()["result"] == "already_processed"
        assert User.objects.get(pk=arya.pk).balance == 15000


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def lydia_with(mock_client, handler, fees=None):
    """Replacement for get_payment_provider returning a mocked Lydia provider."""

    def build(slug, client=None):
        return LydiaProvider(
            config=PROVIDER_CONFIGS["lydia"],
            fees=fees or {},
            client=mock_client(handler),
        )

    return build


class TestPaymentMethodsAPI:
    """Tests for the method list and fee preview endpoints."""

    def test_lists_enabled_methods(self, api_client):
        PaymentMethodFactory(slug="lydia", fees={"fixed": 10, "percentage": "1.5"})
        PaymentMethodFactory(slug="sumup", is_enabled=False)

        response = api_client.get("/api/v1/payments/methods/")

        assert response.status_code == 200
        assert [m["slug"] for m in response.data] == ["lydia"]
        assert response.data[0]["fees"] == {"fixed": 10, "percentage": "1.5"}
        assert "config" not in response.data[0]

    def test_fee_preview(self, api_client):
        PaymentMethodFactory(slug="lydia", fees={"fixed": 10, "percentage": "1.5"})

        response = api_client.get("/api/v1/payments/methods/lydia/preview/?amount_cents=2000")

        assert response.status_code == 200
        assert response.data["total_amount_cents"] == 2041
        assert response.data["total"] == "20.41"

    def test_fee_preview_requires_amount(self, api_client, lydia_method):
        response = api_client.get("/api/v1/payments/methods/lydia/preview/")

        assert response.status_code == 400

    def test_requires_authentication(self, db):
        response = APIClient().get("/api/v1/payments/methods/")

        assert response.status_code == 401


class TestTopUpAPI:
    """Tests for POST /api/v1/payments/topups/."""

    def test_returns_redirect_url(self, api_client, user, lydia_method, mock_client):
        def handler(request):
            return httpx.Response(
                200, json={"error": "0", "request_id": "req-9", "mobile_url": "https://lydia/9"}
            )

        with patch(
            "payments.services.get_payment_provider",
            side_effect=lydia_with(mock_client, handler),
        ):
            response = api_client.post(
                "/api/v1/payments/topups/",
                {"provider": "lydia", "amount_cents": 2000},
                format="json",
            )

        assert response.status_code == 201
        assert response.data["redirect_url"] == "https://lydia/9"
        assert response.data["total_amount_cents"] == 2000
        row = Transaction.objects.get(pk=response.data["transaction_id"])
        assert row.status == TransactionStatus.PENDING

    def test_provider_down_returns_502(self, api_client, user, lydia_method, mock_client):
        with patch(
            "payments.services.get_payment_provider",
            side_effect=lydia_with(mock_client, lambda request: httpx.Response(503)),
        ):
            response = api_client.post(
                "/api/v1/payments/topups/",
                {"provider": "lydia", "amount_cents": 2000},
                format="json",
            )

        assert response.status_code == 502
        assert response.data["error_code"] == "PROVIDER_UNAVAILABLE"
        assert Transaction.objects.get(target_user=user).status == TransactionStatus.FAILED

    def test_unavailable_provider_returns_400(self, api_client):
        response = api_client.post(
            "/api/v1/payments/topups/",
            {"provider": "paypal", "amount_cents": 2000},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "PROVIDER_NOT_AVAILABLE"

    def test_amount_too_small_returns_400(self, api_client, lydia_method):
        response = api_client.post(
            "/api/v1/payments/topups/",
            {"provider": "lydia", "amount_cents": 50},
            format="json",
        )

        assert response.status_code == 400
        assert not Transaction.objects.exists()
