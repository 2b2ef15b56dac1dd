"""
Tests for TopUpService.
"""

from urllib.parse import parse_qs

import httpx
import pytest
from django.db import IntegrityError

from accounts.models import User
from accounts.tests.factories import UserFactory
from ledger.exceptions import InactiveAccount, InvalidAmount
from ledger.models import Transaction, TransactionStatus, TransactionType
from ledger.tests.factories import PendingTopUpFactory
from payments.exceptions import ProviderNotAvailable, ProviderUnavailable
from payments.services import TopUpService
from payments.tests.factories import PaymentMethodFactory


def form_of(request: httpx.Request) -> dict:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def lydia_ok(seen=None):
    def handler(request):
        if seen is not None:
            seen["form"] = form_of(request)
        return httpx.Response(
            200,
            json={"error": "0", "request_id": "req-77", "mobile_url": "https://lydia/pay/77"},
        )

    return handler


class TestInitiateTopUp:
    """Tests for TopUpService.initiate_top_up()."""

    def test_creates_pending_row_without_moving_balance(self, user, lydia_method, mock_client):
        result = TopUpService.initiate_top_up(
            user, "lydia", 2000, client=mock_client(lydia_ok())
        )

        row = Transaction.objects.get(pk=result.transaction.pk)
        assert row.type == TransactionType.TOPUP
        assert row.status == TransactionStatus.PENDING
        assert row.amount == 2000
        assert row.target_user_id == user.pk
        assert row.payment_provider == "lydia"
        assert row.payment_provider_id == "req-77"
        assert result.redirect_url == "https://lydia/pay/77"
        assert User.objects.get(pk=user.pk).balance == 0

    def test_reference_sent_to_provider_is_row_id(self, user, lydia_method, mock_client):
        seen = {}

        result = TopUpService.initiate_top_up(
            user, "lydia", 2000, client=mock_client(lydia_ok(seen))
        )

        assert seen["form"]["order_ref"] == str(result.transaction.pk)

    def test_total_includes_fees(self, user, mock_client):
        PaymentMethodFactory(slug="lydia", fees={"fixed": 10, "percentage": "1.5"})

        result = TopUpService.initiate_top_up(
            user, "lydia", 2000, client=mock_client(lydia_ok())
        )

        assert result.total_amount_cents == 2041
        assert result.transaction.amount == 2000

    def test_user_phone_forwarded_to_lydia(self, lydia_method, mock_client):
        user = UserFactory(phone="+33611223344")
        seen = {}

        TopUpService.initiate_top_up(user, "lydia", 2000, client=mock_client(lydia_ok(seen)))

        assert seen["form"]["recipient"] == "+33611223344"

    def test_provider_failure_marks_row_failed(self, user, lydia_method, mock_client):
        client = mock_client(lambda request: httpx.Response(503))

        with pytest.raises(ProviderUnavailable):
            TopUpService.initiate_top_up(user, "lydia", 2000, client=client)

        row = Transaction.objects.get(target_user=user)
        assert row.status == TransactionStatus.FAILED
        assert row.failure_reason
        assert User.objects.get(pk=user.pk).balance == 0

    def test_non_object_reply_marks_row_failed(self, user, lydia_method, mock_client):
        client = mock_client(lambda request: httpx.Response(200, json=["unexpected"]))

        with pytest.raises(ProviderUnavailable):
            TopUpService.initiate_top_up(user, "lydia", 2000, client=client)

        assert Transaction.objects.get(target_user=user).status == TransactionStatus.FAILED

    def test_duplicate_provider_reference_marks_row_failed(
        self, user, lydia_method, mock_client
    ):
        PendingTopUpFactory(payment_provider_id="req-77")

        with pytest.raises(IntegrityError):
            TopUpService.initiate_top_up(user, "lydia", 2000, client=mock_client(lydia_ok()))

        row = Transaction.objects.get(target_user=user)
        assert row.status == TransactionStatus.FAILED
        assert row.payment_provider_id is None

    @pytest.mark.parametrize("amount", [0, 99, 50001, -500])
    def test_amount_outside_bounds(self, user, lydia_method, amount):
        with pytest.raises(InvalidAmount):
            TopUpService.initiate_top_up(user, "lydia", amount)

        assert not Transaction.objects.exists()

    def test_disabled_provider(self, user):
        PaymentMethodFactory(slug="sumup", is_enabled=False)

        with pytest.raises(ProviderNotAvailable):
            TopUpService.initiate_top_up(user, "sumup", 2000)

        assert not Transaction.objects.exists()

    def test_unknown_provider(self, user):
        with pytest.raises(ProviderNotAvailable):
            TopUpService.initiate_top_up(user, "paypal", 2000)

    def test_deactivated_user(self, lydia_method):
        user = UserFactory(is_active=False)

        with pytest.raises(InactiveAccount):
            TopUpService.initiate_top_up(user, "lydia", 2000)


class TestPreviewTotal:
    """Tests for TopUpService.preview_total()."""

    def test_preview_uses_method_fees(self, db):
        PaymentMethodFactory(slug="sumup", fees={"fixed": 10, "percentage": "1.5"})

        assert TopUpService.preview_total("sumup", 2000) == 2041

    def test_disabled_method_has_no_preview(self, db):
        PaymentMethodFactory(slug="sumup", is_enabled=False)

        with pytest.raises(ProviderNotAvailable):
            TopUpService.preview_total("sumup", 2000)
