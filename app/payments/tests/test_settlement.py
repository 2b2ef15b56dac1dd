"""
Tests for settle_top_up().

Covers the PENDING -> COMPLETED/FAILED transitions, idempotent replays
and rollback of the status change when the balance update fails.
"""

import uuid
from unittest.mock import patch

import pytest

from accounts.models import User
from ledger.models import Transaction, TransactionStatus, TransactionType
from ledger.services import ledger
from ledger.tests.factories import PendingTopUpFactory, TransactionFactory
from payments.exceptions import InvalidWebhook
from payments.providers.base import WebhookOutcome, WebhookVerification
from payments.settlement import SettlementResult, settle_top_up


def verified(row, outcome=WebhookOutcome.SUCCEEDED, provider_id="req-1"):
    return WebhookVerification.valid(
        transaction_id=str(row.id),
        provider_transaction_id=provider_id,
        outcome=outcome,
    )


def balance_of(user) -> int:
    return User.objects.get(pk=user.pk).balance


class TestSettleSucceeded:
    """Tests for successful provider outcomes."""

    def test_completes_row_and_credits_wallet(self, user):
        row = PendingTopUpFactory(issuer=user, target_user=user, amount=2000)

        result = settle_top_up(verified(row), provider_slug="lydia")

        settled = Transaction.objects.get(pk=row.pk)
        assert result == SettlementResult.COMPLETED
        assert settled.status == TransactionStatus.COMPLETED
        assert settled.completed_at is not None
        assert balance_of(user) == 2000
        assert ledger.compute_balance(user) == 2000

    def test_credits_stored_amount_not_charged_total(self, user):
        """Fees are the payer's business; the wallet gets the requested amount."""
        row = PendingTopUpFactory(issuer=user, target_user=user, amount=2000)

        settle_top_up(verified(row), provider_slug="lydia")

        assert balance_of(user) == 2000

    def test_replay_credits_once(self, user):
        row = PendingTopUpFactory(issuer=user, target_user=user, amount=2000)

        first = settle_top_up(verified(row), provider_slug="lydia")
        second = settle_top_up(verified(row), provider_slug="lydia")

        assert first == SettlementResult.COMPLETED
        assert second == SettlementResult.ALREADY_PROCESSED
        assert balance_of(user) == 2000

    def test_records_provider_reference_when_missing(self, user):
        row = PendingTopUpFactory(issuer=user, target_user=user, payment_provider_id=None)

        settle_top_up(verified(row, provider_id="req-42"), provider_slug="lydia")

        assert Transaction.objects.get(pk=row.pk).payment_provider_id == "req-42"

    def test_keeps_existing_provider_reference(self, user):
        row = PendingTopUpFactory(
            issuer=user, target_user=user, payment_provider_id="checkout-1"
        )

        settle_top_up(verified(row, provider_id="payment-9"), provider_slug="lydia")

        assert Transaction.objects.get(pk=row.pk).payment_provider_id == "checkout-1"

    def test_balance_failure_rolls_back_status(self, user):
        row = PendingTopUpFactory(issuer=user, target_user=user, amount=2000)

        with patch(
            "payments.settlement.balances.apply_delta",
            side_effect=RuntimeError("database went away"),
        ):
            with pytest.raises(RuntimeError):
                settle_top_up(verified(row), provider_slug="lydia")

        assert Transaction.objects.get(pk=row.pk).status == TransactionStatus.PENDING
        assert balance_of(user) == 0


class TestSettleFailed:
    """Tests for refused payments and terminal rows."""

    def test_failed_outcome_marks_row_failed(self, user):
        row = PendingTopUpFactory(issuer=user, target_user=user, amount=2000)

        result = settle_top_up(verified(row, WebhookOutcome.FAILED), provider_slug="lydia")

        settled = Transaction.objects.get(pk=row.pk)
        assert result == SettlementResult.FAILED
        assert settled.status == TransactionStatus.FAILED
        assert settled.failure_reason
        assert balance_of(user) == 0

    def test_success_after_failure_is_not_credited(self, user):
        row = PendingTopUpFactory(issuer=user, target_user=user, amount=2000)
        settle_top_up(verified(row, WebhookOutcome.FAILED), provider_slug="lydia")

        result = settle_top_up(verified(row), provider_slug="lydia")

        assert result == SettlementResult.ALREADY_PROCESSED
        assert Transaction.objects.get(pk=row.pk).status == TransactionStatus.FAILED
        assert balance_of(user) == 0


class TestSettleRejected:
    """Tests for notifications that must be answered with 400."""

    def test_unknown_transaction(self, db):
        verification = WebhookVerification.valid(transaction_id=str(uuid.uuid4()))

        with pytest.raises(InvalidWebhook) as exc_info:
            settle_top_up(verification, provider_slug="lydia")

        assert exc_info.value.error_code == "UNKNOWN_TRANSACTION"

    def test_malformed_reference(self, db):
        verification = WebhookVerification.valid(transaction_id="order-12")

        with pytest.raises(InvalidWebhook):
            settle_top_up(verification, provider_slug="lydia")

    def test_non_topup_row(self, user):
        row = TransactionFactory(
            issuer=user, target_user=user, type=TransactionType.ADJUSTMENT, amount=500
        )

        with pytest.raises(InvalidWebhook) as exc_info:
            settle_top_up(verified(row), provider_slug="lydia")

        assert exc_info.value.error_code == "NOT_A_TOPUP"

    def test_provider_mismatch(self, user):
        row = PendingTopUpFactory(issuer=user, target_user=user, payment_provider="sumup")

        with pytest.raises(InvalidWebhook) as exc_info:
            settle_top_up(verified(row), provider_slug="lydia")

        assert exc_info.value.error_code == "PROVIDER_MISMATCH"
        assert Transaction.objects.get(pk=row.pk).status == TransactionStatus.PENDING
