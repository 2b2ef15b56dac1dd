"""
Settlement of PENDING provider top-ups.

Called by the webhook view once a notification has been authenticated.
The status change and the balance increment are written in one database
transaction on a locked row, so a notification delivered twice (or two
deliveries racing) credits the wallet exactly once.

State Machine:
    PENDING -> COMPLETED (provider confirmed payment; wallet credited)
    PENDING -> FAILED    (provider refused; no balance effect)

Usage:
    from payments.settlement import settle_top_up

    result = settle_top_up(verification, provider_slug="lydia")
"""

from __future__ import annotations

import enum
import logging
import uuid
from typing import TYPE_CHECKING

from django.db import transaction

from ledger import balances
from ledger.models import Transaction, TransactionStatus, TransactionType
from payments.exceptions import InvalidWebhook
from payments.providers.base import WebhookOutcome

if TYPE_CHECKING:
    from payments.providers.base import WebhookVerification

logger = logging.getLogger(__name__)


class SettlementResult(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    ALREADY_PROCESSED = "already_processed"


def _parse_reference(reference: str | None) -> uuid.UUID:
    try:
        return uuid.UUID(str(reference))
    except ValueError:
        raise InvalidWebhook(
            "Notification references an unknown transaction",
            error_code="UNKNOWN_TRANSACTION",
            details={"transaction_id": reference},
        )


def settle_top_up(verification: WebhookVerification, provider_slug: str) -> SettlementResult:
    """
    Apply a verified provider outcome to its PENDING top-up.

    Args:
        verification: Valid result of ``provider.verify_webhook()``
        provider_slug: Provider that delivered the notification

    Returns:
        COMPLETED or FAILED when the row moved, ALREADY_PROCESSED when it
        was already terminal (re-delivery)

    Raises:
        InvalidWebhook: If the row does not exist, is not a top-up, or was
            opened with another provider
    """
    transaction_id = _parse_reference(verification.transaction_id)
    log_context = {
        "transaction_id": str(transaction_id),
        "provider": provider_slug,
        "provider_transaction_id": verification.provider_transaction_id,
        "outcome": verification.outcome.value,
    }

    with transaction.atomic():
        row = Transaction.objects.select_for_update().filter(pk=transaction_id).first()
        if row is None:
            raise InvalidWebhook(
                "Notification references an unknown transaction",
                error_code="UNKNOWN_TRANSACTION",
                details={"transaction_id": str(transaction_id)},
            )
        if row.type != TransactionType.TOPUP:
            raise InvalidWebhook(
                "Notification references a non top-up transaction",
                error_code="NOT_A_TOPUP",
                details={"transaction_id": str(transaction_id), "type": row.type},
            )
        if row.payment_provider and row.payment_provider != provider_slug:
            raise InvalidWebhook(
                "Notification provider does not match the transaction",
                error_code="PROVIDER_MISMATCH",
                details={
                    "transaction_id": str(transaction_id),
                    "expected_provider": row.payment_provider,
                },
            )

        if row.status != TransactionStatus.PENDING:
            if (
                row.status == TransactionStatus.FAILED
                and verification.outcome == WebhookOutcome.SUCCEEDED
            ):
                # Money was taken for a row we already gave up on
                logger.error(
                    "Payment confirmed for a failed top-up, manual reconciliation required",
                    extra={**log_context, "failure_reason": row.failure_reason},
                )
            else:
                logger.info(
                    "Top-up already processed",
                    extra={**log_context, "status": row.status},
                )
            return SettlementResult.ALREADY_PROCESSED

        if verification.outcome == WebhookOutcome.FAILED:
            row.fail(reason=f"Refused by {provider_slug}")
            row.save()
            result = SettlementResult.FAILED
        else:
            row.complete(provider_transaction_id=verification.provider_transaction_id)
            row.save()
            balances.apply_delta(row.account, row.amount)
            result = SettlementResult.COMPLETED

    logger.info(
        "Top-up settled",
        extra={**log_context, "result": result.value, "amount_cents": row.amount},
    )
    return result
