"""
Celery tasks for payments.

Usage:
    # Scheduled hourly via CELERY_BEAT_SCHEDULE
    from payments.tasks import expire_stale_topups
    expire_stale_topups.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ledger.models import Transaction, TransactionStatus, TransactionType

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

EXPIRY_BATCH_SIZE = 500


# =============================================================================
# Periodic Tasks
# =============================================================================


@shared_task(acks_late=True)
def expire_stale_topups() -> dict:
    """
    Mark provider top-ups that were never settled as FAILED.

    A PENDING top-up older than PAYMENT_PENDING_EXPIRY_HOURS will not be
    confirmed anymore. Each row is locked and re-checked so a webhook
    settling it concurrently wins.

    Returns:
        Dict with the number of rows expired
    """
    threshold = timezone.now() - timedelta(hours=settings.PAYMENT_PENDING_EXPIRY_HOURS)
    stale_ids = list(
        Transaction.objects.filter(
            type=TransactionType.TOPUP,
            status=TransactionStatus.PENDING,
            created_at__lt=threshold,
        )
        .order_by("created_at")
        .values_list("id", flat=True)[:EXPIRY_BATCH_SIZE]
    )

    expired_count = 0
    for transaction_id in stale_ids:
        with transaction.atomic():
            row = Transaction.objects.select_for_update().get(pk=transaction_id)
            if row.status != TransactionStatus.PENDING:
                continue
            row.fail(reason="Expired without provider confirmation")
            row.save()
        expired_count += 1
        logger.warning(
            "Expired pending top-up",
            extra={
                "transaction_id": str(row.id),
                "provider": row.payment_provider,
                "provider_payment_id": row.payment_provider_id,
                "created_at": row.created_at.isoformat(),
            },
        )

    logger.info(
        f"Expired {expired_count} pending top-ups",
        extra={"expired_count": expired_count},
    )
    return {"expired_count": expired_count}
