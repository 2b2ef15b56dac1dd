"""
Top-up initiation.

The PENDING ledger row is written and committed before the provider is
called, so the provider always echoes back a reference that exists. A
provider failure marks that row FAILED; no balance ever moves here.

Usage:
    from payments.services import TopUpService

    result = TopUpService.initiate_top_up(user, "helloasso", 2000)
    return redirect(result.redirect_url)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction

from ledger.exceptions import InactiveAccount, InvalidAmount
from ledger.models import Transaction, TransactionStatus, TransactionType
from ledger.services import ledger
from ledger.types import Money, TransactionDraft
from payments.exceptions import ProviderNotAvailable, ProviderUnavailable
from payments.models import PaymentMethod
from payments.providers import get_payment_provider

if TYPE_CHECKING:
    from collections.abc import Mapping

    import httpx

    from accounts.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopUpResult:
    transaction: Transaction
    redirect_url: str
    total_amount_cents: int


class TopUpService:
    """Static methods for provider top-ups and fee previews."""

    @staticmethod
    def _validate_amount(amount_cents: int) -> None:
        minimum = settings.TOPUP_MIN_AMOUNT_CENTS
        maximum = settings.TOPUP_MAX_AMOUNT_CENTS
        if not minimum <= amount_cents <= maximum:
            raise InvalidAmount(
                f"Top-up amount must be between {Money(minimum)} and {Money(maximum)}",
                details={
                    "amount_cents": amount_cents,
                    "min_amount_cents": minimum,
                    "max_amount_cents": maximum,
                },
            )

    @staticmethod
    def initiate_top_up(
        user: User,
        provider_slug: str,
        amount_cents: int,
        options: Mapping[str, Any] | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> TopUpResult:
        """
        Open a provider checkout crediting ``amount_cents`` to ``user``.

        Args:
            user: Wallet owner, also the payer
            provider_slug: PaymentMethod slug
            amount_cents: Amount to credit; the payer is charged this plus fees
            options: Provider-specific extras (Lydia: ``phone``)
            client: httpx client override for the provider

        Returns:
            TopUpResult with the PENDING row and the checkout URL

        Raises:
            InvalidAmount: If the amount is outside the configured bounds
            InactiveAccount: If the user is deactivated
            ProviderNotAvailable: If the provider is unknown or disabled
            ProviderUnavailable: If the provider cannot open the checkout
        """
        TopUpService._validate_amount(amount_cents)
        if not user.is_active:
            raise InactiveAccount(
                f"Account {user.pk} cannot be topped up",
                details={"account_id": str(user.pk)},
            )

        provider = get_payment_provider(provider_slug, client=client)
        if provider is None:
            raise ProviderNotAvailable(
                f"Payment provider '{provider_slug}' is not available",
                details={"provider": provider_slug},
            )

        with provider:
            row = ledger.record(
                TransactionDraft(
                    amount=amount_cents,
                    type=TransactionType.TOPUP,
                    issuer=user,
                    target_user=user,
                    status=TransactionStatus.PENDING,
                    payment_provider=provider_slug,
                    description=f"Top-up via {provider_slug}",
                )
            )

            options = dict(options or {})
            if user.phone and "phone" not in options:
                options["phone"] = user.phone

            # The row must not stay PENDING once opening the checkout failed
            try:
                session = provider.create_payment(
                    amount_cents=amount_cents,
                    payer_email=user.email,
                    description=f"Top-up {Money(amount_cents)}",
                    reference_id=str(row.id),
                    options=options,
                )
                row.payment_provider_id = session.payment_id
                with transaction.atomic():
                    row.save(update_fields=["payment_provider_id", "updated_at"])
            except ProviderUnavailable as e:
                TopUpService._mark_failed(row, reason=e.message)
                raise
            except Exception as e:
                logger.error(
                    "Unexpected error opening provider checkout",
                    extra={
                        "transaction_id": str(row.id),
                        "provider": provider_slug,
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )
                TopUpService._mark_failed(row, reason=f"{type(e).__name__}: {e}"[:255])
                raise

        logger.info(
            "Top-up initiated",
            extra={
                "transaction_id": str(row.id),
                "user_id": str(user.pk),
                "provider": provider_slug,
                "amount_cents": amount_cents,
                "total_amount_cents": session.total_amount_cents,
                "provider_payment_id": session.payment_id,
            },
        )
        return TopUpResult(
            transaction=row,
            redirect_url=session.redirect_url,
            total_amount_cents=session.total_amount_cents,
        )

    @staticmethod
    def _mark_failed(row: Transaction, reason: str) -> None:
        with transaction.atomic():
            locked = Transaction.objects.select_for_update().get(pk=row.pk)
            if locked.status == TransactionStatus.PENDING:
                locked.fail(reason=reason)
                locked.save()
        logger.warning(
            "Top-up failed at initiation",
            extra={
                "transaction_id": str(row.pk),
                "provider": row.payment_provider,
                "reason": reason,
            },
        )

    @staticmethod
    def list_methods() -> list[PaymentMethod]:
        return list(PaymentMethod.objects.enabled())

    @staticmethod
    def preview_total(provider_slug: str, amount_cents: int) -> int:
        """
        Cents the payer would be charged for ``amount_cents``.

        Raises:
            ProviderNotAvailable: If no enabled method has this slug
        """
        method = PaymentMethod.objects.enabled().filter(slug=provider_slug).first()
        if method is None:
            raise ProviderNotAvailable(
                f"Payment provider '{provider_slug}' is not available",
                details={"provider": provider_slug},
            )
        return method.fee_schedule.total_cents(amount_cents)
