"""
Transaction ledger models.

This module defines the append-only record of every balance movement:
- TransactionType: what kind of movement a row records
- TransactionStatus: settlement state (managed by django-fsm)
- WalletSource: which wallet a row affects (personal or fams)
- Transaction: one signed movement on exactly one account

Every row targets exactly one account. PERSONAL rows target
``target_user``; FAMILY rows target ``fams`` (``target_user`` then names
the member who used the fams wallet, when known). ``amount`` is signed:
negative debits the account, positive credits it.

For any account, ``balance`` equals the sum of ``amount`` over its
COMPLETED rows. COMPLETED and FAILED rows are never modified; mistakes
are corrected by writing a compensating row that points back through
``reverses``.

State Machine:
    PENDING -> COMPLETED (provider confirmed payment)
    PENDING -> FAILED (provider refused, call failed, or expired)

Usage:
    from ledger.models import Transaction, TransactionType

    Transaction.objects.for_account(user).completed()
    tx.complete(provider_transaction_id="req_123")
    tx.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class TransactionType(models.TextChoices):
    """
    Kinds of balance movement.

    Values:
        TOPUP: Money entering a wallet (provider payment or cashier)
        PURCHASE: Shop sale or event deposit paid from a wallet
        TRANSFER: One leg of a wallet-to-wallet transfer
        ADJUSTMENT: Administrative correction; may push a balance negative
        REFUND: Money returned for a purchase or an event deposit
    """

    TOPUP = "topup", "Top-up"
    PURCHASE = "purchase", "Purchase"
    TRANSFER = "transfer", "Transfer"
    ADJUSTMENT = "adjustment", "Adjustment"
    REFUND = "refund", "Refund"


class TransactionStatus(models.TextChoices):
    """
    Settlement states. COMPLETED and FAILED are terminal.
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class WalletSource(models.TextChoices):
    PERSONAL = "personal", "Personal"
    FAMILY = "family", "Fams"


class TransactionQuerySet(models.QuerySet):
    """Query helpers for the ledger."""

    def completed(self) -> TransactionQuerySet:
        return self.filter(status=TransactionStatus.COMPLETED)

    def for_user(self, user) -> TransactionQuerySet:
        return self.filter(wallet_source=WalletSource.PERSONAL, target_user=user)

    def for_fams(self, fams) -> TransactionQuerySet:
        return self.filter(wallet_source=WalletSource.FAMILY, fams=fams)

    def for_account(self, account) -> TransactionQuerySet:
        """Rows that target ``account`` (a User or a Fams)."""
        from accounts.models import Fams

        if isinstance(account, Fams):
            return self.for_fams(account)
        return self.for_user(account)

    def total(self) -> int:
        """Sum of ``amount`` over the queryset, 0 when empty."""
        return self.aggregate(
            total=Coalesce(Sum("amount"), 0, output_field=models.BigIntegerField())
        )["total"]


class Transaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    A single signed movement on one account.

    Fields:
        id: UUID primary key, also sent to providers as the order reference
        amount: Signed cents, never zero
        type: TransactionType
        status: TransactionStatus (FSM-managed, protected)
        wallet_source: PERSONAL or FAMILY
        issuer: Actor who initiated the movement
        target_user: Account for PERSONAL rows; acting member for FAMILY rows
        fams: Account for FAMILY rows
        receiver_user: Counterpart of a transfer
        shop / product_id / quantity: Purchase details
        event: Event the row is attributed to (deposits, event purchases)
        group_id: Shared by every row of one mass operation
        reverses: The row this one compensates
        payment_provider / payment_provider_id: Provider slug and external
            reference for provider top-ups; the reference is unique and is
            the settlement idempotency key
        completed_at: When the row reached COMPLETED
        failure_reason: Why the row reached FAILED

    Constraints:
        - amount != 0
        - FAMILY rows have a fams; PERSONAL rows have a target_user and no fams
        - payment_provider_id unique when set
        - a row can be reversed at most once
    """

    amount = models.BigIntegerField(
        help_text="Signed amount in cents (negative = debit)",
    )
    type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        db_index=True,
    )
    status = FSMField(
        default=TransactionStatus.PENDING,
        choices=TransactionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Settlement state (managed by FSM)",
    )
    wallet_source = models.CharField(
        max_length=20,
        choices=WalletSource.choices,
        default=WalletSource.PERSONAL,
    )

    # ==========================================================================
    # Parties
    # ==========================================================================

    issuer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="issued_transactions",
    )
    target_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
    )
    fams = models.ForeignKey(
        "accounts.Fams",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
    )
    receiver_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="received_transfers",
    )

    # ==========================================================================
    # Attribution
    # ==========================================================================

    shop = models.ForeignKey(
        "shops.Shop",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
    )
    product_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="External catalog product reference",
    )
    quantity = models.DecimalField(
        max_digits=10,
        decimal_places=3,
        null=True,
        blank=True,
    )
    event = models.ForeignKey(
        "shops.Event",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
    )
    group_id = models.UUIDField(null=True, blank=True, db_index=True)
    reverses = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversal",
    )
    description = models.CharField(max_length=255, blank=True)

    # ==========================================================================
    # Provider Settlement
    # ==========================================================================

    payment_provider = models.CharField(
        max_length=50,
        blank=True,
        help_text="Slug of the provider used for this top-up",
    )
    payment_provider_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Provider reference; settlement idempotency key",
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.CharField(max_length=255, blank=True)

    objects = TransactionQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["target_user", "status"], name="ledger_tx_user_status_idx"),
            models.Index(fields=["fams", "status"], name="ledger_tx_fams_status_idx"),
            models.Index(fields=["shop", "type", "created_at"], name="ledger_tx_shop_window_idx"),
            models.Index(fields=["event", "type"], name="ledger_tx_event_type_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(amount=0),
                name="ledger_transaction_amount_non_zero",
            ),
            models.CheckConstraint(
                condition=(
                    Q(wallet_source=WalletSource.FAMILY, fams__isnull=False)
                    | Q(
                        wallet_source=WalletSource.PERSONAL,
                        fams__isnull=True,
                        target_user__isnull=False,
                    )
                ),
                name="ledger_transaction_wallet_target",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()} {self.amount} cents ({self.status})"

    @property
    def account(self):
        """The User or Fams whose balance this row moves."""
        if self.wallet_source == WalletSource.FAMILY:
            return self.fams
        return self.target_user

    @property
    def is_reversible(self) -> bool:
        return (
            self.status == TransactionStatus.COMPLETED
            and self.reverses_id is None
            and not Transaction.objects.filter(reverses=self).exists()
        )

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=TransactionStatus.PENDING,
        target=TransactionStatus.COMPLETED,
    )
    def complete(self, provider_transaction_id: str | None = None):
        """
        Mark the row as settled.

        Transition: PENDING -> COMPLETED

        The caller applies the balance increment in the same database
        transaction as the save.
        """
        if provider_transaction_id and not self.payment_provider_id:
            self.payment_provider_id = provider_transaction_id
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=TransactionStatus.PENDING,
        target=TransactionStatus.FAILED,
    )
    def fail(self, reason: str = ""):
        """
        Mark the row as failed. No balance effect.

        Transition: PENDING -> FAILED
        """
        self.failure_reason = reason[:255]
