"""
Ledger service layer.

LedgerService is the single entry point for writing transactions. Every
operation validates its input, writes its rows and applies the matching
balance changes inside one ``transaction.atomic()`` block: either all rows
and all balance changes land, or none do.

Usage:
    from ledger.services import ledger
    from ledger.types import PurchaseLine

    ledger.transfer(tyrion, sansa, 5000)
    ledger.purchase(
        shop=bar,
        issuer=cashier,
        target_user=customer,
        lines=[PurchaseLine(unit_price=250, quantity=2)],
    )
    ledger.adjust(admin, customer, -300, "Broken glass")
    ledger.reverse(purchase_row, performed_by=admin)
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from django.db import transaction

from accounts.models import Fams, FamsMembership
from ledger import balances
from ledger.exceptions import (
    InactiveAccount,
    InvalidAmount,
    InvalidTransactionState,
    InvalidTransfer,
    NotAFamsMember,
    TransactionNotFound,
)
from ledger.models import (
    Transaction,
    TransactionStatus,
    TransactionType,
    WalletSource,
)
from ledger.types import PurchaseLine, TransactionDraft

if TYPE_CHECKING:
    from collections.abc import Iterable

    from accounts.models import User
    from shops.models import Shop

logger = logging.getLogger(__name__)

# Sign each transaction type must carry; None means either sign
AMOUNT_SIGN = {
    TransactionType.TOPUP: 1,
    TransactionType.PURCHASE: -1,
    TransactionType.REFUND: 1,
    TransactionType.TRANSFER: None,
    TransactionType.ADJUSTMENT: None,
}


class LedgerService:
    """
    Service class for ledger writes and balance reads.

    Key features:
    - Atomic multi-row writes (transfers, carts, mass adjustments)
    - Guarded atomic balance updates (no lost updates, no overdrafts)
    - Reversal by compensating rows; originals are never edited

    All methods are static - no instance state is maintained.
    """

    # ==========================================================================
    # Recording
    # ==========================================================================

    @staticmethod
    def _validate_draft(draft: TransactionDraft) -> None:
        expected_sign = AMOUNT_SIGN[draft.type]
        if expected_sign is not None and (draft.amount > 0) != (expected_sign > 0):
            raise InvalidAmount(
                f"{draft.type} amounts must be "
                f"{'positive' if expected_sign > 0 else 'negative'}",
                details={"type": draft.type, "amount_cents": draft.amount},
            )

    @staticmethod
    def record(draft: TransactionDraft) -> Transaction:
        """
        Write one ledger row.

        COMPLETED drafts move the balance immediately; PENDING top-ups wait
        for provider settlement.

        Raises:
            InvalidAmount: If the sign does not match the transaction type
            AccountNotFound: If the target account does not exist
            InsufficientFunds: If a non-adjustment debit would overdraw
        """
        return LedgerService.record_many([draft])[0]

    @staticmethod
    def record_many(drafts: list[TransactionDraft]) -> list[Transaction]:
        """
        Write several ledger rows atomically.

        Balance checks run against the netted change per account, so the
        batch either fits entirely or fails entirely.
        """
        if not drafts:
            return []

        for draft in drafts:
            LedgerService._validate_draft(draft)

        with transaction.atomic():
            balances.apply_many(
                (draft.account, draft.amount, draft.allows_negative)
                for draft in drafts
                if draft.status == TransactionStatus.COMPLETED
            )
            rows = [LedgerService._create_row(draft) for draft in drafts]

        for row in rows:
            logger.info(
                "Ledger row recorded",
                extra={
                    "transaction_id": str(row.id),
                    "type": row.type,
                    "status": row.status,
                    "amount_cents": row.amount,
                    "wallet_source": row.wallet_source,
                    "account_id": str(row.fams_id or row.target_user_id),
                },
            )
        return rows

    @staticmethod
    def _create_row(draft: TransactionDraft) -> Transaction:
        return Transaction.objects.create(
            amount=draft.amount,
            type=draft.type,
            status=draft.status,
            wallet_source=draft.wallet_source,
            issuer=draft.issuer,
            target_user=draft.target_user,
            fams=draft.fams,
            receiver_user=draft.receiver_user,
            shop=draft.shop,
            product_id=draft.product_id,
            quantity=draft.quantity,
            event=draft.event,
            group_id=draft.group_id,
            reverses_id=draft.reverses_id,
            description=draft.description[:255],
            payment_provider=draft.payment_provider,
        )

    # ==========================================================================
    # Account checks
    # ==========================================================================

    @staticmethod
    def _ensure_can_spend(user: User) -> None:
        if not user.is_active or user.is_asleep:
            raise InactiveAccount(
                f"Account {user.pk} cannot be used for payments",
                details={
                    "account_id": str(user.pk),
                    "is_active": user.is_active,
                    "is_asleep": user.is_asleep,
                },
            )

    @staticmethod
    def _ensure_positive(amount_cents: int) -> None:
        if amount_cents <= 0:
            raise InvalidAmount(
                "Amount must be positive",
                details={"amount_cents": amount_cents},
            )

    # ==========================================================================
    # Operations
    # ==========================================================================

    @staticmethod
    def transfer(
        sender: User,
        receiver: User,
        amount_cents: int,
        description: str = "",
    ) -> list[Transaction]:
        """
        Move money between two personal wallets.

        Writes two TRANSFER rows sharing a group_id: a debit on the
        sender's own account and a credit on the receiver's. Both rows land
        or neither does.

        Returns:
            [debit_row, credit_row]

        Raises:
            InvalidTransfer: If sender and receiver are the same user
            InactiveAccount: If either side is deleted or dormant
            InsufficientFunds: If the sender cannot cover the amount
        """
        LedgerService._ensure_positive(amount_cents)
        if sender.pk == receiver.pk:
            raise InvalidTransfer(
                "Cannot transfer money to yourself",
                details={"user_id": str(sender.pk)},
            )
        LedgerService._ensure_can_spend(sender)
        LedgerService._ensure_can_spend(receiver)

        group_id = uuid.uuid4()
        return LedgerService.record_many(
            [
                TransactionDraft(
                    amount=-amount_cents,
                    type=TransactionType.TRANSFER,
                    issuer=sender,
                    target_user=sender,
                    receiver_user=receiver,
                    group_id=group_id,
                    description=description or f"Transfer to {receiver.get_full_name()}",
                ),
                TransactionDraft(
                    amount=amount_cents,
                    type=TransactionType.TRANSFER,
                    issuer=sender,
                    target_user=receiver,
                    receiver_user=receiver,
                    group_id=group_id,
                    description=description or f"Transfer from {sender.get_full_name()}",
                ),
            ]
        )

    @staticmethod
    def transfer_to_fams(
        sender: User,
        fams: Fams,
        amount_cents: int,
        description: str = "",
    ) -> list[Transaction]:
        """
        Deposit from a personal wallet into a fams wallet.

        Returns:
            [personal_debit_row, fams_credit_row]
        """
        LedgerService._ensure_positive(amount_cents)
        LedgerService._ensure_can_spend(sender)

        group_id = uuid.uuid4()
        return LedgerService.record_many(
            [
                TransactionDraft(
                    amount=-amount_cents,
                    type=TransactionType.TRANSFER,
                    issuer=sender,
                    target_user=sender,
                    group_id=group_id,
                    description=description or f"Deposit to {fams.name}",
                ),
                TransactionDraft(
                    amount=amount_cents,
                    type=TransactionType.TRANSFER,
                    issuer=sender,
                    target_user=sender,
                    fams=fams,
                    group_id=group_id,
                    description=description or f"Deposit from {sender.get_full_name()}",
                ),
            ]
        )

    @staticmethod
    def top_up(
        issuer: User,
        target_user: User,
        amount_cents: int,
        description: str = "Cash top-up",
    ) -> Transaction:
        """Record a cashier top-up (cash, card terminal). Completed at once."""
        LedgerService._ensure_positive(amount_cents)
        return LedgerService.record(
            TransactionDraft(
                amount=amount_cents,
                type=TransactionType.TOPUP,
                issuer=issuer,
                target_user=target_user,
                description=description,
            )
        )

    @staticmethod
    def purchase(
        shop: Shop,
        issuer: User,
        target_user: User,
        lines: list[PurchaseLine],
        wallet_source: str = WalletSource.PERSONAL,
        fams: Fams | None = None,
    ) -> list[Transaction]:
        """
        Debit a cart from a personal or fams wallet.

        One PURCHASE row per line, all sharing a group_id. A line is
        attributed to its event only while that event is OPEN.

        Raises:
            InvalidAmount: Empty cart or a line worth less than a cent
            NotAFamsMember: FAMILY purchase by a non-member
            InactiveAccount: Deleted or dormant customer
            InsufficientFunds: Cart total exceeds the wallet balance
        """
        from shops.models import EventStatus

        if not lines:
            raise InvalidAmount("A purchase needs at least one line")
        LedgerService._ensure_can_spend(target_user)

        if wallet_source == WalletSource.FAMILY:
            if fams is None:
                raise InvalidAmount("A fams purchase needs a fams wallet")
            if not FamsMembership.objects.filter(fams=fams, user=target_user).exists():
                raise NotAFamsMember(
                    f"{target_user} is not a member of {fams}",
                    details={"fams_id": str(fams.pk), "user_id": str(target_user.pk)},
                )
        else:
            fams = None

        group_id = uuid.uuid4()
        drafts = []
        for line in lines:
            if line.total <= 0:
                raise InvalidAmount(
                    "Line total rounds to zero",
                    details={"unit_price": line.unit_price, "quantity": str(line.quantity)},
                )
            event = line.event
            if event is not None and event.status != EventStatus.OPEN:
                event = None
            drafts.append(
                TransactionDraft(
                    amount=-line.total,
                    type=TransactionType.PURCHASE,
                    issuer=issuer,
                    target_user=target_user,
                    fams=fams,
                    shop=shop,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    event=event,
                    group_id=group_id,
                    description=line.label,
                )
            )
        return LedgerService.record_many(drafts)

    @staticmethod
    def adjust(
        issuer: User,
        account: User | Fams,
        amount_cents: int,
        description: str,
        group_id: uuid.UUID | None = None,
    ) -> Transaction:
        """
        Administrative signed correction on a user or fams.

        May drive the balance negative. Dormant users can be adjusted;
        deleted (inactive) users cannot.
        """
        if amount_cents == 0:
            raise InvalidAmount("Adjustment amount must not be zero")
        if not isinstance(account, Fams) and not account.is_active:
            raise InactiveAccount(
                f"Account {account.pk} is deleted",
                details={"account_id": str(account.pk)},
            )
        return LedgerService.record(
            TransactionDraft(
                amount=amount_cents,
                type=TransactionType.ADJUSTMENT,
                issuer=issuer,
                target_user=None if isinstance(account, Fams) else account,
                fams=account if isinstance(account, Fams) else None,
                group_id=group_id,
                description=description,
            )
        )

    @staticmethod
    def adjust_many(
        issuer: User,
        accounts: Iterable[User | Fams],
        amount_cents: int,
        description: str,
    ) -> list[Transaction]:
        """
        Apply the same adjustment to many accounts as one mass operation.

        All rows share a group_id so the whole operation can be reversed
        with reverse_group().
        """
        group_id = uuid.uuid4()
        with transaction.atomic():
            return [
                LedgerService.adjust(issuer, account, amount_cents, description, group_id)
                for account in accounts
            ]

    @staticmethod
    def set_balance(
        issuer: User,
        account: User | Fams,
        new_balance: int,
        description: str = "Balance correction",
    ) -> Transaction | None:
        """
        Bring an account to an exact balance through an ADJUSTMENT.

        The account row is locked while the delta is computed, so a
        concurrent write cannot slip in between the read and the update.

        Returns:
            The adjustment row, or None when the balance already matches
        """
        with transaction.atomic():
            locked = balances.lock(account)
            delta = new_balance - locked.balance
            if delta == 0:
                return None
            row = LedgerService.adjust(issuer, locked, delta, description)
        account.balance = new_balance
        return row

    # ==========================================================================
    # Reversal
    # ==========================================================================

    @staticmethod
    def _reversal_draft(row: Transaction, performed_by: User, description: str) -> TransactionDraft:
        return TransactionDraft(
            amount=-row.amount,
            type=(
                TransactionType.REFUND
                if row.type == TransactionType.PURCHASE
                else TransactionType.ADJUSTMENT
            ),
            issuer=performed_by,
            target_user=row.target_user,
            fams=row.fams,
            receiver_user=row.receiver_user,
            shop=row.shop,
            product_id=row.product_id,
            quantity=row.quantity,
            event=row.event,
            group_id=row.group_id,
            reverses_id=row.id,
            description=description or f"Reversal of {row.id}",
        )

    @staticmethod
    def _ensure_reversible(row: Transaction) -> None:
        if row.status != TransactionStatus.COMPLETED:
            raise InvalidTransactionState(
                f"Only completed transactions can be reversed (status: {row.status})",
                details={"transaction_id": str(row.id), "status": row.status},
            )
        if row.reverses_id is not None:
            raise InvalidTransactionState(
                "A reversal cannot itself be reversed",
                details={"transaction_id": str(row.id)},
            )
        if Transaction.objects.filter(reverses=row).exists():
            raise InvalidTransactionState(
                "Transaction already reversed",
                error_code="ALREADY_REVERSED",
                details={"transaction_id": str(row.id)},
            )

    @staticmethod
    def reverse(
        row: Transaction,
        performed_by: User,
        description: str = "",
    ) -> list[Transaction]:
        """
        Cancel a completed transaction by writing its compensating row.

        Purchases are compensated with a REFUND, everything else with an
        ADJUSTMENT. A TRANSFER is reversed together with its other leg.

        Returns:
            The compensating rows

        Raises:
            InvalidTransactionState: Not COMPLETED, already reversed, or
                itself a reversal
        """
        with transaction.atomic():
            locked = Transaction.objects.select_for_update().get(pk=row.pk)
            if locked.type == TransactionType.TRANSFER and locked.group_id:
                legs = list(
                    Transaction.objects.select_for_update()
                    .filter(group_id=locked.group_id, type=TransactionType.TRANSFER)
                    .order_by("id")
                )
            else:
                legs = [locked]

            for leg in legs:
                LedgerService._ensure_reversible(leg)

            reversals = LedgerService.record_many(
                [LedgerService._reversal_draft(leg, performed_by, description) for leg in legs]
            )

        logger.info(
            "Transaction reversed",
            extra={
                "transaction_id": str(row.pk),
                "reversal_ids": [str(r.id) for r in reversals],
                "performed_by": str(performed_by.pk),
            },
        )
        return reversals

    @staticmethod
    def reverse_group(
        group_id: uuid.UUID,
        performed_by: User,
        description: str = "",
    ) -> list[Transaction]:
        """
        Reverse every outstanding row of a mass operation or cart.

        Rows already reversed are skipped.

        Raises:
            TransactionNotFound: If nothing in the group can be reversed
        """
        with transaction.atomic():
            rows = list(
                Transaction.objects.select_for_update(of=("self",))
                .filter(
                    group_id=group_id,
                    status=TransactionStatus.COMPLETED,
                    reverses__isnull=True,
                    reversal__isnull=True,
                )
                .order_by("id")
            )
            if not rows:
                raise TransactionNotFound(
                    f"No reversible transactions in group {group_id}",
                    details={"group_id": str(group_id)},
                )
            return LedgerService.record_many(
                [LedgerService._reversal_draft(row, performed_by, description) for row in rows]
            )

    # ==========================================================================
    # Reads
    # ==========================================================================

    @staticmethod
    def get_balance(account: User | Fams) -> int:
        """
        Current committed balance in cents.

        Raises:
            AccountNotFound: If the account does not exist
        """
        return balances.current_balance(account)

    @staticmethod
    def compute_balance(account: User | Fams) -> int:
        """Sum of the account's COMPLETED rows; equals get_balance() when consistent."""
        return Transaction.objects.for_account(account).completed().total()

    @staticmethod
    def get_transaction(transaction_id: uuid.UUID) -> Transaction:
        try:
            return Transaction.objects.get(pk=transaction_id)
        except Transaction.DoesNotExist:
            raise TransactionNotFound(
                f"Transaction {transaction_id} not found",
                details={"transaction_id": str(transaction_id)},
            )

    @staticmethod
    def get_transactions(
        account: User | Fams,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Transaction]:
        """Rows targeting the account, newest first."""
        return list(
            Transaction.objects.for_account(account)
            .select_related("shop", "event", "issuer")
            .order_by("-created_at")[offset : offset + limit]
        )


# Singleton instance for convenience
# Usage: from ledger.services import ledger
ledger = LedgerService()
