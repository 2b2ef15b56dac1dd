"""
Event lifecycle and profit/loss aggregation.

EventService drives an event from DRAFT to ARCHIVED and computes its
figures from the ledger:

    revenue  = manual revenue entries
               - sum of COMPLETED PURCHASE/REFUND rows tagged with the event
    expenses = shop expenses tagged with the event + expense splits
    profit   = revenue - expenses

COMMERCIAL and SHARED_COST events use the same revenue formula. What
differs is what happens on close: when a deposit (acompte) was collected,
each participant's deposit is reconciled against their weighted share of
the expenses.

Deposit rows (charges, leave refunds, settlement rows) carry the event id
as their group_id, so a participant's net deposit is a single ledger sum.

Usage:
    from shops.services import EventService

    event = EventService.create_event(shop, "Gala", EventType.SHARED_COST, acompte=3000)
    EventService.join(event, user, issuer=user)
    event = EventService.activate(event, issuer=organizer)
    stats = EventService.get_stats(event)
    event, lines = EventService.close(event, issuer=organizer)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django_fsm import TransitionNotAllowed

from core.exceptions import ValidationError
from ledger.exceptions import InsufficientFunds
from ledger.models import Transaction, TransactionType, WalletSource
from ledger.services import ledger
from ledger.types import TransactionDraft
from shops.exceptions import (
    AlreadyParticipant,
    EventFull,
    InvalidEventState,
    InvalidExpenseSplit,
    NotAParticipant,
)
from shops.models import (
    Event,
    EventExpenseSplit,
    EventParticipant,
    EventRevenue,
    EventStatus,
    EventType,
    ShopExpense,
)

if TYPE_CHECKING:
    from datetime import datetime

    from accounts.models import User
    from shops.models import Shop

logger = logging.getLogger(__name__)

SALES_TYPES = (TransactionType.PURCHASE, TransactionType.REFUND)


def _sum_amount(queryset) -> int:
    return queryset.aggregate(total=Coalesce(Sum("amount"), 0))["total"]


@dataclass(frozen=True)
class EventStats:
    """Profit/loss figures for one event, in cents."""

    manual_revenue: int
    sales_revenue: int
    direct_expenses: int
    split_expenses: int

    @property
    def revenue(self) -> int:
        return self.manual_revenue + self.sales_revenue

    @property
    def expenses(self) -> int:
        return self.direct_expenses + self.split_expenses

    @property
    def profit(self) -> int:
        return self.revenue - self.expenses


@dataclass(frozen=True)
class SettlementLine:
    """
    One participant's deposit reconciliation.

    ``diff`` > 0 is refunded, ``diff`` < 0 is charged.
    """

    user: User
    weight: int
    share: int
    paid: int

    @property
    def diff(self) -> int:
        return self.paid - self.share


class EventService:
    """Static methods for the event lifecycle and its aggregations."""

    # ==========================================================================
    # Setup and inputs
    # ==========================================================================

    @staticmethod
    def create_event(
        shop: Shop,
        name: str,
        type: str = EventType.COMMERCIAL,
        acompte: int = 0,
        **fields,
    ) -> Event:
        if acompte < 0:
            raise ValidationError(
                "Deposit cannot be negative",
                error_code="INVALID_ACOMPTE",
                details={"acompte": acompte},
            )
        return Event.objects.create(shop=shop, name=name, type=type, acompte=acompte, **fields)

    @staticmethod
    def add_revenue(
        event: Event,
        issuer: User,
        amount: int,
        description: str = "",
        date: datetime | None = None,
    ) -> EventRevenue:
        extra = {"date": date} if date else {}
        return EventRevenue.objects.create(
            event=event,
            shop=event.shop,
            issuer=issuer,
            amount=amount,
            description=description,
            **extra,
        )

    @staticmethod
    def add_expense(
        shop: Shop,
        issuer: User,
        amount: int,
        description: str = "",
        event: Event | None = None,
        date: datetime | None = None,
    ) -> ShopExpense:
        extra = {"date": date} if date else {}
        return ShopExpense.objects.create(
            shop=shop,
            issuer=issuer,
            amount=amount,
            description=description,
            event=event,
            **extra,
        )

    @staticmethod
    @transaction.atomic
    def split_expense(
        expense: ShopExpense,
        allocations: dict[Event, int],
    ) -> list[EventExpenseSplit]:
        """
        Attribute parts of an untagged expense to events.

        Raises:
            InvalidExpenseSplit: If the expense is already tagged with an
                event, or the splits exceed its amount
        """
        if expense.event_id is not None:
            raise InvalidExpenseSplit(
                "Expense is already attributed to an event",
                details={"expense_id": str(expense.id), "event_id": str(expense.event_id)},
            )
        already_split = _sum_amount(expense.splits.exclude(event__in=list(allocations)))
        requested = sum(allocations.values())
        if any(amount <= 0 for amount in allocations.values()):
            raise InvalidExpenseSplit("Split amounts must be positive")
        if already_split + requested > expense.amount:
            raise InvalidExpenseSplit(
                "Splits exceed the expense amount",
                details={
                    "expense_cents": expense.amount,
                    "split_cents": already_split + requested,
                },
            )
        splits = []
        for event, amount in allocations.items():
            split, _ = EventExpenseSplit.objects.update_or_create(
                expense=expense,
                event=event,
                defaults={"amount": amount},
            )
            splits.append(split)
        return splits

    # ==========================================================================
    # Aggregation
    # ==========================================================================

    @staticmethod
    def get_stats(event: Event) -> EventStats:
        """
        Compute revenue, expenses and profit for an event.

        Only COMPLETED ledger rows count. Refunds and purchase reversals
        tagged with the event reduce sales revenue.
        """
        tagged_sales = Transaction.objects.completed().filter(
            event=event,
            type__in=SALES_TYPES,
        )
        if event.type in (EventType.SHARED_COST, EventType.COMMERCIAL):
            sales_revenue = -tagged_sales.total()
        else:
            sales_revenue = 0

        return EventStats(
            manual_revenue=_sum_amount(EventRevenue.objects.filter(event=event)),
            sales_revenue=sales_revenue,
            direct_expenses=_sum_amount(ShopExpense.objects.filter(event=event)),
            split_expenses=_sum_amount(EventExpenseSplit.objects.filter(event=event)),
        )

    @staticmethod
    def deposit_paid(event: Event, user: User) -> int:
        """Net deposit ``user`` has paid for ``event``, in cents."""
        return -(
            Transaction.objects.completed()
            .filter(
                group_id=event.pk,
                wallet_source=WalletSource.PERSONAL,
                target_user=user,
                type__in=SALES_TYPES,
            )
            .total()
        )

    @staticmethod
    def preview_settlement(event: Event) -> list[SettlementLine]:
        """
        Per-participant reconciliation of deposits against actual spend.

        share = round(expenses * weight / total weight), half up.
        """
        participants = list(event.participants.select_related("user"))
        total_weight = sum(p.weight for p in participants)
        if total_weight == 0:
            return []

        expenses = Decimal(EventService.get_stats(event).expenses)
        lines = []
        for participant in participants:
            share = (expenses * participant.weight / total_weight).quantize(
                Decimal("1"), rounding=ROUND_HALF_UP
            )
            lines.append(
                SettlementLine(
                    user=participant.user,
                    weight=participant.weight,
                    share=int(share),
                    paid=EventService.deposit_paid(event, participant.user),
                )
            )
        return lines

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    @staticmethod
    def _lock(event: Event) -> Event:
        return Event.objects.select_for_update().select_related("shop").get(pk=event.pk)

    @staticmethod
    def _deposit_draft(event: Event, user: User, issuer: User, amount: int) -> TransactionDraft:
        return TransactionDraft(
            amount=-amount,
            type=TransactionType.PURCHASE,
            issuer=issuer,
            target_user=user,
            shop=event.shop,
            event=event,
            group_id=event.pk,
            description=f"Deposit: {event.name}",
        )

    @staticmethod
    def join(event: Event, user: User, issuer: User, weight: int = 1) -> EventParticipant:
        """
        Add a participant; charges the deposit when the event is OPEN.

        Raises:
            InvalidEventState: Event is CLOSED or ARCHIVED
            EventFull: max_participants reached
            AlreadyParticipant: User already joined
            InsufficientFunds: Deposit cannot be paid (nothing is saved)
        """
        with transaction.atomic():
            locked = EventService._lock(event)
            if locked.status not in (EventStatus.DRAFT, EventStatus.OPEN):
                raise InvalidEventState(
                    f"Cannot join an event in status {locked.status}",
                    details={"event_id": str(locked.pk), "status": locked.status},
                )
            if (
                locked.max_participants is not None
                and locked.participants.count() >= locked.max_participants
            ):
                raise EventFull(
                    f"{locked.name} is full",
                    details={"max_participants": locked.max_participants},
                )
            try:
                with transaction.atomic():
                    participant = EventParticipant.objects.create(
                        event=locked, user=user, weight=weight
                    )
            except IntegrityError:
                raise AlreadyParticipant(
                    f"{user} already takes part in {locked.name}",
                    details={"event_id": str(locked.pk), "user_id": str(user.pk)},
                )

            if locked.status == EventStatus.OPEN and locked.acompte > 0:
                ledger.record(EventService._deposit_draft(locked, user, issuer, locked.acompte))

        logger.info(
            "Participant joined event",
            extra={"event_id": str(locked.pk), "user_id": str(user.pk), "weight": weight},
        )
        return participant

    @staticmethod
    def leave(event: Event, user: User, issuer: User) -> int:
        """
        Remove a participant and refund the net deposit they paid.

        Returns:
            The refunded amount in cents (0 when nothing was paid)
        """
        with transaction.atomic():
            locked = EventService._lock(event)
            if locked.status not in (EventStatus.DRAFT, EventStatus.OPEN):
                raise InvalidEventState(
                    f"Cannot leave an event in status {locked.status}",
                    details={"event_id": str(locked.pk), "status": locked.status},
                )
            deleted, _ = EventParticipant.objects.filter(event=locked, user=user).delete()
            if not deleted:
                raise NotAParticipant(
                    f"{user} does not take part in {locked.name}",
                    details={"event_id": str(locked.pk), "user_id": str(user.pk)},
                )

            paid = EventService.deposit_paid(locked, user)
            if paid > 0:
                ledger.record(
                    TransactionDraft(
                        amount=paid,
                        type=TransactionType.REFUND,
                        issuer=issuer,
                        target_user=user,
                        shop=locked.shop,
                        event=locked,
                        group_id=locked.pk,
                        description=f"Deposit refund: {locked.name}",
                    )
                )
        return max(paid, 0)

    @staticmethod
    def activate(event: Event, issuer: User) -> Event:
        """
        Open the event and charge the deposit to every participant who
        has not paid it yet.

        All-or-nothing: if any participant cannot pay, no one is charged,
        the event stays DRAFT and InsufficientFunds lists who failed.

        Returns:
            The updated event
        """
        with transaction.atomic():
            locked = EventService._lock(event)
            try:
                locked.open()
            except TransitionNotAllowed:
                raise InvalidEventState(
                    f"Only draft events can be opened (status: {locked.status})",
                    details={"event_id": str(locked.pk), "status": locked.status},
                )

            failures: list[InsufficientFunds] = []
            if locked.acompte > 0:
                for participant in locked.participants.select_related("user"):
                    due = locked.acompte - EventService.deposit_paid(locked, participant.user)
                    if due <= 0:
                        continue
                    try:
                        with transaction.atomic():
                            ledger.record(
                                EventService._deposit_draft(
                                    locked, participant.user, issuer, due
                                )
                            )
                    except InsufficientFunds as exc:
                        failures.append(exc)

            if failures:
                first = failures[0]
                raise InsufficientFunds(
                    first.account_id,
                    required=first.required,
                    available=first.available,
                    details={"user_ids": [str(f.account_id) for f in failures]},
                )

            locked.save()

        logger.info("Event opened", extra={"event_id": str(locked.pk)})
        return locked

    @staticmethod
    def close(event: Event, issuer: User) -> tuple[Event, list[SettlementLine]]:
        """
        Close the event and settle deposits.

        When a deposit was collected, each participant's net deposit is
        compared with their weighted share of the expenses: overpayments
        are refunded (REFUND), shortfalls are charged (ADJUSTMENT, may go
        negative). Rows and status change commit together.

        Returns:
            (updated event, settlement lines)
        """
        with transaction.atomic():
            locked = EventService._lock(event)
            try:
                locked.close()
            except TransitionNotAllowed:
                raise InvalidEventState(
                    f"Only open events can be closed (status: {locked.status})",
                    details={"event_id": str(locked.pk), "status": locked.status},
                )

            lines = EventService.preview_settlement(locked) if locked.acompte > 0 else []
            drafts = [
                TransactionDraft(
                    amount=line.diff,
                    type=(
                        TransactionType.REFUND
                        if line.diff > 0
                        else TransactionType.ADJUSTMENT
                    ),
                    issuer=issuer,
                    target_user=line.user,
                    shop=locked.shop,
                    group_id=locked.pk,
                    description=f"Settlement: {locked.name}",
                )
                for line in lines
                if line.diff != 0
            ]
            ledger.record_many(drafts)
            locked.save()

        logger.info(
            "Event closed",
            extra={"event_id": str(locked.pk), "settlement_rows": len(drafts)},
        )
        return locked, lines

    @staticmethod
    def archive(event: Event) -> Event:
        with transaction.atomic():
            locked = EventService._lock(event)
            try:
                locked.archive()
            except TransitionNotAllowed:
                raise InvalidEventState(
                    f"Only closed events can be archived (status: {locked.status})",
                    details={"event_id": str(locked.pk), "status": locked.status},
                )
            locked.save()
        return locked
