"""
Shops, events and the inputs of event profit/loss.

Models:
    Shop: A point of sale (bar, kitchen, ticketing)
    Event: A COMMERCIAL or SHARED_COST event run by a shop
    EventParticipant: Member taking part in an event, with a cost weight
    ShopExpense: Money a shop spent, optionally tagged with one event
    EventExpenseSplit: Part of an untagged expense attributed to an event
    EventRevenue: Revenue recorded by hand (cash box, sponsors)

Product catalogs are external; purchases only carry a product id.

Event State Machine:
    DRAFT -> OPEN -> CLOSED -> ARCHIVED

Transitions are one-directional. Events are archived, never deleted.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class EventType(models.TextChoices):
    """
    Values:
        COMMERCIAL: The shop sells to attendees for profit
        SHARED_COST: Participants split the actual cost, settled on close
    """

    COMMERCIAL = "commercial", "Commercial"
    SHARED_COST = "shared_cost", "Shared cost"


class EventStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    OPEN = "open", "Open"
    CLOSED = "closed", "Closed"
    ARCHIVED = "archived", "Archived"


class Shop(UUIDPrimaryKeyMixin, BaseModel):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Event(UUIDPrimaryKeyMixin, BaseModel):
    """
    An event whose finances are aggregated from the ledger.

    Fields:
        shop: Shop running the event; deposits are sold by this shop
        type: COMMERCIAL or SHARED_COST
        status: EventStatus (FSM-managed, protected)
        acompte: Deposit charged to each participant, in cents (0 = none)
        max_participants: Optional cap on EventParticipant rows
        closed_at: When the event was closed and settled
    """

    shop = models.ForeignKey(Shop, on_delete=models.PROTECT, related_name="events")
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    type = models.CharField(
        max_length=20,
        choices=EventType.choices,
        default=EventType.COMMERCIAL,
    )
    status = FSMField(
        default=EventStatus.DRAFT,
        choices=EventStatus.choices,
        db_index=True,
        protected=True,
    )
    acompte = models.BigIntegerField(
        default=0,
        help_text="Deposit per participant in cents",
    )
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)
    max_participants = models.PositiveIntegerField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-start_date"]
        constraints = [
            models.CheckConstraint(
                condition=Q(acompte__gte=0),
                name="shops_event_acompte_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=EventStatus.DRAFT, target=EventStatus.OPEN)
    def open(self):
        """DRAFT -> OPEN. Deposits are charged by EventService.activate()."""

    @transition(field=status, source=EventStatus.OPEN, target=EventStatus.CLOSED)
    def close(self):
        """OPEN -> CLOSED. Settlement runs in the same database transaction."""
        self.closed_at = timezone.now()

    @transition(field=status, source=EventStatus.CLOSED, target=EventStatus.ARCHIVED)
    def archive(self):
        """CLOSED -> ARCHIVED."""


class EventParticipant(BaseModel):
    """
    Participation in an event.

    ``weight`` is the participant's number of shares when a SHARED_COST
    event's expenses are split (a +1 guest counts as weight 2).
    """

    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name="participants",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="event_participations",
    )
    weight = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "user"],
                name="unique_event_participant",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user} @ {self.event}"

    @property
    def joined_at(self):
        return self.created_at


class ShopExpense(UUIDPrimaryKeyMixin, BaseModel):
    """Money spent by a shop. Tagged with an event when bought for it."""

    shop = models.ForeignKey(Shop, on_delete=models.PROTECT, related_name="expenses")
    issuer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="shop_expenses",
    )
    event = models.ForeignKey(
        Event,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="expenses",
    )
    amount = models.PositiveBigIntegerField(help_text="Cost in cents")
    description = models.CharField(max_length=255, blank=True)
    date = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-date"]

    def __str__(self) -> str:
        return f"{self.shop}: {self.amount} cents"


class EventExpenseSplit(BaseModel):
    """Share of a shop expense attributed to an event."""

    expense = models.ForeignKey(
        ShopExpense,
        on_delete=models.CASCADE,
        related_name="splits",
    )
    event = models.ForeignKey(
        Event,
        on_delete=models.PROTECT,
        related_name="expense_splits",
    )
    amount = models.PositiveBigIntegerField(help_text="Attributed cost in cents")

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["expense", "event"],
                name="unique_expense_split_per_event",
            ),
        ]


class EventRevenue(UUIDPrimaryKeyMixin, BaseModel):
    """Revenue entered by hand for an event."""

    event = models.ForeignKey(
        Event,
        on_delete=models.PROTECT,
        related_name="revenues",
    )
    shop = models.ForeignKey(Shop, on_delete=models.PROTECT, related_name="revenues")
    issuer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="event_revenues",
    )
    amount = models.PositiveBigIntegerField(help_text="Revenue in cents")
    description = models.CharField(max_length=255, blank=True)
    date = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-date"]
