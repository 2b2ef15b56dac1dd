"""
Mandat models: period-based stock and profit accounting.

A mandat is the term of one committee. It opens with a stock valuation
per shop and closes with a final valuation plus the sales and expenses
each shop made during the term.

State Machine:
    ACTIVE -> COMPLETED

At most one mandat is ACTIVE at a time (partial unique constraint). Once
COMPLETED, the mandat and its per-shop rows are frozen: their final
figures become the opening stock of the next mandat.
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from mandats.exceptions import MandatFinalized


class MandatStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"


def _is_completed(mandat_id) -> bool:
    return Mandat.objects.filter(pk=mandat_id, status=MandatStatus.COMPLETED).exists()


class Mandat(UUIDPrimaryKeyMixin, BaseModel):
    """
    One accounting period.

    Fields:
        status: ACTIVE or COMPLETED (FSM-managed, protected)
        start_time / end_time: Window used to collect sales and expenses
        initial_stock_value: Sum of per-shop opening stock, in cents
        final_stock_value: Sum of per-shop closing stock, set on finalize
        final_benefice: Sum of per-shop benefice, set on finalize
    """

    status = FSMField(
        default=MandatStatus.ACTIVE,
        choices=MandatStatus.choices,
        protected=True,
    )
    start_time = models.DateTimeField(default=timezone.now)
    end_time = models.DateTimeField(null=True, blank=True)
    initial_stock_value = models.BigIntegerField(default=0)
    final_stock_value = models.BigIntegerField(null=True, blank=True)
    final_benefice = models.BigIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["-start_time"]
        constraints = [
            models.UniqueConstraint(
                fields=["status"],
                condition=Q(status=MandatStatus.ACTIVE),
                name="single_active_mandat",
            ),
        ]

    def __str__(self) -> str:
        return f"Mandat {self.start_time:%Y-%m-%d} ({self.status})"

    def save(self, *args, **kwargs):
        if self.pk and _is_completed(self.pk):
            raise MandatFinalized(
                "Completed mandats cannot be modified",
                details={"mandat_id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    @transition(field=status, source=MandatStatus.ACTIVE, target=MandatStatus.COMPLETED)
    def complete(self, end_time=None):
        """ACTIVE -> COMPLETED. Figures are written by MandatService.finalize()."""
        self.end_time = end_time or timezone.now()


class MandatShop(BaseModel):
    """
    Per-shop figures of a mandat.

    ``sales``, ``expenses``, ``benefice`` and ``final_stock_value`` stay
    null until the mandat is finalized.
    """

    mandat = models.ForeignKey(Mandat, on_delete=models.CASCADE, related_name="shops")
    shop = models.ForeignKey(
        "shops.Shop",
        on_delete=models.PROTECT,
        related_name="mandat_figures",
    )
    initial_stock_value = models.BigIntegerField(default=0)
    final_stock_value = models.BigIntegerField(null=True, blank=True)
    sales = models.BigIntegerField(null=True, blank=True)
    expenses = models.BigIntegerField(null=True, blank=True)
    benefice = models.BigIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["shop__name"]
        constraints = [
            models.UniqueConstraint(
                fields=["mandat", "shop"],
                name="unique_mandat_shop",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.shop} / {self.mandat}"

    def save(self, *args, **kwargs):
        if _is_completed(self.mandat_id):
            raise MandatFinalized(
                "Completed mandats cannot be modified",
                details={"mandat_id": str(self.mandat_id)},
            )
        super().save(*args, **kwargs)
