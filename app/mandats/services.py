"""
Mandat lifecycle and stock benefice aggregation.

Per shop, over the mandat window [start_time, end_time]:

    sales    = - sum of COMPLETED PURCHASE/REFUND rows of the shop
    expenses = sum of the shop's expenses dated in the window
    benefice = sales - expenses

The mandat's final_benefice is the sum of per-shop benefice and its
final_stock_value the sum of per-shop closing stock. Opening stock of a new
mandat defaults to the closing stock of the last completed one.

Usage:
    from mandats.services import MandatService

    mandat = MandatService.start({bar: 120_000, kitchen: 40_000})
    summary = MandatService.preview(mandat)
    mandat = MandatService.finalize(mandat, {bar: 95_000, kitchen: 38_000})
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.exceptions import ValidationError
from ledger.models import Transaction, TransactionType
from mandats.exceptions import MandatAlreadyActive, MandatFinalized, NoActiveMandat
from mandats.models import Mandat, MandatShop, MandatStatus
from shops.models import Shop, ShopExpense

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShopFigures:
    shop: Shop
    initial_stock_value: int
    sales: int
    expenses: int
    final_stock_value: int | None = None

    @property
    def benefice(self) -> int:
        return self.sales - self.expenses


@dataclass(frozen=True)
class MandatSummary:
    """Live or final figures of a mandat, per shop and in total."""

    mandat: Mandat
    shops: list[ShopFigures]

    @property
    def sales(self) -> int:
        return sum(s.sales for s in self.shops)

    @property
    def expenses(self) -> int:
        return sum(s.expenses for s in self.shops)

    @property
    def benefice(self) -> int:
        return sum(s.benefice for s in self.shops)


class MandatService:
    """Static methods for starting, previewing and finalizing mandats."""

    @staticmethod
    def get_active() -> Mandat | None:
        return Mandat.objects.filter(status=MandatStatus.ACTIVE).first()

    @staticmethod
    def _previous_closing_stock() -> dict:
        last = (
            Mandat.objects.filter(status=MandatStatus.COMPLETED)
            .order_by("-end_time")
            .first()
        )
        if last is None:
            return {}
        return {
            figures.shop_id: figures.final_stock_value or 0
            for figures in last.shops.all()
        }

    @staticmethod
    def start(
        shop_stock_values: dict[Shop, int] | None = None,
        start_time: datetime | None = None,
    ) -> Mandat:
        """
        Open a new mandat covering every shop.

        Args:
            shop_stock_values: Opening stock per shop in cents; shops left
                out inherit the previous mandat's closing stock (0 if new)
            start_time: Window start, defaults to now

        Raises:
            MandatAlreadyActive: If a mandat is already ACTIVE
        """
        overrides = {shop.pk: value for shop, value in (shop_stock_values or {}).items()}
        if any(value < 0 for value in overrides.values()):
            raise ValidationError("Stock values cannot be negative", error_code="INVALID_STOCK")

        inherited = MandatService._previous_closing_stock()
        opening = {
            shop.pk: overrides.get(shop.pk, inherited.get(shop.pk, 0))
            for shop in Shop.objects.all()
        }

        try:
            with transaction.atomic():
                if Mandat.objects.filter(status=MandatStatus.ACTIVE).exists():
                    raise MandatAlreadyActive("A mandat is already active")
                mandat = Mandat.objects.create(
                    start_time=start_time or timezone.now(),
                    initial_stock_value=sum(opening.values()),
                )
                MandatShop.objects.bulk_create(
                    MandatShop(mandat=mandat, shop_id=shop_id, initial_stock_value=value)
                    for shop_id, value in opening.items()
                )
        except IntegrityError:
            raise MandatAlreadyActive("A mandat is already active")

        logger.info(
            "Mandat started",
            extra={
                "mandat_id": str(mandat.pk),
                "initial_stock_cents": mandat.initial_stock_value,
            },
        )
        return mandat

    @staticmethod
    def shop_figures(shop: Shop, start: datetime, end: datetime) -> tuple[int, int]:
        """(sales, expenses) of ``shop`` between ``start`` and ``end``, in cents."""
        sales = -(
            Transaction.objects.completed()
            .filter(
                shop=shop,
                type__in=(TransactionType.PURCHASE, TransactionType.REFUND),
                created_at__gte=start,
                created_at__lte=end,
            )
            .total()
        )
        expenses = ShopExpense.objects.filter(
            shop=shop,
            date__gte=start,
            date__lte=end,
        ).aggregate(total=Coalesce(Sum("amount"), 0))["total"]
        return sales, expenses

    @staticmethod
    def preview(mandat: Mandat | None = None) -> MandatSummary:
        """
        Figures of a mandat.

        ACTIVE mandats are computed live up to now; COMPLETED mandats
        return their stored figures.

        Raises:
            NoActiveMandat: If no mandat is given and none is active
        """
        mandat = mandat or MandatService.get_active()
        if mandat is None:
            raise NoActiveMandat("No mandat is active")

        rows = mandat.shops.select_related("shop")
        if mandat.status == MandatStatus.COMPLETED:
            return MandatSummary(
                mandat=mandat,
                shops=[
                    ShopFigures(
                        shop=row.shop,
                        initial_stock_value=row.initial_stock_value,
                        sales=row.sales or 0,
                        expenses=row.expenses or 0,
                        final_stock_value=row.final_stock_value,
                    )
                    for row in rows
                ],
            )

        now = timezone.now()
        figures = []
        for row in rows:
            sales, expenses = MandatService.shop_figures(row.shop, mandat.start_time, now)
            figures.append(
                ShopFigures(
                    shop=row.shop,
                    initial_stock_value=row.initial_stock_value,
                    sales=sales,
                    expenses=expenses,
                )
            )
        return MandatSummary(mandat=mandat, shops=figures)

    @staticmethod
    def finalize(
        mandat: Mandat,
        final_stock_values: dict[Shop, int],
        end_time: datetime | None = None,
    ) -> Mandat:
        """
        Close the mandat and freeze its figures.

        Shops that appear in ``final_stock_values`` but were created after
        the mandat started are added with an opening stock of 0.

        Returns:
            The completed mandat

        Raises:
            MandatFinalized: If the mandat is already COMPLETED
            ValidationError: If a shop of the mandat has no closing stock
        """
        closing = {shop.pk: value for shop, value in final_stock_values.items()}

        with transaction.atomic():
            locked = Mandat.objects.select_for_update().get(pk=mandat.pk)
            if locked.status != MandatStatus.ACTIVE:
                raise MandatFinalized(
                    "Mandat is already completed",
                    details={"mandat_id": str(locked.pk)},
                )

            known = set(locked.shops.values_list("shop_id", flat=True))
            MandatShop.objects.bulk_create(
                MandatShop(mandat=locked, shop_id=shop_id, initial_stock_value=0)
                for shop_id in closing.keys() - known
            )

            rows = list(locked.shops.select_related("shop"))
            missing = [str(row.shop_id) for row in rows if row.shop_id not in closing]
            if missing:
                raise ValidationError(
                    "Closing stock is required for every shop",
                    error_code="MISSING_FINAL_STOCK",
                    details={"shop_ids": missing},
                )

            end = end_time or timezone.now()
            total_stock = 0
            total_benefice = 0
            for row in rows:
                sales, expenses = MandatService.shop_figures(row.shop, locked.start_time, end)
                row.sales = sales
                row.expenses = expenses
                row.benefice = sales - expenses
                row.final_stock_value = closing[row.shop_id]
                row.save()
                total_stock += row.final_stock_value
                total_benefice += row.benefice

            locked.final_stock_value = total_stock
            locked.final_benefice = total_benefice
            locked.complete(end_time=end)
            locked.save()

        logger.info(
            "Mandat finalized",
            extra={
                "mandat_id": str(locked.pk),
                "final_stock_cents": total_stock,
                "final_benefice_cents": total_benefice,
            },
        )
        return locked
