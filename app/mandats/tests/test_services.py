"""
Tests for MandatService.

Time windows are pinned with freezegun: sales and expenses only count
between the mandat's start_time and its end (now, for a live preview).
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from core.exceptions import ValidationError
from ledger.services import ledger
from ledger.types import PurchaseLine
from mandats.exceptions import MandatAlreadyActive, MandatFinalized, NoActiveMandat
from mandats.models import Mandat, MandatShop, MandatStatus
from mandats.services import MandatService
from mandats.tests.factories import MandatFactory, MandatShopFactory
from shops.services import EventService
from shops.tests.factories import ShopFactory


def sell(shop, cashier, customer, unit_price, quantity=1):
    return ledger.purchase(
        shop, cashier, customer, [PurchaseLine(unit_price=unit_price, quantity=quantity)]
    )


# =============================================================================
# Start
# =============================================================================


class TestStart:
    def test_opening_stock_per_shop(self, bar, kitchen):
        mandat = MandatService.start({bar: 120_000, kitchen: 40_000})

        assert mandat.status == MandatStatus.ACTIVE
        assert mandat.initial_stock_value == 160_000
        assert MandatShop.objects.get(mandat=mandat, shop=bar).initial_stock_value == 120_000
        assert MandatShop.objects.get(mandat=mandat, shop=kitchen).initial_stock_value == 40_000

    def test_shops_without_value_start_at_zero(self, bar, kitchen):
        mandat = MandatService.start({bar: 120_000})

        assert MandatShop.objects.get(mandat=mandat, shop=kitchen).initial_stock_value == 0

    def test_only_one_active_mandat(self, bar):
        MandatFactory()

        with pytest.raises(MandatAlreadyActive):
            MandatService.start({bar: 1000})

        assert Mandat.objects.count() == 1

    def test_inherits_previous_closing_stock(self, bar, kitchen):
        with freeze_time("2025-09-01 09:00"):
            previous = MandatService.start({bar: 100_000, kitchen: 30_000})
        with freeze_time("2026-06-30 18:00"):
            MandatService.finalize(previous, {bar: 95_000, kitchen: 38_000})

        with freeze_time("2026-07-01 09:00"):
            mandat = MandatService.start({kitchen: 10_000})

        assert MandatShop.objects.get(mandat=mandat, shop=bar).initial_stock_value == 95_000
        assert MandatShop.objects.get(mandat=mandat, shop=kitchen).initial_stock_value == 10_000
        assert mandat.initial_stock_value == 105_000

    def test_negative_stock_rejected(self, bar):
        with pytest.raises(ValidationError) as exc_info:
            MandatService.start({bar: -1})

        assert exc_info.value.error_code == "INVALID_STOCK"
        assert not Mandat.objects.exists()


# =============================================================================
# Preview
# =============================================================================


class TestPreview:
    def test_live_figures_of_active_mandat(self, bar, cashier, customer):
        with freeze_time("2026-01-01 09:00"):
            mandat = MandatFactory()
            MandatShopFactory(mandat=mandat, shop=bar, initial_stock_value=5000)

        with freeze_time("2026-02-14 20:00"):
            sell(bar, cashier, customer, 450, quantity=2)
            EventService.add_expense(bar, cashier, 300, "Lemons")
            summary = MandatService.preview()

        assert summary.mandat == mandat
        [figures] = summary.shops
        assert figures.initial_stock_value == 5000
        assert figures.sales == 900
        assert figures.expenses == 300
        assert figures.benefice == 600
        assert summary.benefice == 600

    def test_activity_before_start_is_ignored(self, bar, cashier, customer):
        with freeze_time("2025-12-31 23:00"):
            sell(bar, cashier, customer, 1000)
            EventService.add_expense(bar, cashier, 400)
        with freeze_time("2026-01-01 09:00"):
            mandat = MandatService.start({bar: 0})

        with freeze_time("2026-01-02 09:00"):
            summary = MandatService.preview(mandat)

        assert summary.sales == 0
        assert summary.expenses == 0

    def test_refunds_reduce_sales(self, bar, cashier, customer):
        with freeze_time("2026-01-01 09:00"):
            mandat = MandatService.start({bar: 0})
        with freeze_time("2026-01-05 12:00"):
            sell(bar, cashier, customer, 1000)
            [refunded] = sell(bar, cashier, customer, 250)
            ledger.reverse(refunded, cashier)
            summary = MandatService.preview(mandat)

        assert summary.sales == 1000

    def test_completed_mandat_returns_stored_figures(self, bar, cashier, customer):
        with freeze_time("2026-01-01 09:00"):
            mandat = MandatService.start({bar: 0})
        with freeze_time("2026-01-10 12:00"):
            sell(bar, cashier, customer, 700)
        with freeze_time("2026-01-31 18:00"):
            mandat = MandatService.finalize(mandat, {bar: 0})

        with freeze_time("2026-02-02 12:00"):
            sell(bar, cashier, customer, 5000)
            summary = MandatService.preview(mandat)

        assert summary.sales == 700

    def test_no_active_mandat(self, db):
        with pytest.raises(NoActiveMandat):
            MandatService.preview()


# =============================================================================
# Finalize
# =============================================================================


class TestFinalize:
    @pytest.fixture
    def mandat(self, bar, kitchen):
        with freeze_time("2026-01-01 09:00"):
            return MandatService.start({bar: 120_000, kitchen: 40_000})

    def test_freezes_per_shop_figures(self, mandat, bar, kitchen, cashier, customer):
        with freeze_time("2026-03-01 12:00"):
            sell(bar, cashier, customer, 450, quantity=2)
            sell(kitchen, cashier, customer, 1200)
            EventService.add_expense(bar, cashier, 300)

        with freeze_time("2026-06-30 18:00"):
            finalized = MandatService.finalize(mandat, {bar: 95_000, kitchen: 38_000})

        stored = Mandat.objects.get(pk=mandat.pk)
        assert stored.status == MandatStatus.COMPLETED
        assert stored.end_time is not None
        assert stored.final_stock_value == 133_000
        assert stored.final_benefice == 1800
        assert finalized.final_benefice == 1800

        bar_row = MandatShop.objects.get(mandat=mandat, shop=bar)
        assert (bar_row.sales, bar_row.expenses, bar_row.benefice) == (900, 300, 600)
        assert bar_row.final_stock_value == 95_000
        kitchen_row = MandatShop.objects.get(mandat=mandat, shop=kitchen)
        assert (kitchen_row.sales, kitchen_row.expenses, kitchen_row.benefice) == (1200, 0, 1200)

    def test_activity_after_end_time_is_ignored(self, mandat, bar, kitchen, cashier, customer):
        with freeze_time("2026-05-01 12:00"):
            sell(bar, cashier, customer, 400)
        with freeze_time("2026-07-02 12:00"):
            sell(bar, cashier, customer, 900)
            end_time = timezone.now() - timedelta(days=2)
            MandatService.finalize(mandat, {bar: 0, kitchen: 0}, end_time=end_time)

        stored = Mandat.objects.get(pk=mandat.pk)
        assert stored.end_time == end_time
        assert stored.final_benefice == 400

    def test_closing_stock_required_for_every_shop(self, mandat, bar, kitchen):
        with pytest.raises(ValidationError) as exc_info:
            MandatService.finalize(mandat, {bar: 95_000})

        assert exc_info.value.error_code == "MISSING_FINAL_STOCK"
        assert exc_info.value.details["shop_ids"] == [str(kitchen.pk)]
        assert Mandat.objects.get(pk=mandat.pk).status == MandatStatus.ACTIVE

    def test_shop_opened_during_mandat_is_added(self, mandat, bar, kitchen):
        foodtruck = ShopFactory(name="Food truck")

        MandatService.finalize(mandat, {bar: 0, kitchen: 0, foodtruck: 5000})

        row = MandatShop.objects.get(mandat=mandat, shop=foodtruck)
        assert row.initial_stock_value == 0
        assert row.final_stock_value == 5000

    def test_cannot_finalize_twice(self, mandat, bar, kitchen):
        MandatService.finalize(mandat, {bar: 0, kitchen: 0})

        with pytest.raises(MandatFinalized):
            MandatService.finalize(mandat, {bar: 1, kitchen: 1})

    def test_completed_mandat_is_immutable(self, mandat, bar, kitchen):
        MandatService.finalize(mandat, {bar: 0, kitchen: 0})
        stored = Mandat.objects.get(pk=mandat.pk)
        row = MandatShop.objects.get(mandat=mandat, shop=bar)

        stored.final_benefice = 1
        with pytest.raises(MandatFinalized):
            stored.save()

        row.final_stock_value = 1
        with pytest.raises(MandatFinalized):
            row.save()

    def test_next_mandat_can_start_after_finalize(self, mandat, bar, kitchen):
        MandatService.finalize(mandat, {bar: 95_000, kitchen: 38_000})

        successor = MandatService.start()

        assert successor.initial_stock_value == 133_000
