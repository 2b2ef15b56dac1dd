"""
Django admin configuration for mandats.

Mandats are started and finalized through MandatService; the admin only
displays them, with the per-shop figures inline.
"""

from django.contrib import admin

from mandats.models import Mandat, MandatShop


class MandatShopInline(admin.TabularInline):
    model = MandatShop
    extra = 0
    can_delete = False
    readonly_fields = (
        "shop",
        "initial_stock_value",
        "final_stock_value",
        "sales",
        "expenses",
        "benefice",
    )

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Mandat)
class MandatAdmin(admin.ModelAdmin):
    list_display = (
        "start_time",
        "end_time",
        "status",
        "initial_stock_value",
        "final_stock_value",
        "final_benefice",
    )
    list_filter = ("status",)
    readonly_fields = (
        "status",
        "start_time",
        "end_time",
        "initial_stock_value",
        "final_stock_value",
        "final_benefice",
        "created_at",
        "updated_at",
    )
    inlines = [MandatShopInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
