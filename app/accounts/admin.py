"""
Django admin configuration for accounts.

Balances are displayed read-only. Admins change a balance by recording an
ADJUSTMENT through the ledger, never by editing the field.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import Fams, FamsMembership, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Email-based user admin with the wallet balance shown read-only."""

    list_display = (
        "email",
        "username",
        "balance",
        "is_asleep",
        "is_active",
        "is_staff",
    )
    list_filter = ("is_active", "is_asleep", "is_staff")
    search_fields = ("email", "username", "first_name", "last_name")
    ordering = ("-date_joined",)
    readonly_fields = ("balance", "date_joined", "last_login")

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Identity", {"fields": ("username", "first_name", "last_name", "phone")}),
        ("Wallet", {"fields": ("balance", "is_asleep")}),
        ("Status", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Important dates", {"fields": ("date_joined", "last_login")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "password1", "password2"),
            },
        ),
    )


class FamsMembershipInline(admin.TabularInline):
    model = FamsMembership
    extra = 0
    raw_id_fields = ("user",)


@admin.register(Fams)
class FamsAdmin(admin.ModelAdmin):
    list_display = ("name", "balance", "created_at")
    search_fields = ("name",)
    readonly_fields = ("balance", "created_at", "updated_at")
    inlines = [FamsMembershipInline]
