"""
Django admin configuration for the ledger.

Transactions are read-only: rows are never edited or deleted. Mistakes
are corrected with the "Reverse" action, which writes compensating rows
through LedgerService.
"""

from django.contrib import admin, messages

from core.exceptions import BaseApplicationError
from ledger.models import Transaction
from ledger.services import ledger


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "type",
        "status",
        "amount",
        "wallet_source",
        "target_user",
        "fams",
        "shop",
        "created_at",
    )
    list_filter = ("type", "status", "wallet_source", "payment_provider", "shop")
    search_fields = (
        "id",
        "description",
        "payment_provider_id",
        "target_user__email",
        "fams__name",
    )
    date_hierarchy = "created_at"
    raw_id_fields = ("issuer", "target_user", "receiver_user", "fams", "event", "reverses")
    actions = ["reverse_transactions"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Reverse selected transactions")
    def reverse_transactions(self, request, queryset):
        reversed_count = 0
        for row in queryset:
            try:
                reversed_count += len(ledger.reverse(row, performed_by=request.user))
            except BaseApplicationError as e:
                self.message_user(request, f"{row.id}: {e.message}", level=messages.ERROR)
        if reversed_count:
            self.message_user(request, f"{reversed_count} compensating row(s) written.")
