"""
Django admin configuration for shops and events.

Event status is FSM-protected and shown read-only; lifecycle changes go
through the admin actions, which call EventService so deposits are charged
and settled in the same database transaction as the transition.
"""

from django.contrib import admin, messages

from core.exceptions import BaseApplicationError
from shops.models import (
    Event,
    EventExpenseSplit,
    EventParticipant,
    EventRevenue,
    Shop,
    ShopExpense,
)
from shops.services import EventService


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "created_at")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


class EventParticipantInline(admin.TabularInline):
    model = EventParticipant
    extra = 0
    raw_id_fields = ("user",)
    readonly_fields = ("created_at",)


class EventRevenueInline(admin.TabularInline):
    model = EventRevenue
    extra = 0
    raw_id_fields = ("issuer",)
    fields = ("amount", "description", "issuer", "date")


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("name", "shop", "type", "status", "acompte", "start_date")
    list_filter = ("status", "type", "shop")
    search_fields = ("name",)
    date_hierarchy = "start_date"
    readonly_fields = ("status", "closed_at", "created_at", "updated_at")
    inlines = [EventParticipantInline, EventRevenueInline]
    actions = ["open_events", "close_events", "archive_events"]

    def _run(self, request, queryset, operation, label):
        done = 0
        for event in queryset:
            try:
                operation(event)
            except BaseApplicationError as e:
                self.message_user(request, f"{event}: {e.message}", level=messages.ERROR)
            else:
                done += 1
        if done:
            self.message_user(request, f"{done} event(s) {label}.")

    @admin.action(description="Open selected events and charge deposits")
    def open_events(self, request, queryset):
        self._run(
            request,
            queryset,
            lambda event: EventService.activate(event, issuer=request.user),
            "opened",
        )

    @admin.action(description="Close selected events and settle deposits")
    def close_events(self, request, queryset):
        self._run(
            request,
            queryset,
            lambda event: EventService.close(event, issuer=request.user),
            "closed",
        )

    @admin.action(description="Archive selected events")
    def archive_events(self, request, queryset):
        self._run(request, queryset, EventService.archive, "archived")


class EventExpenseSplitInline(admin.TabularInline):
    model = EventExpenseSplit
    extra = 0


@admin.register(ShopExpense)
class ShopExpenseAdmin(admin.ModelAdmin):
    list_display = ("shop", "amount", "event", "description", "date")
    list_filter = ("shop",)
    search_fields = ("description",)
    raw_id_fields = ("issuer", "event")
    date_hierarchy = "date"
    inlines = [EventExpenseSplitInline]
