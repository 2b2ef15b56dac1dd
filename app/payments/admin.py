"""
Django admin configuration for payment methods.

Saving a method runs ``PaymentMethod.clean()``, so credentials that the
provider's config class rejects never reach the database through the admin.
"""

from django.contrib import admin

from payments.models import PaymentMethod


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_enabled", "fees", "updated_at")
    list_filter = ("is_enabled",)
    search_fields = ("name", "slug")
    readonly_fields = ("created_at", "updated_at")
    actions = ["enable_methods", "disable_methods"]

    @admin.action(description="Enable selected payment methods")
    def enable_methods(self, request, queryset):
        updated = queryset.update(is_enabled=True)
        self.message_user(request, f"{updated} payment method(s) enabled.")

    @admin.action(description="Disable selected payment methods")
    def disable_methods(self, request, queryset):
        updated = queryset.update(is_enabled=False)
        self.message_user(request, f"{updated} payment method(s) disabled.")
