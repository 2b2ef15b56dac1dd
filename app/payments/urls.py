"""
URL configuration for the payments API.

All routes are prefixed with /api/v1/payments/ when included in the main
URLconf. The provider webhook lives at /webhooks/payment (see config.urls).
"""

from django.urls import path

from payments.views import FeePreviewView, PaymentMethodListView, TopUpCreateView

app_name = "payments"

urlpatterns = [
    path("methods/", PaymentMethodListView.as_view(), name="method-list"),
    path("methods/<slug:slug>/preview/", FeePreviewView.as_view(), name="fee-preview"),
    path("topups/", TopUpCreateView.as_view(), name="topup-create"),
]
