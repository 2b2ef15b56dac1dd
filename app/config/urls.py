"""
Root URL configuration.

URL Structure:
    /                              - ReDoc API documentation
    /schema/                       - OpenAPI schema
    /admin/                        - Django admin (payment methods, ledger, events, mandats)
    /health/                       - Health check endpoint
    /webhooks/payment?provider=    - Payment provider callbacks (POST, no auth)
    /api/v1/auth/token/            - Obtain JWT pair
    /api/v1/auth/token/refresh/    - Refresh JWT
    /api/v1/ledger/                - Balance, history, transfers, fams deposits
    /api/v1/payments/              - Payment methods, fee preview, top-ups
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check
from payments.views import payment_webhook

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("ledger/", include("ledger.urls")),
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    # Providers are configured with this URL; it must stay outside /api/v1/
    path("webhooks/payment", payment_webhook, name="payment_webhook"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Wallet Ledger Admin"
admin.site.site_title = "Wallet Ledger"
admin.site.index_title = "Ledger administration"
