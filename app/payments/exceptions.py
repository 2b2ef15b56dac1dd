"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── ProviderNotAvailable - Unknown, disabled or misconfigured provider (400)
    ├── ProviderConfigurationError - Stored credentials do not match the provider
    ├── ProviderUnavailable - Provider API unreachable or erroring (502)
    └── InvalidWebhook - Notification rejected (bad signature, unknown row)

Usage:
    from payments.exceptions import ProviderUnavailable

    try:
        session = provider.create_payment(...)
    except ProviderUnavailable:
        row.fail("Provider unavailable")
        raise
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError, ExternalServiceError, ValidationError

# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            TopUpService.initiate_top_up(user, slug, amount_cents)
        except PaymentError as e:
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "PAYMENT_ERROR"


class ProviderNotAvailable(PaymentError, ValidationError):
    """
    Raised when the requested provider cannot be used for a new payment.

    Use for:
    - Slug not in the provider registry
    - PaymentMethod disabled or missing
    - Stored configuration rejected by the provider
    """

    default_error_code: str = "PROVIDER_NOT_AVAILABLE"


class ProviderConfigurationError(PaymentError):
    """
    Raised when a PaymentMethod's config or fees cannot be parsed.

    Example:
        raise ProviderConfigurationError(
            "Missing configuration keys for lydia",
            details={"missing": ["vendor_token"]},
        )
    """

    default_error_code: str = "PROVIDER_CONFIGURATION_ERROR"


class ProviderUnavailable(PaymentError, ExternalServiceError):
    """
    Raised when a provider API call fails.

    This covers:
    - Network errors and timeouts
    - 5xx responses
    - Responses missing the fields we need (checkout id, redirect url)
    - Business errors reported by the provider in a 2xx body (Lydia)
    """

    default_error_code: str = "PROVIDER_UNAVAILABLE"


class InvalidWebhook(PaymentError):
    """
    Raised when a provider notification must be rejected with 400.

    Example:
        raise InvalidWebhook(
            "Unknown transaction",
            error_code="UNKNOWN_TRANSACTION",
            details={"transaction_id": reference},
        )
    """

    default_error_code: str = "INVALID_WEBHOOK"
