"""
Payment provider abstraction.

Every provider implements two operations:

    create_payment(...)  -> PaymentSession       (checkout for a PENDING top-up)
    verify_webhook(req)  -> WebhookVerification  (authenticate a notification)

Providers never touch the ledger. The top-up service records the PENDING
row before calling create_payment(); the webhook view hands the verified
result to payments.settlement.

HTTP goes through one httpx.Client per provider instance with the timeout
from PAYMENT_PROVIDER_TIMEOUT_SECONDS. Tests inject a client built on
httpx.MockTransport.

Usage:
    provider = get_payment_provider("sumup")
    with provider:
        session = provider.create_payment(2000, "user@example.com", "Top-up", str(tx.id))
"""

from __future__ import annotations

import enum
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import MISSING, dataclass, fields
from typing import TYPE_CHECKING, Any, ClassVar

import httpx
from django.conf import settings

from payments.exceptions import ProviderConfigurationError, ProviderUnavailable
from payments.fees import FeeSchedule

if TYPE_CHECKING:
    from collections.abc import Mapping

    from django.http import HttpRequest

logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================


class WebhookOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentSession:
    """
    A checkout opened at the provider.

    Attributes:
        payment_id: Provider-side id, stored as Transaction.payment_provider_id
        redirect_url: Where the user completes the payment
        total_amount_cents: Amount charged to the payer, fees included
    """

    payment_id: str
    redirect_url: str
    total_amount_cents: int


@dataclass(frozen=True)
class WebhookVerification:
    """
    Result of authenticating a provider notification.

    ``transaction_id`` is our ledger row id, echoed back by the provider.
    Invalid results carry a ``reason`` for the logs and nothing else.
    """

    is_valid: bool
    transaction_id: str | None = None
    provider_transaction_id: str | None = None
    outcome: WebhookOutcome = WebhookOutcome.SUCCEEDED
    reason: str = ""

    @classmethod
    def invalid(cls, reason: str) -> WebhookVerification:
        return cls(is_valid=False, reason=reason)

    @classmethod
    def valid(
        cls,
        transaction_id: str,
        provider_transaction_id: str | None = None,
        outcome: WebhookOutcome = WebhookOutcome.SUCCEEDED,
    ) -> WebhookVerification:
        return cls(
            is_valid=True,
            transaction_id=transaction_id,
            provider_transaction_id=provider_transaction_id,
            outcome=outcome,
        )


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class ProviderConfig:
    """
    Base for typed provider configuration.

    Subclasses declare their keys as dataclass fields. Fields without a
    default are required and must be non-empty; unknown keys are ignored.
    """

    @classmethod
    def from_mapping(cls, data: Mapping | None) -> ProviderConfig:
        data = data or {}
        declared = fields(cls)
        missing = [
            f.name
            for f in declared
            if f.default is MISSING and f.default_factory is MISSING and not data.get(f.name)
        ]
        if missing:
            raise ProviderConfigurationError(
                f"Missing configuration keys for {cls.__name__}",
                details={"missing": missing},
            )
        known = {f.name for f in declared}
        return cls(**{key: value for key, value in data.items() if key in known})


# =============================================================================
# Provider
# =============================================================================


class PaymentProvider(ABC):
    """
    Base class for payment providers.

    Subclasses set ``config_class`` and are registered with
    ``@register_provider(slug)``, which also sets ``slug``.
    """

    slug: ClassVar[str] = ""
    config_class: ClassVar[type[ProviderConfig]] = ProviderConfig

    def __init__(
        self,
        config: Mapping | None = None,
        fees: Mapping | None = None,
        *,
        client: httpx.Client | None = None,
    ):
        """
        Args:
            config: PaymentMethod.config, parsed with ``config_class``
            fees: PaymentMethod.fees
            client: Preconfigured httpx client (tests); one is created otherwise

        Raises:
            ProviderConfigurationError: If config or fees are invalid
        """
        self.config = self.config_class.from_mapping(config)
        self.fees = FeeSchedule.from_mapping(fees)
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> PaymentProvider:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_payment(
        self,
        amount_cents: int,
        payer_email: str,
        description: str,
        reference_id: str,
        options: Mapping[str, Any] | None = None,
    ) -> PaymentSession:
        """
        Open a checkout charging ``amount_cents`` plus fees.

        Args:
            amount_cents: Amount to credit to the wallet
            payer_email: Payer identity sent to the provider
            description: Label shown on the provider's payment page
            reference_id: Our transaction id, echoed back in the webhook
            options: Provider-specific extras (Lydia: ``phone``)

        Raises:
            ProviderUnavailable: If the provider cannot open the checkout
        """

    @abstractmethod
    def verify_webhook(self, request: HttpRequest) -> WebhookVerification:
        """
        Authenticate a notification and extract the settlement outcome.

        Returns an invalid result for forged or malformed notifications.

        Raises:
            ProviderUnavailable: If confirming with the provider API fails
        """

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @property
    def callback_url(self) -> str:
        return f"{settings.APP_BASE_URL}/webhooks/payment?provider={self.slug}"

    def return_url(self, reference_id: str, outcome: str = "success") -> str:
        return f"{settings.APP_BASE_URL}/topup/{outcome}?transaction={reference_id}"

    def _request(self, operation: str, method: str, url: str, **kwargs) -> dict:
        """
        Send a request and decode the JSON body.

        Network errors, non-2xx responses and bodies that are not a JSON
        object are all reported as ProviderUnavailable.
        """
        log_context = {
            "provider": self.slug,
            "operation": operation,
            "method": method,
            "url": url,
        }
        start_time = time.time()
        logger.info("Starting provider operation", extra=log_context)

        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            self._handle_http_error(
                e,
                log_context,
                (time.time() - start_time) * 1000,
                status_code=e.response.status_code,
            )
        except (httpx.HTTPError, ValueError) as e:
            self._handle_http_error(e, log_context, (time.time() - start_time) * 1000)

        if not isinstance(payload, dict):
            self._handle_http_error(
                ValueError(f"expected a JSON object, got {type(payload).__name__}"),
                log_context,
                (time.time() - start_time) * 1000,
                status_code=response.status_code,
            )

        logger.info(
            "Provider operation completed",
            extra={
                **log_context,
                "status_code": response.status_code,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return payload

    def _handle_http_error(
        self,
        error: Exception,
        log_context: dict,
        duration_ms: float,
        status_code: int | None = None,
    ) -> None:
        logger.error(
            "Provider operation failed",
            extra={
                **log_context,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "status_code": status_code,
                "duration_ms": duration_ms,
            },
            exc_info=True,
        )
        raise ProviderUnavailable(
            f"{self.slug} is unavailable",
            details={
                "provider": self.slug,
                "operation": log_context["operation"],
                "status_code": status_code,
            },
        ) from error
