"""
Payments views.

Endpoints:
    POST /webhooks/payment?provider=<slug>            - Provider notifications
    GET  /api/v1/payments/methods/                     - Enabled payment methods
    GET  /api/v1/payments/methods/<slug>/preview/      - Fee preview
    POST /api/v1/payments/topups/                      - Start a top-up

Webhook responses:
    400: Unknown provider, forged or malformed notification (not retried)
    500: Infrastructure failure, nothing committed (provider retries)
    200: Settled, or already settled earlier
"""

from __future__ import annotations

import logging

from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from payments.exceptions import InvalidWebhook
from payments.providers import get_payment_provider
from payments.serializers import (
    FeePreviewQuerySerializer,
    FeePreviewSerializer,
    PaymentMethodSerializer,
    TopUpRequestSerializer,
    TopUpResponseSerializer,
)
from payments.services import TopUpService
from payments.settlement import settle_top_up

logger = logging.getLogger(__name__)


# =============================================================================
# Webhook
# =============================================================================


@csrf_exempt
@require_POST
def payment_webhook(request) -> HttpResponse:
    """
    Receive a provider notification and settle its top-up.

    The provider is chosen by the ``provider`` query parameter. The
    response is sent only after the settlement transaction committed.
    """
    slug = request.GET.get("provider", "")
    if not slug:
        logger.warning("Payment webhook without provider parameter")
        return HttpResponse("Missing provider", status=400)

    provider = get_payment_provider(slug)
    if provider is None:
        logger.warning("Payment webhook for unavailable provider", extra={"provider": slug})
        return HttpResponse("Invalid provider", status=400)

    try:
        with provider:
            verification = provider.verify_webhook(request)
        if not verification.is_valid or not verification.transaction_id:
            logger.warning(
                "Rejected payment webhook",
                extra={"provider": slug, "reason": verification.reason},
            )
            return HttpResponse("Invalid notification", status=400)

        result = settle_top_up(verification, provider_slug=slug)

    except InvalidWebhook as e:
        logger.warning(
            "Rejected payment webhook",
            extra={"provider": slug, "error_code": e.error_code, "details": e.details},
        )
        return HttpResponse(e.message, status=400)

    except Exception:
        logger.exception("Payment webhook processing failed", extra={"provider": slug})
        return HttpResponse("Processing failed", status=500)

    return JsonResponse({"success": True, "result": result.value})


# =============================================================================
# API
# =============================================================================


class PaymentMethodListView(APIView):
    """
    List enabled payment methods with their fees.

    GET /api/v1/payments/methods/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: PaymentMethodSerializer(many=True)}, tags=["Payments"])
    def get(self, request):
        methods = TopUpService.list_methods()
        return Response(PaymentMethodSerializer(methods, many=True).data)


class FeePreviewView(APIView):
    """
    Total the payer would be charged for a top-up.

    GET /api/v1/payments/methods/<slug>/preview/?amount_cents=2000
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        parameters=[FeePreviewQuerySerializer],
        responses={200: FeePreviewSerializer},
        tags=["Payments"],
    )
    def get(self, request, slug: str):
        query = FeePreviewQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        amount_cents = query.validated_data["amount_cents"]

        try:
            total = TopUpService.preview_total(slug, amount_cents)
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        return Response(
            FeePreviewSerializer(
                {"provider": slug, "amount_cents": amount_cents, "total_amount_cents": total}
            ).data
        )


class TopUpCreateView(APIView):
    """
    Start a provider top-up for the authenticated user.

    POST /api/v1/payments/topups/
    {"provider": "lydia", "amount_cents": 2000}

    Returns 201 with the checkout URL; the wallet is credited when the
    provider's webhook settles the PENDING transaction.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=TopUpRequestSerializer,
        responses={201: TopUpResponseSerializer},
        tags=["Payments"],
    )
    def post(self, request):
        serializer = TopUpRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        options = {"phone": data["phone"]} if data.get("phone") else None
        try:
            result = TopUpService.initiate_top_up(
                request.user,
                data["provider"],
                data["amount_cents"],
                options=options,
            )
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        return Response(TopUpResponseSerializer(result).data, status=status.HTTP_201_CREATED)
