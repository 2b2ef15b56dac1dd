"""
DRF views for the ledger.

Endpoints:
    GET  /api/v1/ledger/balance/                 - Wallet and fams balances
    GET  /api/v1/ledger/transactions/            - Own rows, newest first
    POST /api/v1/ledger/transfers/               - Send money to another user
    POST /api/v1/ledger/fams/<fams_id>/deposit/  - Move money into a fams wallet

Security:
    - All endpoints require authentication
    - Fams deposits require membership of the fams
"""

from __future__ import annotations

import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import Fams, User
from accounts.services import FamsService
from core.exceptions import BaseApplicationError
from ledger.exceptions import AccountNotFound, NotAFamsMember
from ledger.models import Transaction
from ledger.serializers import (
    BalanceSerializer,
    FamsDepositRequestSerializer,
    TransactionSerializer,
    TransferRequestSerializer,
)
from ledger.services import ledger

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class BalanceView(APIView):
    """
    Current balance of the user and of the fams they belong to.

    GET /api/v1/ledger/balance/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: BalanceSerializer}, tags=["Ledger"])
    def get(self, request) -> Response:
        fams = Fams.objects.filter(members=request.user).order_by("name")
        data = {
            "balance": ledger.get_balance(request.user),
            "fams": [{"id": f.id, "name": f.name, "balance": f.balance} for f in fams],
        }
        return Response(BalanceSerializer(data).data)


class TransactionListView(APIView):
    """
    Paginated ledger rows of the authenticated user's personal wallet.

    GET /api/v1/ledger/transactions/?page=1&page_size=20
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        parameters=[
            OpenApiParameter(
                name="page",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
            ),
            OpenApiParameter(
                name="page_size",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description="Results per page (default: 20, max: 100)",
                required=False,
            ),
        ],
        responses={200: TransactionSerializer(many=True)},
        tags=["Ledger"],
    )
    def get(self, request) -> Response:
        queryset = (
            Transaction.objects.for_user(request.user)
            .select_related("shop", "event", "fams")
            .order_by("-created_at")
        )

        paginator = PageNumberPagination()
        try:
            page_size = int(request.query_params.get("page_size", 20))
        except ValueError:
            page_size = 20
        paginator.page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        page = paginator.paginate_queryset(queryset, request)

        return paginator.get_paginated_response(TransactionSerializer(page, many=True).data)


class TransferView(APIView):
    """
    Send money from the authenticated user's wallet to another user.

    POST /api/v1/ledger/transfers/
    {"receiver_id": "...", "amount_cents": 500, "description": "Pizza"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=TransferRequestSerializer,
        responses={201: TransactionSerializer(many=True)},
        tags=["Ledger"],
    )
    def post(self, request) -> Response:
        serializer = TransferRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            receiver = User.objects.filter(pk=data["receiver_id"]).first()
            if receiver is None:
                raise AccountNotFound(
                    "Receiver not found",
                    details={"account_id": str(data["receiver_id"])},
                )
            rows = ledger.transfer(
                request.user,
                receiver,
                data["amount_cents"],
                description=data.get("description", ""),
            )
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        return Response(
            TransactionSerializer(rows, many=True).data,
            status=status.HTTP_201_CREATED,
        )


class FamsDepositView(APIView):
    """
    Move money from the authenticated user's wallet into one of their fams.

    POST /api/v1/ledger/fams/<fams_id>/deposit/
    {"amount_cents": 2000}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=FamsDepositRequestSerializer,
        responses={201: TransactionSerializer(many=True)},
        tags=["Ledger"],
    )
    def post(self, request, fams_id) -> Response:
        serializer = FamsDepositRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            fams = Fams.objects.filter(pk=fams_id).first()
            if fams is None:
                raise AccountNotFound("Fams not found", details={"account_id": str(fams_id)})
            if not FamsService.is_member(fams, request.user):
                raise NotAFamsMember(
                    "Only members can deposit into a fams",
                    details={"fams_id": str(fams.pk), "user_id": str(request.user.pk)},
                )
            rows = ledger.transfer_to_fams(
                request.user,
                fams,
                data["amount_cents"],
                description=data.get("description", ""),
            )
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        return Response(
            TransactionSerializer(rows, many=True).data,
            status=status.HTTP_201_CREATED,
        )
