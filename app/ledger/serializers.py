"""
DRF serializers for the ledger API.

Amounts are signed integer cents from the point of view of the account
the row belongs to.
"""

from __future__ import annotations

from rest_framework import serializers

from ledger.models import Transaction
from ledger.types import Money


class TransactionSerializer(serializers.ModelSerializer):
    """Read-only view of one ledger row."""

    shop_name = serializers.CharField(source="shop.name", read_only=True, default=None)
    event_name = serializers.CharField(source="event.name", read_only=True, default=None)
    fams_name = serializers.CharField(source="fams.name", read_only=True, default=None)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "amount",
            "type",
            "status",
            "wallet_source",
            "description",
            "shop_name",
            "event_name",
            "fams_name",
            "group_id",
            "payment_provider",
            "created_at",
            "completed_at",
        ]
        read_only_fields = fields


class FamsBalanceSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    name = serializers.CharField()
    balance = serializers.IntegerField()


class BalanceSerializer(serializers.Serializer):
    balance = serializers.IntegerField()
    balance_display = serializers.SerializerMethodField()
    fams = FamsBalanceSerializer(many=True)

    def get_balance_display(self, obj) -> str:
        return str(Money(obj["balance"]))


class TransferRequestSerializer(serializers.Serializer):
    """
    User-to-user transfer.

    Fields:
        receiver_id: Recipient user id
        amount_cents: Positive amount to move
        description: Optional label shown on both rows
    """

    receiver_id = serializers.UUIDField()
    amount_cents = serializers.IntegerField(min_value=1)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)


class FamsDepositRequestSerializer(serializers.Serializer):
    amount_cents = serializers.IntegerField(min_value=1)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
