"""
DRF serializers for the payments API.

Amounts travel as integer cents; ``total`` fields add a two-decimal euro
string for display.
"""

from __future__ import annotations

from rest_framework import serializers

from ledger.types import Money


class PaymentMethodSerializer(serializers.Serializer):
    slug = serializers.SlugField(read_only=True)
    name = serializers.CharField(read_only=True)
    description = serializers.CharField(read_only=True)
    fees = serializers.SerializerMethodField()

    def get_fees(self, obj) -> dict:
        return obj.fee_schedule.to_dict()


class TopUpRequestSerializer(serializers.Serializer):
    """
    Top-up request.

    Fields:
        provider: PaymentMethod slug
        amount_cents: Amount to credit to the wallet
        phone: Optional payer phone (Lydia)
    """

    provider = serializers.SlugField(max_length=50)
    amount_cents = serializers.IntegerField()
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)


class TopUpResponseSerializer(serializers.Serializer):
    transaction_id = serializers.UUIDField(source="transaction.id")
    redirect_url = serializers.URLField()
    total_amount_cents = serializers.IntegerField()


class FeePreviewQuerySerializer(serializers.Serializer):
    amount_cents = serializers.IntegerField(min_value=1)


class FeePreviewSerializer(serializers.Serializer):
    provider = serializers.CharField()
    amount_cents = serializers.IntegerField()
    total_amount_cents = serializers.IntegerField()
    total = serializers.SerializerMethodField()

    def get_total(self, obj) -> str:
        return str(Money(obj["total_amount_cents"]).as_decimal())
