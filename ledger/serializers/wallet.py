from rest_framework import serializers

from ledger.models import WalletAccount
from ledger.models.base import MONEY


class OpenWalletSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=64)


class WalletAccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = WalletAccount
        fields = ("uuid", "user_id", "currency", "created_at", "updated_at")
        read_only_fields = fields


class WalletSummarySerializer(serializers.Serializer):
    """Derived balance and totals as returned by WalletLedger.summary()."""

    uuid = serializers.UUIDField()
    user_id = serializers.CharField()
    currency = serializers.CharField()
    balance = serializers.DecimalField(**MONEY)
    total_added = serializers.DecimalField(**MONEY)
    total_spent = serializers.DecimalField(**MONEY)
    total_refunded = serializers.DecimalField(**MONEY)
    pending_transactions = serializers.IntegerField()
    total_transactions = serializers.IntegerField()
