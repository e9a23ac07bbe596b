from rest_framework import serializers

from ledger.models import Settlement, SettlementAdjustment
from ledger.models.base import MONEY


class SettleOrderSerializer(serializers.Serializer):
    order_id = serializers.CharField(max_length=64)


class AdminEarningSerializer(serializers.Serializer):
    commission = serializers.DecimalField(source="admin_commission", **MONEY)
    platform_fee = serializers.DecimalField(source="admin_platform_fee", **MONEY)
    delivery_fee = serializers.DecimalField(source="admin_delivery_fee", **MONEY)
    gst = serializers.DecimalField(source="admin_gst", **MONEY)
    total = serializers.DecimalField(source="admin_total", **MONEY)


class RestaurantEarningSerializer(serializers.Serializer):
    commission = serializers.DecimalField(source="restaurant_commission", **MONEY)
    food_price = serializers.DecimalField(source="restaurant_food_price", **MONEY)
    net_earning = serializers.DecimalField(source="restaurant_net_earning", **MONEY)


class SettlementAdjustmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = SettlementAdjustment
        fields = (
            "id",
            "admin_commission",
            "admin_platform_fee",
            "admin_delivery_fee",
            "admin_gst",
            "restaurant_net_earning",
            "reason",
            "created_at",
        )
        read_only_fields = fields


class SettlementSerializer(serializers.ModelSerializer):
    """Read-only settlement with the admin and restaurant sides grouped."""

    order_id = serializers.CharField(read_only=True)
    admin_earning = AdminEarningSerializer(source="*", read_only=True)
    restaurant_earning = RestaurantEarningSerializer(source="*", read_only=True)
    adjustments = SettlementAdjustmentSerializer(many=True, read_only=True)

    class Meta:
        model = Settlement
        fields = (
            "order_id",
            "restaurant_id",
            "order_amount",
            "admin_earning",
            "restaurant_earning",
            "commission_kind",
            "commission_value",
            "commission_percentage",
            "commission_source",
            "residual_adjustment",
            "adjustments",
            "created_at",
        )
        read_only_fields = fields
