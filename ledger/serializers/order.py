from decimal import Decimal

from rest_framework import serializers

from ledger.models import Order
from ledger.models.base import MONEY


def money_field(**kwargs):
    return serializers.DecimalField(min_value=Decimal("0"), **MONEY, **kwargs)


class PricingSerializer(serializers.Serializer):
    subtotal = money_field()
    deliveryFee = money_field(source="delivery_fee", default=Decimal("0"))
    platformFee = money_field(source="platform_fee", default=Decimal("0"))
    gst = money_field(default=Decimal("0"))
    total = money_field()


class OrderSnapshotSerializer(serializers.Serializer):
    """
    Validates order payloads coming from the order-management service.

    Field names follow the collaborator's payload; validated data uses the
    local snake_case names.
    """

    orderId = serializers.CharField(source="order_id", max_length=64)
    status = serializers.ChoiceField(choices=Order.Status.choices)
    restaurantId = serializers.CharField(source="restaurant_id", max_length=64)
    userId = serializers.CharField(
        source="customer_id", max_length=64, required=False, allow_blank=True, default=""
    )
    pricing = PricingSerializer()
    deliveredAt = serializers.DateTimeField(
        source="delivered_at", required=False, allow_null=True, default=None
    )
    createdAt = serializers.DateTimeField(
        source="created_at", required=False, allow_null=True, default=None
    )

    def validate(self, attrs):
        if attrs["status"] == Order.Status.DELIVERED:
            if attrs.get("delivered_at") is None:
                raise serializers.ValidationError(
                    {"deliveredAt": "Delivered orders must carry deliveredAt."}
                )
        else:
            # deliveredAt is only ever set on the transition to delivered
            attrs["delivered_at"] = None
        return attrs


class OrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = (
            "order_id",
            "status",
            "restaurant_id",
            "customer_id",
            "subtotal",
            "delivery_fee",
            "platform_fee",
            "gst",
            "total",
            "delivered_at",
            "created_at",
        )
        read_only_fields = fields
