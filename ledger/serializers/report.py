from rest_framework import serializers

from ledger.models.base import MONEY
from ledger.serializers.settlement import SettlementSerializer


class DateRangeSerializer(serializers.Serializer):
    """Optional half-open [start, end) window."""

    start = serializers.DateTimeField(required=False, default=None)
    end = serializers.DateTimeField(required=False, default=None)

    def validate(self, attrs):
        if attrs["start"] and attrs["end"] and attrs["start"] >= attrs["end"]:
            raise serializers.ValidationError("'start' must be before 'end'.")
        return attrs


class MonthlyQuerySerializer(serializers.Serializer):
    months = serializers.IntegerField(
        min_value=1, max_value=60, required=False, default=None
    )


class WalletReportQuerySerializer(serializers.Serializer):
    from_date = serializers.DateTimeField(required=False, default=None)
    to_date = serializers.DateTimeField(required=False, default=None)
    user_id = serializers.CharField(required=False, allow_blank=True, default="")


class WindowTotalsSerializer(serializers.Serializer):
    revenue = serializers.DecimalField(**MONEY)
    commission = serializers.DecimalField(**MONEY)
    platform_fee = serializers.DecimalField(**MONEY)
    delivery_fee = serializers.DecimalField(**MONEY)
    gst = serializers.DecimalField(**MONEY)
    total_admin_earnings = serializers.DecimalField(**MONEY)
    restaurant_net_earnings = serializers.DecimalField(**MONEY)
    adjustments = serializers.IntegerField()
    delivered_orders = serializers.IntegerField()
    settled_orders = serializers.IntegerField()
    unsettled_orders = serializers.IntegerField()


class DashboardSerializer(WindowTotalsSerializer):
    start = serializers.DateTimeField(allow_null=True)
    end = serializers.DateTimeField(allow_null=True)
    orders_by_status = serializers.DictField(child=serializers.IntegerField())
    last_30_days = WindowTotalsSerializer()


class MonthlyBucketSerializer(serializers.Serializer):
    month = serializers.CharField()
    year = serializers.IntegerField()
    revenue = serializers.DecimalField(**MONEY)
    commission = serializers.DecimalField(**MONEY)
    orders = serializers.IntegerField()


class RestaurantStatementSerializer(serializers.Serializer):
    restaurant_id = serializers.CharField()
    start = serializers.DateTimeField(allow_null=True)
    end = serializers.DateTimeField(allow_null=True)
    orders = serializers.IntegerField()
    food_price = serializers.DecimalField(**MONEY)
    commission = serializers.DecimalField(**MONEY)
    net_earning = serializers.DecimalField(**MONEY)
    adjustments = serializers.DecimalField(**MONEY)
    payable = serializers.DecimalField(**MONEY)
    settlements = SettlementSerializer(many=True)


class WalletReportRowSerializer(serializers.Serializer):
    transaction_id = serializers.IntegerField()
    user_id = serializers.CharField()
    wallet_uuid = serializers.UUIDField()
    created_at = serializers.DateTimeField()
    transaction_type = serializers.CharField()
    label = serializers.CharField()
    status = serializers.CharField()
    credit = serializers.DecimalField(**MONEY)
    debit = serializers.DecimalField(**MONEY)
    balance = serializers.DecimalField(**MONEY)
    reference = serializers.CharField()


class WalletReportSerializer(serializers.Serializer):
    rows = WalletReportRowSerializer(many=True)
    total_credit = serializers.DecimalField(**MONEY)
    total_debit = serializers.DecimalField(**MONEY)
