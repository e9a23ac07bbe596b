from rest_framework import serializers

from ledger.models import Transaction
from ledger.models.base import MONEY


class TransactionSerializer(serializers.ModelSerializer):
    """Read-only serializer for transaction responses."""

    wallet_uuid = serializers.UUIDField(source="account.uuid", read_only=True)

    class Meta:
        model = Transaction
        fields = (
            "id",
            "wallet_uuid",
            "amount",
            "transaction_type",
            "status",
            "order_id",
            "description",
            "gateway_reference",
            "allow_overdraft",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class HistoryEntrySerializer(serializers.Serializer):
    """A transaction with the running balance after it."""

    transaction = TransactionSerializer()
    balance = serializers.DecimalField(**MONEY)


class AppendTransactionSerializer(serializers.Serializer):
    """Validates wallet append requests."""

    transaction_type = serializers.ChoiceField(
        choices=Transaction.TransactionType.choices
    )
    amount = serializers.DecimalField(**MONEY)
    status = serializers.ChoiceField(
        choices=Transaction.Status.choices, default=Transaction.Status.COMPLETED
    )
    order_id = serializers.CharField(
        max_length=64, required=False, allow_blank=True, default=""
    )
    description = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )
    gateway_reference = serializers.CharField(
        max_length=128, required=False, allow_blank=True, default=""
    )
    created_at = serializers.DateTimeField(required=False, default=None)
    allow_overdraft = serializers.BooleanField(required=False, default=False)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be positive.")
        return value


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[Transaction.Status.COMPLETED, Transaction.Status.FAILED]
    )


class HistoryQuerySerializer(serializers.Serializer):
    """Query params of the history endpoint: ?from=&to= (inclusive)."""

    from_date = serializers.DateTimeField(required=False, source="from_date")
    to_date = serializers.DateTimeField(required=False, source="to_date")

    def get_fields(self):
        fields = super().get_fields()
        # "from" is a keyword, so the public names are attached here
        fields["from"] = fields.pop("from_date")
        fields["to"] = fields.pop("to_date")
        return fields

    def validate(self, attrs):
        start, end = attrs.get("from_date"), attrs.get("to_date")
        if start and end and start > end:
            raise serializers.ValidationError("'from' must not be after 'to'.")
        return attrs


class BalanceQuerySerializer(serializers.Serializer):
    as_of = serializers.DateTimeField(required=False, default=None)
