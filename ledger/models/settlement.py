from django.db import models

from ledger.models.base import MONEY, ImmutableModel
from ledger.models.commission import CommissionKind
from ledger.models.order import Order


class Settlement(ImmutableModel):
    """
    The one-time revenue split for a single delivered order.

    The one-to-one key on `order` is the at-most-once guarantee: it is
    enforced by the database, so concurrent writers for the same order get
    exactly one winner. Rows are never edited; corrections are recorded as
    SettlementAdjustment entries.
    """

    class CommissionSource(models.TextChoices):
        RESTAURANT_ACTIVE = "restaurant_active", "Restaurant (active)"
        RESTAURANT_INACTIVE = "restaurant_inactive", "Restaurant (inactive)"
        PLATFORM_DEFAULT = "platform_default", "Platform default"
        MISSING = "missing", "Missing"

    order = models.OneToOneField(
        Order,
        to_field="order_id",
        db_column="order_id",
        on_delete=models.PROTECT,
        related_name="settlement",
    )
    restaurant_id = models.CharField(max_length=64, db_index=True)
    order_amount = models.DecimalField(**MONEY)

    admin_commission = models.DecimalField(**MONEY)
    admin_platform_fee = models.DecimalField(**MONEY)
    admin_delivery_fee = models.DecimalField(**MONEY)
    admin_gst = models.DecimalField(**MONEY)

    restaurant_commission = models.DecimalField(**MONEY)
    restaurant_food_price = models.DecimalField(**MONEY)
    restaurant_net_earning = models.DecimalField(**MONEY)

    commission_kind = models.CharField(max_length=10, choices=CommissionKind.choices)
    commission_value = models.DecimalField(max_digits=12, decimal_places=2)
    commission_percentage = models.DecimalField(max_digits=6, decimal_places=2)
    commission_source = models.CharField(
        max_length=20, choices=CommissionSource.choices
    )
    residual_adjustment = models.DecimalField(
        default=0,
        help_text="Conservation residual absorbed into net earning.",
        **MONEY,
    )

    class Meta(ImmutableModel.Meta):
        indexes = [
            models.Index(
                fields=["restaurant_id", "created_at"], name="idx_settlement_restaurant"
            ),
        ]

    def __str__(self):
        return (
            f"Settlement {self.order_id} | admin={self.admin_total} "
            f"| restaurant={self.restaurant_net_earning}"
        )

    @property
    def admin_total(self):
        return (
            self.admin_commission
            + self.admin_platform_fee
            + self.admin_delivery_fee
            + self.admin_gst
        )

    @classmethod
    def for_restaurant(cls, restaurant_id, start=None, end=None):
        """Settlements of a restaurant whose order was delivered in [start, end)."""
        queryset = cls.objects.filter(restaurant_id=restaurant_id)
        if start is not None:
            queryset = queryset.filter(order__delivered_at__gte=start)
        if end is not None:
            queryset = queryset.filter(order__delivered_at__lt=end)
        return queryset

    @classmethod
    def for_orders(cls, order_ids):
        return cls.objects.filter(order_id__in=list(order_ids))


class SettlementAdjustment(ImmutableModel):
    """
    A compensating entry against a settlement.

    Every money field is a signed delta; the corrected figure for an order is
    the settlement value plus the sum of its adjustments.
    """

    settlement = models.ForeignKey(
        Settlement, on_delete=models.PROTECT, related_name="adjustments"
    )
    admin_commission = models.DecimalField(default=0, **MONEY)
    admin_platform_fee = models.DecimalField(default=0, **MONEY)
    admin_delivery_fee = models.DecimalField(default=0, **MONEY)
    admin_gst = models.DecimalField(default=0, **MONEY)
    restaurant_net_earning = models.DecimalField(default=0, **MONEY)
    reason = models.CharField(max_length=255)

    def __str__(self):
        return f"Adjustment {self.pk} for {self.settlement_id} | {self.reason}"
