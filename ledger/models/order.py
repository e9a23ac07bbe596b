from django.db import models

from ledger.models.base import MONEY, BaseModel


class Order(BaseModel):
    """
    Local snapshot of an order owned by the order-management service.

    Only the fields the settlement engine and the reports need are kept. Once
    an order is delivered its snapshot is frozen: settlement and wallet side
    effects are the only things that may follow.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        PREPARING = "preparing", "Preparing"
        READY = "ready", "Ready"
        OUT_FOR_DELIVERY = "out_for_delivery", "Out for delivery"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    TERMINAL_STATUSES = (Status.DELIVERED, Status.CANCELLED)

    order_id = models.CharField(max_length=64, unique=True)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING
    )
    restaurant_id = models.CharField(max_length=64, db_index=True)
    customer_id = models.CharField(max_length=64, blank=True, default="")
    subtotal = models.DecimalField(**MONEY)
    delivery_fee = models.DecimalField(default=0, **MONEY)
    platform_fee = models.DecimalField(default=0, **MONEY)
    gst = models.DecimalField(default=0, **MONEY)
    total = models.DecimalField(**MONEY)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["status", "delivered_at"], name="idx_order_delivered"),
        ]

    def __str__(self):
        return f"Order {self.order_id} | {self.status} | {self.total}"

    @property
    def is_delivered(self):
        return self.status == self.Status.DELIVERED and self.delivered_at is not None

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @classmethod
    def delivered_between(cls, start=None, end=None):
        """Delivered orders whose delivered_at falls in [start, end)."""
        queryset = cls.objects.filter(
            status=cls.Status.DELIVERED, delivered_at__isnull=False
        )
        if start is not None:
            queryset = queryset.filter(delivered_at__gte=start)
        if end is not None:
            queryset = queryset.filter(delivered_at__lt=end)
        return queryset

    @classmethod
    def get_unsettled_deliveries(cls):
        """Delivered orders that have no settlement yet."""
        return cls.delivered_between().filter(settlement__isnull=True)
