from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from ledger.models.base import MONEY, BaseModel


class CommissionKind(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    AMOUNT = "amount", "Flat amount"


def validate_commission_value(kind, value):
    if value is None:
        return
    if value < 0:
        raise ValidationError({"value": "Commission value must be >= 0."})
    if kind == CommissionKind.PERCENTAGE and value > 100:
        raise ValidationError({"value": "Percentage must be between 0-100."})


class CommissionConfig(BaseModel):
    """
    Commission the platform takes from a restaurant's food price.

    A config without a restaurant is the platform-wide default. At most one
    active config is expected per restaurant; when legacy data holds more,
    CommissionResolver picks the most recently updated one.
    """

    restaurant_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Leave empty for the platform-wide default.",
    )
    kind = models.CharField(
        max_length=10,
        choices=CommissionKind.choices,
        default=CommissionKind.PERCENTAGE,
    )
    value = models.DecimalField(
        validators=[MinValueValidator(0)], max_digits=12, decimal_places=2
    )
    active = models.BooleanField(default=True)
    notes = models.TextField(blank=True, default="")

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["restaurant_id", "active"], name="idx_commission_lookup"),
        ]

    def __str__(self):
        scope = self.restaurant_id or "platform default"
        return f"Commission {scope} | {self.kind} {self.value} | active={self.active}"

    @property
    def is_platform_default(self):
        return not self.restaurant_id

    def clean(self):
        validate_commission_value(self.kind, self.value)


class CommissionRule(BaseModel):
    """An order-amount tier that overrides its config's kind and value."""

    config = models.ForeignKey(
        CommissionConfig, on_delete=models.CASCADE, related_name="rules"
    )
    kind = models.CharField(
        max_length=10,
        choices=CommissionKind.choices,
        default=CommissionKind.PERCENTAGE,
    )
    value = models.DecimalField(max_digits=12, decimal_places=2)
    min_order_amount = models.DecimalField(default=0, **MONEY)
    max_order_amount = models.DecimalField(null=True, blank=True, **MONEY)
    priority = models.IntegerField(default=0)
    active = models.BooleanField(default=True)

    class Meta(BaseModel.Meta):
        ordering = ["-priority", "min_order_amount"]

    def __str__(self):
        upper = self.max_order_amount if self.max_order_amount is not None else "∞"
        return (
            f"Rule {self.min_order_amount}-{upper} | {self.kind} {self.value} "
            f"| priority={self.priority}"
        )

    def clean(self):
        validate_commission_value(self.kind, self.value)
        if self.min_order_amount is not None and self.min_order_amount < 0:
            raise ValidationError({"min_order_amount": "Must be >= 0."})
        if (
            self.max_order_amount is not None
            and self.min_order_amount is not None
            and self.max_order_amount <= self.min_order_amount
        ):
            raise ValidationError(
                {"max_order_amount": "Must be greater than min_order_amount."}
            )
