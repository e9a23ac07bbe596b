from decimal import Decimal

from django.db import models
from django.db.models import Q, Sum

from ledger.exceptions import ImmutableRecord
from ledger.models.base import MONEY, BaseModel
from ledger.models.wallet import WalletAccount

MUTABLE_FIELDS = {"status", "updated_at"}


class Transaction(BaseModel):
    """
    One entry of a wallet's append-only history.

    Amount, type and account never change once written. The only mutation
    allowed is the status transition Pending -> Completed | Failed, performed
    by whoever owns the payment or refund event behind the entry. Only
    Completed entries count towards the balance.
    """

    class TransactionType(models.TextChoices):
        ADDITION = "addition", "Addition"
        DEDUCTION = "deduction", "Deduction"
        REFUND = "refund", "Refund"

    class Status(models.TextChoices):
        PENDING = "Pending", "Pending"
        COMPLETED = "Completed", "Completed"
        FAILED = "Failed", "Failed"

    CREDIT_TYPES = (TransactionType.ADDITION, TransactionType.REFUND)
    ORDER_UNIQUE_TYPES = (TransactionType.DEDUCTION, TransactionType.REFUND)

    account = models.ForeignKey(
        WalletAccount,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    amount = models.DecimalField(**MONEY)
    transaction_type = models.CharField(
        max_length=10,
        choices=TransactionType.choices,
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
    )
    order_id = models.CharField(max_length=64, blank=True, default="")
    description = models.CharField(max_length=255, blank=True, default="")
    gateway_reference = models.CharField(
        max_length=128,
        blank=True,
        default="",
        help_text="Payment gateway reference for top-ups.",
    )
    allow_overdraft = models.BooleanField(
        default=False,
        help_text="Deduction explicitly authorized to overdraw the wallet.",
    )

    class Meta(BaseModel.Meta):
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["account", "created_at"], name="idx_tx_account_time"),
            models.Index(fields=["account", "status"], name="idx_tx_account_status"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["account", "order_id", "transaction_type"],
                condition=Q(transaction_type__in=["deduction", "refund"])
                & ~Q(order_id=""),
                name="uq_tx_account_order_type",
            ),
        ]

    def __str__(self):
        return (
            f"Transaction {self.id} | {self.transaction_type} | "
            f"{self.amount} | {self.status}"
        )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or not set(update_fields) <= MUTABLE_FIELDS:
                raise ImmutableRecord(
                    f"Transaction {self.pk}: only the status may change."
                )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecord(f"Transaction {self.pk} cannot be deleted.")

    @property
    def affects_balance(self):
        return self.status == self.Status.COMPLETED

    @property
    def signed_amount(self):
        """The amount as it moves the balance: credits positive, deductions negative."""
        if self.transaction_type in self.CREDIT_TYPES:
            return self.amount
        return -self.amount

    @classmethod
    def completed_balance(cls, account_id, as_of=None):
        """Sum of Completed credits minus Completed deductions up to `as_of`."""
        queryset = cls.objects.filter(account_id=account_id, status=cls.Status.COMPLETED)
        if as_of is not None:
            queryset = queryset.filter(created_at__lte=as_of)
        return cls.signed_total(queryset)

    @classmethod
    def lowest_balance_from(cls, account_id, created_at, position_id=None):
        """
        Lowest Completed running balance at and after a point of the history.

        The point sits after every entry created at or before `created_at`,
        or, when `position_id` is given, right after the entries ordered
        before (created_at, position_id). A deduction placed at that point
        keeps every later running balance non-negative only if it does not
        exceed this value.
        """
        completed = cls.objects.filter(account_id=account_id, status=cls.Status.COMPLETED)
        later = Q(created_at__gt=created_at)
        if position_id is not None:
            later |= Q(created_at=created_at, id__gt=position_id)

        running = cls.signed_total(completed.exclude(later))
        lowest = running
        for entry in completed.filter(later).order_by("created_at", "id"):
            running += entry.signed_amount
            lowest = min(lowest, running)
        return lowest

    @classmethod
    def signed_total(cls, queryset):
        totals = queryset.aggregate(
            credits=Sum("amount", filter=Q(transaction_type__in=cls.CREDIT_TYPES)),
            debits=Sum("amount", filter=Q(transaction_type=cls.TransactionType.DEDUCTION)),
        )
        return (totals["credits"] or Decimal("0")) - (totals["debits"] or Decimal("0"))
