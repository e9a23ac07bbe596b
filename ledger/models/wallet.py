import uuid

from django.conf import settings
from django.db import models

from ledger.models.base import BaseModel


def default_currency():
    return getattr(settings, "LEDGER_CURRENCY", "INR")


class WalletAccount(BaseModel):
    """
    A customer's wallet. One per user.

    The account stores no balance: the balance is always derived
    from its Completed transactions so it cannot drift. The row itself is the
    per-account lock that serializes appends (see WalletLedger).
    """

    uuid = models.UUIDField(
        default=uuid.uuid4, unique=True, editable=False, db_index=True
    )
    user_id = models.CharField(max_length=64, unique=True)
    currency = models.CharField(max_length=3, default=default_currency)

    def __str__(self):
        return f"WalletAccount {self.uuid} (user={self.user_id})"
