from django.db import models
from django.utils import timezone

from ledger.exceptions import ImmutableRecord

MONEY = {"max_digits": 12, "decimal_places": 2}


class BaseModel(models.Model):
    """
    Abstract base model providing common timestamp fields.

    `created_at` defaults to now but may be supplied by the caller, so that
    ledger rows can carry the time of the event they record rather than the
    time the row happened to be written.
    """

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]


class ImmutableModel(BaseModel):
    """Rows that are written once and never changed or removed."""

    class Meta(BaseModel.Meta):
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecord(f"{type(self).__name__} {self.pk} is immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecord(f"{type(self).__name__} {self.pk} cannot be deleted.")
