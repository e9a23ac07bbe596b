import logging
import warnings
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional, Tuple

from django.db.models import Q

from ledger.exceptions import CommissionConfigMissing
from ledger.models import CommissionConfig, CommissionKind, Settlement

logger = logging.getLogger(__name__)

Source = Settlement.CommissionSource


@dataclass(frozen=True)
class CommissionTier:
    """An order-amount band with its own commission kind and value."""

    kind: str
    value: Decimal
    min_order_amount: Decimal
    max_order_amount: Optional[Decimal]
    priority: int

    def matches(self, amount: Decimal) -> bool:
        if amount < self.min_order_amount:
            return False
        return self.max_order_amount is None or amount <= self.max_order_amount


@dataclass(frozen=True)
class ResolvedCommission:
    """
    The commission configuration that applies to one restaurant.

    `source` records which step of the fallback chain produced it, so every
    settlement can say where its commission came from.
    """

    kind: str
    value: Decimal
    source: str
    config_id: Optional[int] = None
    restaurant_id: Optional[str] = None
    tiers: Tuple[CommissionTier, ...] = ()

    @property
    def percentage(self) -> Decimal:
        """Percentage shown in reports; flat amounts display as 0."""
        if self.kind == CommissionKind.PERCENTAGE:
            return self.value
        return Decimal("0")

    @property
    def is_missing(self) -> bool:
        return self.source == Source.MISSING

    def for_amount(self, amount: Decimal) -> "ResolvedCommission":
        """Narrow to the tier matching `amount`, or keep the config's own terms."""
        candidates = sorted(
            (tier for tier in self.tiers if tier.matches(amount)),
            key=lambda tier: (-tier.priority, tier.min_order_amount),
        )
        if not candidates:
            return self
        tier = candidates[0]
        return replace(self, kind=tier.kind, value=tier.value, tiers=())


class CommissionResolver:
    """
    Resolves the commission configuration for a restaurant.

    Fallback chain, first hit wins:
        1. the restaurant's active config
        2. any config of the restaurant (legacy rows without the active flag)
        3. the platform-wide default
        4. zero percent, flagged with a CommissionConfigMissing warning

    Ties within a step go to the most recently updated row, then the highest
    id, so repeated calls give the same answer.
    """

    @staticmethod
    def resolve(restaurant_id: Optional[str]) -> ResolvedCommission:
        configs = CommissionConfig.objects.prefetch_related("rules").order_by(
            "-updated_at", "-id"
        )

        if restaurant_id:
            own = configs.filter(restaurant_id=restaurant_id)

            config = own.filter(active=True).first()
            if config is not None:
                return CommissionResolver._from_config(config, Source.RESTAURANT_ACTIVE)

            config = own.first()
            if config is not None:
                logger.warning(
                    "Using inactive commission config: restaurant=%s config=%d",
                    restaurant_id,
                    config.pk,
                )
                return CommissionResolver._from_config(
                    config, Source.RESTAURANT_INACTIVE
                )

        config = (
            configs.filter(Q(restaurant_id__isnull=True) | Q(restaurant_id=""))
            .order_by("-active", "-updated_at", "-id")
            .first()
        )
        if config is not None:
            return CommissionResolver._from_config(
                config, Source.PLATFORM_DEFAULT, restaurant_id=restaurant_id
            )

        logger.warning(
            "No commission config found, settling with zero commission: restaurant=%s",
            restaurant_id,
        )
        warnings.warn(
            f"No commission configuration for restaurant {restaurant_id!r}; "
            "zero commission applied.",
            CommissionConfigMissing,
            stacklevel=2,
        )
        return ResolvedCommission(
            kind=CommissionKind.PERCENTAGE,
            value=Decimal("0"),
            source=Source.MISSING,
            restaurant_id=restaurant_id,
        )

    @staticmethod
    def _from_config(config, source, restaurant_id=None) -> ResolvedCommission:
        tiers = tuple(
            CommissionTier(
                kind=rule.kind,
                value=rule.value,
                min_order_amount=rule.min_order_amount,
                max_order_amount=rule.max_order_amount,
                priority=rule.priority,
            )
            for rule in config.rules.all()
            if rule.active
        )
        return ResolvedCommission(
            kind=config.kind,
            value=config.value,
            source=source,
            config_id=config.pk,
            restaurant_id=restaurant_id or config.restaurant_id,
            tiers=tiers,
        )
