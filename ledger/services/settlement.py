import logging
from decimal import Decimal
from typing import Tuple

from django.db import IntegrityError, transaction
from django.db.models import Sum

from ledger.models import Order, Settlement, SettlementAdjustment
from ledger.services.calculator import SettlementBreakdown, SettlementCalculator
from ledger.services.commission import CommissionResolver

logger = logging.getLogger(__name__)

ADJUSTABLE_FIELDS = (
    "admin_commission",
    "admin_platform_fee",
    "admin_delivery_fee",
    "admin_gst",
    "restaurant_net_earning",
)


class SettlementStore:
    """
    Sole writer of Settlement and SettlementAdjustment rows.

    create_once() relies on the unique order key in the database, never on a
    read-then-insert check, so two workers racing on the same order end up
    with one row and the same return value.
    """

    @staticmethod
    def create_once(breakdown: SettlementBreakdown) -> Tuple[Settlement, bool]:
        """
        Store the settlement for an order unless one already exists.

        Returns:
            (settlement, created). created is False when the order was already
            settled; the stored settlement is returned unchanged.
        """
        fields = breakdown.as_fields()
        order_id = fields.pop("order_id")

        try:
            with transaction.atomic():
                settlement = Settlement.objects.create(order_id=order_id, **fields)
        except IntegrityError:
            existing = Settlement.objects.get(order_id=order_id)
            logger.info(
                "Settlement already exists: order=%s settlement=%d",
                order_id,
                existing.pk,
            )
            return existing, False

        logger.info(
            "Settlement created: order=%s restaurant=%s commission=%s "
            "admin_total=%s net=%s source=%s",
            order_id,
            settlement.restaurant_id,
            settlement.admin_commission,
            settlement.admin_total,
            settlement.restaurant_net_earning,
            settlement.commission_source,
        )
        return settlement, True

    @staticmethod
    def for_restaurant(restaurant_id, start=None, end=None):
        return Settlement.for_restaurant(restaurant_id, start, end)

    @staticmethod
    def for_orders(order_ids):
        return Settlement.for_orders(order_ids)

    @staticmethod
    def corrected_values(settlement: Settlement) -> dict:
        """Settlement figures with every recorded adjustment applied."""
        deltas = settlement.adjustments.aggregate(
            **{f"{name}_delta": Sum(name) for name in ADJUSTABLE_FIELDS}
        )
        return {
            name: getattr(settlement, name)
            + (deltas[f"{name}_delta"] or Decimal("0"))
            for name in ADJUSTABLE_FIELDS
        }

    @staticmethod
    @transaction.atomic
    def compensate(
        settlement: Settlement, breakdown: SettlementBreakdown, reason: str
    ) -> SettlementAdjustment:
        """
        Record a compensating entry bringing `settlement` in line with `breakdown`.

        Raises:
            ValueError: If the breakdown is for another order or changes nothing.
        """
        if breakdown.order_id != settlement.order_id:
            raise ValueError(
                f"Breakdown for order {breakdown.order_id} cannot adjust "
                f"settlement of order {settlement.order_id}."
            )

        # Serialize corrections of the same settlement
        settlement = Settlement.objects.select_for_update().get(pk=settlement.pk)
        current = SettlementStore.corrected_values(settlement)
        deltas = {
            name: getattr(breakdown, name) - current[name] for name in ADJUSTABLE_FIELDS
        }
        if not any(deltas.values()):
            raise ValueError(f"Settlement {settlement.order_id} needs no adjustment.")

        adjustment = SettlementAdjustment.objects.create(
            settlement=settlement, reason=reason, **deltas
        )
        logger.warning(
            "Settlement adjusted: order=%s adjustment=%d reason=%s deltas=%s",
            settlement.order_id,
            adjustment.pk,
            reason,
            {name: str(value) for name, value in deltas.items() if value},
        )
        return adjustment


class SettlementService:
    """Runs resolve -> compute -> create_once for one order."""

    @staticmethod
    def settle(order_id: str) -> Tuple[Settlement, bool]:
        """
        Settle a delivered order at most once.

        Raises:
            Order.DoesNotExist: If no snapshot of the order is known.
            InvalidOrderState: If the order is not delivered.
            IntegrityAlarm: If the split cannot satisfy the money invariants.
        """
        order = Order.objects.get(order_id=order_id)

        existing = Settlement.objects.filter(order_id=order_id).first()
        if existing is not None:
            logger.info("Order already settled: order=%s", order_id)
            return existing, False

        commission = CommissionResolver.resolve(order.restaurant_id)
        breakdown = SettlementCalculator().compute(order, commission)
        return SettlementStore.create_once(breakdown)

    @staticmethod
    def recompute(order_id: str, reason: str) -> SettlementAdjustment:
        """Recompute a settled order with today's commission and record the difference."""
        settlement = Settlement.objects.select_related("order").get(order_id=order_id)
        commission = CommissionResolver.resolve(settlement.order.restaurant_id)
        breakdown = SettlementCalculator().compute(settlement.order, commission)
        return SettlementStore.compensate(settlement, breakdown, reason)
