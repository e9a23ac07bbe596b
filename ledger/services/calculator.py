"""
Settlement calculator: the revenue split for one delivered order.

    food_price  = subtotal
    commission  = round2(food_price * pct / 100)   for percentage configs
                = min(amount, food_price)          for flat configs
    admin       = commission + platform_fee + delivery_fee + gst
    net_earning = round2(food_price - commission)

Conservation: admin + net_earning == total, within one minor unit. A larger
residual is absorbed into net_earning and kept on the settlement as
residual_adjustment; a residual beyond SETTLEMENT_MAX_ABSORBED_RESIDUE is an
integrity alarm.

Every money field is rounded half-up once and never re-rounded after a sum.
"""

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal

from django.conf import settings

from ledger.exceptions import InvalidOrderState, NegativeAmount, ResidueExceeded
from ledger.models import CommissionKind
from ledger.services.commission import ResolvedCommission
from ledger.utils.money import ZERO, round2, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementBreakdown:
    """Computed, not yet stored, settlement for one order."""

    order_id: str
    restaurant_id: str
    order_amount: Decimal
    admin_commission: Decimal
    admin_platform_fee: Decimal
    admin_delivery_fee: Decimal
    admin_gst: Decimal
    restaurant_commission: Decimal
    restaurant_food_price: Decimal
    restaurant_net_earning: Decimal
    commission_kind: str
    commission_value: Decimal
    commission_percentage: Decimal
    commission_source: str
    residual_adjustment: Decimal = ZERO

    @property
    def admin_total(self) -> Decimal:
        return (
            self.admin_commission
            + self.admin_platform_fee
            + self.admin_delivery_fee
            + self.admin_gst
        )

    def as_fields(self) -> dict:
        return asdict(self)


class SettlementCalculator:
    """Pure computation; reads the order and the resolved commission only."""

    def __init__(self, tolerance=None, max_absorbed_residue=None):
        if tolerance is None:
            tolerance = getattr(settings, "SETTLEMENT_ROUNDING_TOLERANCE", "0.01")
        if max_absorbed_residue is None:
            max_absorbed_residue = getattr(
                settings, "SETTLEMENT_MAX_ABSORBED_RESIDUE", "1.00"
            )
        self.tolerance = to_decimal(tolerance)
        self.max_absorbed_residue = to_decimal(max_absorbed_residue)

    def compute(self, order, commission: ResolvedCommission) -> SettlementBreakdown:
        if not order.is_delivered:
            raise InvalidOrderState(
                f"Order {order.order_id} is {order.status}; only delivered orders "
                "can be settled."
            )

        pricing = {
            "subtotal": round2(order.subtotal),
            "delivery_fee": round2(order.delivery_fee),
            "platform_fee": round2(order.platform_fee),
            "gst": round2(order.gst),
            "total": round2(order.total),
        }
        for name, amount in pricing.items():
            if amount < 0:
                raise NegativeAmount(f"Order {order.order_id}: {name} is {amount}.")

        food_price = pricing["subtotal"]
        terms = commission.for_amount(food_price)
        value = to_decimal(terms.value)
        if value < 0:
            raise NegativeAmount(
                f"Order {order.order_id}: commission value is {value}."
            )

        if terms.kind == CommissionKind.PERCENTAGE:
            commission_amount = round2(food_price * value / Decimal("100"))
        else:
            commission_amount = min(round2(value), food_price)

        net_earning = round2(food_price - commission_amount)
        admin_total = (
            commission_amount
            + pricing["platform_fee"]
            + pricing["delivery_fee"]
            + pricing["gst"]
        )

        residual = pricing["total"] - (admin_total + net_earning)
        adjustment = ZERO
        if abs(residual) > self.tolerance:
            if abs(residual) > self.max_absorbed_residue:
                logger.error(
                    "Settlement residual too large: order=%s total=%s computed=%s "
                    "residual=%s",
                    order.order_id,
                    pricing["total"],
                    admin_total + net_earning,
                    residual,
                )
                raise ResidueExceeded(
                    f"Order {order.order_id}: residual {residual} exceeds "
                    f"{self.max_absorbed_residue}."
                )
            net_earning = net_earning + residual
            adjustment = residual
            logger.warning(
                "Settlement residual absorbed into net earning: order=%s residual=%s",
                order.order_id,
                residual,
            )

        if net_earning < 0:
            logger.error(
                "Negative restaurant net earning: order=%s food_price=%s commission=%s",
                order.order_id,
                food_price,
                commission_amount,
            )
            raise NegativeAmount(
                f"Order {order.order_id}: net earning would be {net_earning}."
            )

        return SettlementBreakdown(
            order_id=order.order_id,
            restaurant_id=order.restaurant_id,
            order_amount=pricing["total"],
            admin_commission=commission_amount,
            admin_platform_fee=pricing["platform_fee"],
            admin_delivery_fee=pricing["delivery_fee"],
            admin_gst=pricing["gst"],
            restaurant_commission=commission_amount,
            restaurant_food_price=food_price,
            restaurant_net_earning=net_earning,
            commission_kind=terms.kind,
            commission_value=value,
            commission_percentage=terms.percentage,
            commission_source=commission.source,
            residual_adjustment=adjustment,
        )
