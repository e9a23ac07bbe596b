"""
Read-only rollups over orders, settlements and wallet history.

Settlement figures are always joined to the delivered orders of a window by
order id, never selected by the settlement's own created_at: an order
delivered on the 31st and settled on the 1st belongs to the earlier month.
Delivered orders without a settlement still count towards revenue, and the
number of such orders is reported as `unsettled_orders`.
"""

import calendar
import logging
from datetime import datetime, time, timedelta

from django.conf import settings
from django.db.models import Count, Sum
from django.utils import timezone

from ledger.models import (
    Order,
    Settlement,
    SettlementAdjustment,
    Transaction,
    WalletAccount,
)
from ledger.services.ledger import ADMIN_CREDIT_PREFIX, WalletLedger
from ledger.services.settlement import ADJUSTABLE_FIELDS
from ledger.utils.money import ZERO, round2

logger = logging.getLogger(__name__)

TxType = Transaction.TransactionType

WALLET_LABELS = {
    TxType.ADDITION: "Add Fund",
    TxType.DEDUCTION: "Order Payment",
    TxType.REFUND: "Refund",
}
ADMIN_CREDIT_LABEL = "Add Fund By Admin"


def _sum(value):
    return round2(value or ZERO)


def _shift_month(year, month, offset):
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


class ReportAggregator:
    """Dashboard, monthly and statement reports. Never writes."""

    @staticmethod
    def _window_totals(start=None, end=None) -> dict:
        orders = Order.delivered_between(start, end)
        order_ids = orders.values("order_id")

        order_totals = orders.aggregate(revenue=Sum("total"), count=Count("id"))
        settlement_totals = Settlement.objects.filter(order_id__in=order_ids).aggregate(
            count=Count("id"),
            **{name: Sum(name) for name in ADJUSTABLE_FIELDS},
        )
        adjustment_totals = SettlementAdjustment.objects.filter(
            settlement__order_id__in=order_ids
        ).aggregate(
            count=Count("id"),
            **{f"{name}_delta": Sum(name) for name in ADJUSTABLE_FIELDS},
        )

        figures = {
            name: _sum(settlement_totals[name])
            + _sum(adjustment_totals[f"{name}_delta"])
            for name in ADJUSTABLE_FIELDS
        }
        admin_earnings = (
            figures["admin_commission"]
            + figures["admin_platform_fee"]
            + figures["admin_delivery_fee"]
            + figures["admin_gst"]
        )
        delivered = order_totals["count"]
        settled = settlement_totals["count"]

        return {
            "revenue": _sum(order_totals["revenue"]),
            "commission": figures["admin_commission"],
            "platform_fee": figures["admin_platform_fee"],
            "delivery_fee": figures["admin_delivery_fee"],
            "gst": figures["admin_gst"],
            "total_admin_earnings": admin_earnings,
            "restaurant_net_earnings": figures["restaurant_net_earning"],
            "adjustments": adjustment_totals["count"],
            "delivered_orders": delivered,
            "settled_orders": settled,
            "unsettled_orders": delivered - settled,
        }

    @staticmethod
    def dashboard(start=None, end=None, now=None) -> dict:
        """
        Revenue and commission over delivered orders in [start, end).

        Also returns the same figures for the 30 days up to `now` and the
        number of orders per status among orders created in the window.
        """
        now = now or timezone.now()
        report = ReportAggregator._window_totals(start, end)

        orders = Order.objects.all()
        if start is not None:
            orders = orders.filter(created_at__gte=start)
        if end is not None:
            orders = orders.filter(created_at__lt=end)
        by_status = dict.fromkeys(Order.Status.values, 0)
        for row in orders.values("status").annotate(count=Count("id")):
            by_status[row["status"]] = row["count"]

        report["start"] = start
        report["end"] = end
        report["orders_by_status"] = by_status
        report["last_30_days"] = ReportAggregator._window_totals(
            now - timedelta(days=30), now
        )

        if report["unsettled_orders"]:
            logger.warning(
                "Dashboard includes unsettled deliveries: start=%s end=%s unsettled=%d",
                start,
                end,
                report["unsettled_orders"],
            )
        return report

    @staticmethod
    def monthly(now=None, months=None) -> list:
        """
        Trailing calendar months, oldest first, ending with the month of `now`.

        Month boundaries are taken in the current time zone.
        """
        now = timezone.localtime(now or timezone.now())
        months = months or getattr(settings, "REPORT_TRAILING_MONTHS", 12)

        series = []
        for offset in range(-(months - 1), 1):
            year, month = _shift_month(now.year, now.month, offset)
            next_year, next_month = _shift_month(now.year, now.month, offset + 1)
            start = timezone.make_aware(datetime(year, month, 1))
            end = timezone.make_aware(datetime(next_year, next_month, 1))

            totals = ReportAggregator._window_totals(start, end)
            series.append(
                {
                    "month": calendar.month_abbr[month],
                    "year": year,
                    "revenue": totals["revenue"],
                    "commission": totals["commission"],
                    "orders": totals["delivered_orders"],
                }
            )
        return series

    @staticmethod
    def current_payout_cycle(now=None):
        """Monday 00:00 to the following Monday 00:00, local time."""
        now = timezone.localtime(now or timezone.now())
        monday = now.date() - timedelta(days=now.weekday())
        start = timezone.make_aware(datetime.combine(monday, time.min))
        end = timezone.make_aware(datetime.combine(monday + timedelta(days=7), time.min))
        return start, end

    @staticmethod
    def restaurant_statement(restaurant_id, start=None, end=None, now=None) -> dict:
        """
        Settlements of one restaurant for orders delivered in [start, end).

        Without a window the current weekly payout cycle is used.
        """
        if start is None and end is None:
            start, end = ReportAggregator.current_payout_cycle(now)

        settlements = (
            Settlement.for_restaurant(restaurant_id, start, end)
            .select_related("order")
            .order_by("order__delivered_at", "id")
        )
        totals = settlements.aggregate(
            orders=Count("id"),
            food_price=Sum("restaurant_food_price"),
            commission=Sum("restaurant_commission"),
            net_earning=Sum("restaurant_net_earning"),
        )
        adjustments = SettlementAdjustment.objects.filter(
            settlement__in=settlements.values("id")
        ).aggregate(net_delta=Sum("restaurant_net_earning"))

        net_earning = _sum(totals["net_earning"])
        net_delta = _sum(adjustments["net_delta"])
        return {
            "restaurant_id": restaurant_id,
            "start": start,
            "end": end,
            "settlements": list(settlements),
            "orders": totals["orders"],
            "food_price": _sum(totals["food_price"]),
            "commission": _sum(totals["commission"]),
            "net_earning": net_earning,
            "adjustments": net_delta,
            "payable": net_earning + net_delta,
        }

    @staticmethod
    def wallet_label(tx: Transaction) -> str:
        if tx.transaction_type == TxType.ADDITION and tx.description.startswith(
            ADMIN_CREDIT_PREFIX
        ):
            return ADMIN_CREDIT_LABEL
        return WALLET_LABELS[tx.transaction_type]

    @staticmethod
    def wallet_report(from_date=None, to_date=None, user_id=None) -> dict:
        """
        Customer wallet entries across accounts with credit and debit columns.

        Balances come from a full replay of each account, so they match what
        the customer sees in their own history.
        """
        accounts = WalletAccount.objects.order_by("id")
        if user_id:
            accounts = accounts.filter(user_id=user_id)

        rows = []
        for account in accounts:
            for tx, balance in WalletLedger.replay(account, from_date, to_date):
                is_credit = tx.transaction_type in Transaction.CREDIT_TYPES
                rows.append(
                    {
                        "transaction_id": tx.id,
                        "user_id": account.user_id,
                        "wallet_uuid": account.uuid,
                        "created_at": tx.created_at,
                        "transaction_type": tx.transaction_type,
                        "label": ReportAggregator.wallet_label(tx),
                        "status": tx.status,
                        "credit": tx.amount if is_credit else ZERO,
                        "debit": ZERO if is_credit else tx.amount,
                        "balance": balance,
                        "reference": tx.order_id
                        or tx.gateway_reference
                        or tx.description
                        or "N/A",
                    }
                )
        rows.sort(key=lambda row: (row["created_at"], row["transaction_id"]))

        completed = [row for row in rows if row["status"] == Transaction.Status.COMPLETED]
        return {
            "from": from_date,
            "to": to_date,
            "rows": rows,
            "total_credit": sum((row["credit"] for row in completed), ZERO),
            "total_debit": sum((row["debit"] for row in completed), ZERO),
        }
