import threading
from datetime import datetime, timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

import requests
from django.core.management import CommandError, call_command
from django.db import connection, connections
from django.db.utils import OperationalError
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.urls import reverse
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient

from ledger.exceptions import (
    CommissionConfigMissing,
    DuplicateOrderTransaction,
    ImmutableRecord,
    InsufficientFunds,
    InvalidAmount,
    InvalidOrderState,
    InvalidStatusTransition,
    NegativeAmount,
    ResidueExceeded,
)
from ledger.models import (
    CommissionConfig,
    CommissionKind,
    CommissionRule,
    Order,
    Settlement,
    SettlementAdjustment,
    Transaction,
    WalletAccount,
)
from ledger.services import (
    CommissionResolver,
    OrderIntakeService,
    ReportAggregator,
    ResolvedCommission,
    SettlementCalculator,
    SettlementService,
    SettlementStore,
    TransactionStatusService,
    WalletLedger,
)
from ledger.utils import request_order_snapshot

TxType = Transaction.TransactionType
TxStatus = Transaction.Status
Source = Settlement.CommissionSource


def at(*args):
    """Aware datetime in the current time zone."""
    return timezone.make_aware(datetime(*args))


def build_order(order_id="ord-1", save=True, **overrides):
    fields = {
        "order_id": order_id,
        "status": Order.Status.DELIVERED,
        "restaurant_id": "rest-1",
        "customer_id": "user-1",
        "subtotal": Decimal("450.00"),
        "platform_fee": Decimal("10.00"),
        "delivery_fee": Decimal("40.00"),
        "gst": Decimal("23.40"),
        "total": Decimal("523.40"),
    }
    fields.update(overrides)
    if fields["status"] == Order.Status.DELIVERED:
        fields.setdefault("delivered_at", timezone.now())
    order = Order(**fields)
    if save:
        order.save()
    return order


def percentage(value, source=Source.RESTAURANT_ACTIVE):
    return ResolvedCommission(
        kind=CommissionKind.PERCENTAGE, value=Decimal(value), source=source
    )


def flat(value):
    return ResolvedCommission(
        kind=CommissionKind.AMOUNT, value=Decimal(value), source=Source.RESTAURANT_ACTIVE
    )


def snapshot_payload(order_id="ord-100", status="delivered", **overrides):
    payload = {
        "orderId": order_id,
        "status": status,
        "restaurantId": "rest-1",
        "userId": "user-1",
        "pricing": {
            "subtotal": "450.00",
            "deliveryFee": "40.00",
            "platformFee": "10.00",
            "gst": "23.40",
            "total": "523.40",
        },
        "deliveredAt": "2024-03-10T12:00:00+05:30",
    }
    payload.update(overrides)
    return payload


# ============================================================
# Model Tests
# ============================================================


class OrderModelTest(TestCase):
    def test_is_delivered_requires_timestamp(self):
        order = build_order(save=False, delivered_at=None)
        self.assertFalse(order.is_delivered)

        order.delivered_at = timezone.now()
        self.assertTrue(order.is_delivered)
        self.assertTrue(order.is_terminal)

    def test_delivered_between_is_half_open(self):
        start, end = at(2024, 3, 1), at(2024, 4, 1)
        build_order("ord-start", delivered_at=start)
        build_order("ord-end", delivered_at=end)
        build_order("ord-pending", status=Order.Status.PREPARING)

        ids = set(Order.delivered_between(start, end).values_list("order_id", flat=True))
        self.assertEqual(ids, {"ord-start"})

    def test_get_unsettled_deliveries(self):
        settled = build_order("ord-settled")
        build_order("ord-open")
        SettlementService.settle(settled.order_id)

        ids = list(Order.get_unsettled_deliveries().values_list("order_id", flat=True))
        self.assertEqual(ids, ["ord-open"])


class WalletAccountModelTest(TestCase):
    def test_create_account(self):
        account = WalletAccount.objects.create(user_id="user-1")
        self.assertIsNotNone(account.uuid)
        self.assertEqual(account.currency, "INR")
        self.assertIn(str(account.uuid), str(account))


class TransactionModelTest(TestCase):
    def setUp(self):
        self.account = WalletAccount.objects.create(user_id="user-1")

    def test_signed_amount(self):
        addition = Transaction(
            account=self.account, amount=Decimal("10.00"), transaction_type=TxType.ADDITION
        )
        deduction = Transaction(
            account=self.account, amount=Decimal("10.00"), transaction_type=TxType.DEDUCTION
        )
        self.assertEqual(addition.signed_amount, Decimal("10.00"))
        self.assertEqual(deduction.signed_amount, Decimal("-10.00"))

    def test_amount_cannot_change(self):
        tx = Transaction.objects.create(
            account=self.account,
            amount=Decimal("10.00"),
            transaction_type=TxType.ADDITION,
            status=TxStatus.COMPLETED,
        )
        tx.amount = Decimal("99.00")
        with self.assertRaises(ImmutableRecord):
            tx.save()

    def test_transaction_cannot_be_deleted(self):
        tx = Transaction.objects.create(
            account=self.account,
            amount=Decimal("10.00"),
            transaction_type=TxType.ADDITION,
        )
        with self.assertRaises(ImmutableRecord):
            tx.delete()

    def test_transaction_str(self):
        tx = Transaction.objects.create(
            account=self.account,
            amount=Decimal("10.00"),
            transaction_type=TxType.REFUND,
        )
        self.assertIn("refund", str(tx))
        self.assertIn("10.00", str(tx))


class SettlementModelTest(TestCase):
    def setUp(self):
        CommissionConfig.objects.create(restaurant_id="rest-1", value=Decimal("10"))
        order = build_order()
        self.settlement, _ = SettlementService.settle(order.order_id)

    def test_settlement_cannot_be_edited(self):
        self.settlement.admin_commission = Decimal("0.00")
        with self.assertRaises(ImmutableRecord):
            self.settlement.save()

    def test_settlement_cannot_be_deleted(self):
        with self.assertRaises(ImmutableRecord):
            self.settlement.delete()

    def test_admin_total(self):
        self.assertEqual(self.settlement.admin_total, Decimal("118.40"))


# ============================================================
# Commission Resolver Tests
# ============================================================


class CommissionResolverTest(TestCase):
    def test_restaurant_active_config_wins(self):
        CommissionConfig.objects.create(restaurant_id=None, value=Decimal("5"))
        CommissionConfig.objects.create(restaurant_id="rest-1", value=Decimal("10"))

        resolved = CommissionResolver.resolve("rest-1")

        self.assertEqual(resolved.value, Decimal("10.00"))
        self.assertEqual(resolved.source, Source.RESTAURANT_ACTIVE)

    def test_inactive_restaurant_config_before_platform_default(self):
        CommissionConfig.objects.create(restaurant_id=None, value=Decimal("5"))
        CommissionConfig.objects.create(
            restaurant_id="rest-1", value=Decimal("8"), active=False
        )

        resolved = CommissionResolver.resolve("rest-1")

        self.assertEqual(resolved.value, Decimal("8.00"))
        self.assertEqual(resolved.source, Source.RESTAURANT_INACTIVE)

    def test_platform_default_fallback(self):
        CommissionConfig.objects.create(restaurant_id="rest-2", value=Decimal("20"))
        CommissionConfig.objects.create(
            restaurant_id=None, kind=CommissionKind.AMOUNT, value=Decimal("15")
        )

        resolved = CommissionResolver.resolve("rest-1")

        self.assertEqual(resolved.kind, CommissionKind.AMOUNT)
        self.assertEqual(resolved.value, Decimal("15.00"))
        self.assertEqual(resolved.percentage, Decimal("0"))
        self.assertEqual(resolved.source, Source.PLATFORM_DEFAULT)

    def test_missing_config_warns_and_returns_zero(self):
        with self.assertWarns(CommissionConfigMissing):
            resolved = CommissionResolver.resolve("rest-1")

        self.assertTrue(resolved.is_missing)
        self.assertEqual(resolved.value, Decimal("0"))

    def test_resolution_is_deterministic(self):
        CommissionConfig.objects.create(restaurant_id="rest-1", value=Decimal("10"))
        latest = CommissionConfig.objects.create(restaurant_id="rest-1", value=Decimal("12"))

        results = {CommissionResolver.resolve("rest-1").config_id for _ in range(5)}

        self.assertEqual(results, {latest.id})

    def test_tier_matching_order_amount(self):
        config = CommissionConfig.objects.create(restaurant_id="rest-1", value=Decimal("10"))
        CommissionRule.objects.create(
            config=config,
            kind=CommissionKind.AMOUNT,
            value=Decimal("30"),
            min_order_amount=Decimal("1000"),
        )

        resolved = CommissionResolver.resolve("rest-1")

        self.assertEqual(resolved.for_amount(Decimal("1200")).value, Decimal("30.00"))
        self.assertEqual(
            resolved.for_amount(Decimal("1200")).kind, CommissionKind.AMOUNT
        )
        self.assertEqual(resolved.for_amount(Decimal("500")).value, Decimal("10.00"))


# ============================================================
# Settlement Calculator Tests
# ============================================================


class SettlementCalculatorTest(TestCase):
    def setUp(self):
        self.calculator = SettlementCalculator()

    def test_percentage_split(self):
        breakdown = self.calculator.compute(build_order(save=False), percentage("10"))

        self.assertEqual(breakdown.admin_commission, Decimal("45.00"))
        self.assertEqual(breakdown.restaurant_net_earning, Decimal("405.00"))
        self.assertEqual(breakdown.admin_total, Decimal("118.40"))
        self.assertEqual(breakdown.residual_adjustment, Decimal("0.00"))

    def test_conservation(self):
        order = build_order(save=False)
        breakdown = self.calculator.compute(order, percentage("10"))

        self.assertEqual(
            breakdown.admin_total + breakdown.restaurant_net_earning, order.total
        )

    def test_half_up_rounding(self):
        order = build_order(
            save=False,
            subtotal=Decimal("333.33"),
            platform_fee=Decimal("0"),
            delivery_fee=Decimal("0"),
            gst=Decimal("0"),
            total=Decimal("333.33"),
        )
        breakdown = self.calculator.compute(order, percentage("12.5"))

        # 333.33 * 12.5% = 41.66625
        self.assertEqual(breakdown.admin_commission, Decimal("41.67"))
        self.assertEqual(breakdown.restaurant_net_earning, Decimal("291.66"))

    def test_flat_commission_clamped_to_food_price(self):
        order = build_order(
            save=False,
            subtotal=Decimal("300.00"),
            platform_fee=Decimal("0"),
            delivery_fee=Decimal("0"),
            gst=Decimal("0"),
            total=Decimal("300.00"),
        )
        breakdown = self.calculator.compute(order, flat("500"))

        self.assertEqual(breakdown.admin_commission, Decimal("300.00"))
        self.assertEqual(breakdown.restaurant_net_earning, Decimal("0.00"))
        self.assertEqual(breakdown.commission_percentage, Decimal("0"))

    def test_not_delivered_raises(self):
        order = build_order(save=False, status=Order.Status.OUT_FOR_DELIVERY)
        with self.assertRaises(InvalidOrderState):
            self.calculator.compute(order, percentage("10"))

    def test_negative_input_raises(self):
        order = build_order(save=False, gst=Decimal("-1.00"))
        with self.assertRaises(NegativeAmount):
            self.calculator.compute(order, percentage("10"))

    def test_small_residual_absorbed_into_net(self):
        order = build_order(save=False, total=Decimal("523.90"))
        breakdown = self.calculator.compute(order, percentage("10"))

        self.assertEqual(breakdown.residual_adjustment, Decimal("0.50"))
        self.assertEqual(breakdown.restaurant_net_earning, Decimal("405.50"))
        self.assertEqual(
            breakdown.admin_total + breakdown.restaurant_net_earning, Decimal("523.90")
        )

    def test_residual_within_tolerance_ignored(self):
        order = build_order(save=False, total=Decimal("523.41"))
        breakdown = self.calculator.compute(order, percentage("10"))

        self.assertEqual(breakdown.residual_adjustment, Decimal("0.00"))
        self.assertEqual(breakdown.restaurant_net_earning, Decimal("405.00"))

    def test_large_residual_raises(self):
        order = build_order(save=False, total=Decimal("530.00"))
        with self.assertRaises(ResidueExceeded):
            self.calculator.compute(order, percentage("10"))

    def test_residual_driving_net_negative_raises(self):
        order = build_order(
            save=False,
            subtotal=Decimal("100.00"),
            platform_fee=Decimal("0"),
            delivery_fee=Decimal("0"),
            gst=Decimal("0"),
            total=Decimal("99.50"),
        )
        with self.assertRaises(NegativeAmount):
            self.calculator.compute(order, percentage("100"))


# ============================================================
# Settlement Store / Service Tests
# ============================================================


class SettlementStoreTest(TestCase):
    def setUp(self):
        self.order = build_order()
        self.breakdown = SettlementCalculator().compute(self.order, percentage("10"))

    def test_create_once(self):
        first, created = SettlementStore.create_once(self.breakdown)
        second, created_again = SettlementStore.create_once(self.breakdown)

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Settlement.objects.count(), 1)

    def test_create_once_returns_existing_row_unchanged(self):
        other = SettlementCalculator().compute(self.order, percentage("20"))
        SettlementStore.create_once(self.breakdown)

        settlement, created = SettlementStore.create_once(other)

        self.assertFalse(created)
        self.assertEqual(settlement.admin_commission, Decimal("45.00"))

    def test_for_restaurant_uses_delivery_time(self):
        old = build_order("ord-old", delivered_at=at(2024, 2, 29, 23, 0))
        SettlementService.settle(old.order_id)
        SettlementStore.create_once(self.breakdown)

        march = SettlementStore.for_restaurant("rest-1", at(2024, 3, 1), at(2024, 4, 1))
        february = SettlementStore.for_restaurant("rest-1", at(2024, 2, 1), at(2024, 3, 1))

        self.assertEqual(march.count(), 0)
        self.assertEqual(list(february.values_list("order_id", flat=True)), ["ord-old"])

    def test_for_orders(self):
        SettlementStore.create_once(self.breakdown)
        self.assertEqual(SettlementStore.for_orders(["ord-1", "ord-x"]).count(), 1)


@skipUnlessDBFeature("test_db_allows_multiple_connections")
class ConcurrentSettlementTest(TransactionTestCase):
    def setUp(self):
        self.order = build_order()
        self.breakdown = SettlementCalculator().compute(self.order, percentage("10"))

    def test_concurrent_create_once_stores_one_settlement(self):
        barrier = threading.Barrier(2, timeout=10)
        lock = threading.Lock()
        results, errors = [], []

        def settle():
            try:
                barrier.wait()
                settlement, created = SettlementStore.create_once(self.breakdown)
                with lock:
                    results.append((settlement.pk, created))
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=settle) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(sum(created for _, created in results), 1)
        self.assertEqual(len({pk for pk, _ in results}), 1)
        self.assertEqual(Settlement.objects.count(), 1)


class SettlementServiceTest(TestCase):
    def setUp(self):
        self.config = CommissionConfig.objects.create(
            restaurant_id="rest-1", value=Decimal("10")
        )
        self.order = build_order()

    def test_settle(self):
        settlement, created = SettlementService.settle(self.order.order_id)

        self.assertTrue(created)
        self.assertEqual(settlement.admin_commission, Decimal("45.00"))
        self.assertEqual(settlement.restaurant_net_earning, Decimal("405.00"))
        self.assertEqual(settlement.commission_source, Source.RESTAURANT_ACTIVE)
        self.assertEqual(settlement.commission_percentage, Decimal("10.00"))

    def test_settle_twice_keeps_first_result(self):
        SettlementService.settle(self.order.order_id)
        self.config.value = Decimal("20")
        self.config.save()

        settlement, created = SettlementService.settle(self.order.order_id)

        self.assertFalse(created)
        self.assertEqual(settlement.admin_commission, Decimal("45.00"))
        self.assertEqual(Settlement.objects.count(), 1)

    def test_settle_unknown_order_raises(self):
        with self.assertRaises(Order.DoesNotExist):
            SettlementService.settle("missing")

    def test_failed_computation_writes_nothing(self):
        pending = build_order("ord-pending", status=Order.Status.READY)
        with self.assertRaises(InvalidOrderState):
            SettlementService.settle(pending.order_id)
        self.assertFalse(Settlement.objects.filter(order_id="ord-pending").exists())

    def test_recompute_records_compensating_entry(self):
        settlement, _ = SettlementService.settle(self.order.order_id)
        self.config.value = Decimal("12")
        self.config.save()

        adjustment = SettlementService.recompute(self.order.order_id, "rate corrected")

        self.assertEqual(adjustment.admin_commission, Decimal("9.00"))
        self.assertEqual(adjustment.restaurant_net_earning, Decimal("-9.00"))
        corrected = SettlementStore.corrected_values(settlement)
        self.assertEqual(corrected["admin_commission"], Decimal("54.00"))
        self.assertEqual(corrected["restaurant_net_earning"], Decimal("396.00"))

        # The settlement itself is untouched
        settlement.refresh_from_db()
        self.assertEqual(settlement.admin_commission, Decimal("45.00"))

    def test_recompute_without_change_raises(self):
        SettlementService.settle(self.order.order_id)
        with self.assertRaises(ValueError):
            SettlementService.recompute(self.order.order_id, "no-op")
        self.assertEqual(SettlementAdjustment.objects.count(), 0)


# ============================================================
# Order Intake Tests
# ============================================================


class OrderIntakeServiceTest(TestCase):
    def test_record_delivered_snapshot(self):
        order, changed = OrderIntakeService.record(snapshot_payload())

        self.assertTrue(changed)
        self.assertEqual(order.status, Order.Status.DELIVERED)
        self.assertEqual(order.delivery_fee, Decimal("40.00"))
        self.assertEqual(order.customer_id, "user-1")
        self.assertTrue(order.is_delivered)

    def test_delivered_without_timestamp_rejected(self):
        with self.assertRaises(ValidationError):
            OrderIntakeService.record(snapshot_payload(deliveredAt=None))

    def test_unknown_status_rejected(self):
        with self.assertRaises(ValidationError):
            OrderIntakeService.record(snapshot_payload(status="lost"))

    def test_negative_price_rejected(self):
        payload = snapshot_payload()
        payload["pricing"]["gst"] = "-1.00"
        with self.assertRaises(ValidationError):
            OrderIntakeService.record(payload)

    def test_non_delivered_snapshot_drops_delivered_at(self):
        order, _ = OrderIntakeService.record(snapshot_payload(status="preparing"))
        self.assertIsNone(order.delivered_at)

    def test_snapshot_updates_open_order(self):
        OrderIntakeService.record(snapshot_payload(status="preparing"))
        order, changed = OrderIntakeService.record(snapshot_payload())

        self.assertTrue(changed)
        self.assertEqual(order.status, Order.Status.DELIVERED)
        self.assertEqual(Order.objects.count(), 1)

    def test_delivered_order_is_frozen(self):
        OrderIntakeService.record(snapshot_payload())
        order, changed = OrderIntakeService.record(snapshot_payload(status="cancelled"))

        self.assertFalse(changed)
        self.assertEqual(order.status, Order.Status.DELIVERED)


# ============================================================
# Wallet Ledger Tests
# ============================================================


class WalletLedgerTest(TransactionTestCase):
    def setUp(self):
        self.account, _ = WalletLedger.open_account("user-1")
        self.uuid = self.account.uuid

    def record_scenario(self):
        WalletLedger.append(
            self.uuid, TxType.ADDITION, "200.00", created_at=at(2024, 3, 1, 10)
        )
        WalletLedger.append(
            self.uuid,
            TxType.DEDUCTION,
            "50.00",
            order_id="ord-1",
            created_at=at(2024, 3, 2, 10),
        )
        WalletLedger.append(
            self.uuid,
            TxType.DEDUCTION,
            "30.00",
            TxStatus.PENDING,
            order_id="ord-2",
            created_at=at(2024, 3, 3, 10),
        )
        WalletLedger.append(
            self.uuid,
            TxType.REFUND,
            "20.00",
            order_id="ord-1",
            created_at=at(2024, 3, 4, 10),
        )

    def test_open_account_is_idempotent(self):
        account, created = WalletLedger.open_account("user-1")
        self.assertFalse(created)
        self.assertEqual(account.pk, self.account.pk)

    def test_running_balances(self):
        self.record_scenario()

        balances = [entry.balance for entry in WalletLedger.history(self.uuid)]

        self.assertEqual(
            balances,
            [Decimal("200.00"), Decimal("150.00"), Decimal("150.00"), Decimal("170.00")],
        )

    def test_filtered_history_keeps_full_replay_balances(self):
        self.record_scenario()
        full = {entry.transaction.id: entry.balance for entry in WalletLedger.history(self.uuid)}

        window = WalletLedger.history(
            self.uuid, from_date=at(2024, 3, 2), to_date=at(2024, 3, 3, 23)
        )

        self.assertEqual(len(window), 2)
        for entry in window:
            self.assertEqual(entry.balance, full[entry.transaction.id])
        self.assertEqual(window[0].balance, Decimal("150.00"))

    def test_history_ordered_by_created_at_not_insertion(self):
        late = WalletLedger.append(
            self.uuid, TxType.ADDITION, "10.00", created_at=at(2024, 3, 5)
        )
        early = WalletLedger.append(
            self.uuid, TxType.ADDITION, "100.00", created_at=at(2024, 3, 1)
        )

        history = WalletLedger.history(self.uuid)

        self.assertEqual([entry.transaction.id for entry in history], [early.id, late.id])
        self.assertEqual(history[0].balance, Decimal("100.00"))
        self.assertEqual(history[1].balance, Decimal("110.00"))

    def test_balance_as_of(self):
        self.record_scenario()

        self.assertEqual(
            WalletLedger.balance_as_of(self.uuid, at(2024, 3, 2, 12)), Decimal("150.00")
        )
        self.assertEqual(WalletLedger.balance_as_of(self.uuid), Decimal("170.00"))
        self.assertEqual(
            WalletLedger.balance_as_of(self.uuid, at(2024, 2, 1)), Decimal("0.00")
        )

    def test_insufficient_funds_writes_nothing(self):
        WalletLedger.append(self.uuid, TxType.ADDITION, "100.00")

        with self.assertRaises(InsufficientFunds) as ctx:
            WalletLedger.append(self.uuid, TxType.DEDUCTION, "150.00", order_id="ord-1")

        self.assertEqual(ctx.exception.balance, Decimal("100.00"))
        self.assertEqual(WalletLedger.balance_as_of(self.uuid), Decimal("100.00"))
        self.assertEqual(self.account.transactions.count(), 1)

    def test_backdated_deduction_cannot_use_later_credit(self):
        WalletLedger.append(
            self.uuid, TxType.ADDITION, "100.00", created_at=at(2024, 3, 10)
        )

        with self.assertRaises(InsufficientFunds) as ctx:
            WalletLedger.append(
                self.uuid, TxType.DEDUCTION, "80.00", created_at=at(2024, 3, 5)
            )

        self.assertEqual(ctx.exception.balance, Decimal("0.00"))
        self.assertEqual(
            WalletLedger.balance_as_of(self.uuid, at(2024, 3, 6)), Decimal("0.00")
        )
        self.assertEqual(self.account.transactions.count(), 1)

    def test_backdated_deduction_cannot_overdraw_later_history(self):
        WalletLedger.append(
            self.uuid, TxType.ADDITION, "100.00", created_at=at(2024, 3, 1)
        )
        WalletLedger.append(
            self.uuid, TxType.DEDUCTION, "70.00", created_at=at(2024, 3, 10)
        )

        # 100 is available on the 5th, but only 30 remains after the 10th
        with self.assertRaises(InsufficientFunds) as ctx:
            WalletLedger.append(
                self.uuid, TxType.DEDUCTION, "50.00", created_at=at(2024, 3, 5)
            )

        self.assertEqual(ctx.exception.balance, Decimal("30.00"))
        self.assertEqual(self.account.transactions.count(), 2)

    def test_backdated_deduction_within_funds(self):
        WalletLedger.append(
            self.uuid, TxType.ADDITION, "100.00", created_at=at(2024, 3, 1)
        )
        WalletLedger.append(
            self.uuid, TxType.DEDUCTION, "40.00", created_at=at(2024, 3, 10)
        )
        WalletLedger.append(
            self.uuid, TxType.DEDUCTION, "50.00", created_at=at(2024, 3, 5)
        )

        balances = [entry.balance for entry in WalletLedger.history(self.uuid)]

        self.assertEqual(
            balances, [Decimal("100.00"), Decimal("50.00"), Decimal("10.00")]
        )

    def test_authorized_overdraft(self):
        WalletLedger.append(
            self.uuid, TxType.DEDUCTION, "25.00", allow_overdraft=True
        )
        self.assertEqual(WalletLedger.balance_as_of(self.uuid), Decimal("-25.00"))

    def test_non_positive_amount_raises(self):
        with self.assertRaises(InvalidAmount):
            WalletLedger.append(self.uuid, TxType.ADDITION, "0")
        with self.assertRaises(InvalidAmount):
            WalletLedger.append(self.uuid, TxType.ADDITION, "-5.00")

    def test_unknown_account_raises(self):
        with self.assertRaises(WalletAccount.DoesNotExist):
            WalletLedger.append(
                "00000000-0000-0000-0000-000000000000", TxType.ADDITION, "5.00"
            )

    def test_duplicate_order_deduction_rejected(self):
        WalletLedger.append(self.uuid, TxType.ADDITION, "100.00")
        WalletLedger.append(self.uuid, TxType.DEDUCTION, "40.00", order_id="ord-1")

        with self.assertRaises(DuplicateOrderTransaction):
            WalletLedger.append(self.uuid, TxType.DEDUCTION, "40.00", order_id="ord-1")

        # A refund for the same order is a different entry
        WalletLedger.append(self.uuid, TxType.REFUND, "40.00", order_id="ord-1")
        with self.assertRaises(DuplicateOrderTransaction):
            WalletLedger.append(self.uuid, TxType.REFUND, "40.00", order_id="ord-1")

        self.assertEqual(WalletLedger.balance_as_of(self.uuid), Decimal("100.00"))

    def test_admin_credit(self):
        tx = WalletLedger.admin_credit(self.uuid, "75.00", note="goodwill")

        self.assertEqual(tx.transaction_type, TxType.ADDITION)
        self.assertEqual(tx.status, TxStatus.COMPLETED)
        self.assertTrue(tx.description.startswith("Admin credit"))

    def test_summary(self):
        self.record_scenario()

        summary = WalletLedger.summary(self.uuid)

        self.assertEqual(summary["balance"], Decimal("170.00"))
        self.assertEqual(summary["total_added"], Decimal("200.00"))
        self.assertEqual(summary["total_spent"], Decimal("50.00"))
        self.assertEqual(summary["total_refunded"], Decimal("20.00"))
        self.assertEqual(summary["pending_transactions"], 1)
        self.assertEqual(summary["total_transactions"], 4)


class TransactionStatusServiceTest(TransactionTestCase):
    def setUp(self):
        self.account, _ = WalletLedger.open_account("user-1")
        WalletLedger.append(self.account.uuid, TxType.ADDITION, "100.00")

    def test_complete_pending_deduction(self):
        tx = WalletLedger.append(
            self.account.uuid, TxType.DEDUCTION, "60.00", TxStatus.PENDING
        )
        self.assertEqual(WalletLedger.balance_as_of(self.account.uuid), Decimal("100.00"))

        TransactionStatusService.transition(tx.id, TxStatus.COMPLETED)

        self.assertEqual(WalletLedger.balance_as_of(self.account.uuid), Decimal("40.00"))

    def test_fail_pending_entry(self):
        tx = WalletLedger.append(
            self.account.uuid, TxType.ADDITION, "60.00", TxStatus.PENDING
        )
        tx = TransactionStatusService.transition(tx.id, TxStatus.FAILED)

        self.assertEqual(tx.status, TxStatus.FAILED)
        self.assertEqual(WalletLedger.balance_as_of(self.account.uuid), Decimal("100.00"))

    def test_only_pending_can_transition(self):
        tx = WalletLedger.append(
            self.account.uuid, TxType.DEDUCTION, "10.00", TxStatus.PENDING
        )
        TransactionStatusService.transition(tx.id, TxStatus.FAILED)

        with self.assertRaises(InvalidStatusTransition):
            TransactionStatusService.transition(tx.id, TxStatus.COMPLETED)

    def test_completing_deduction_rechecks_funds(self):
        tx = WalletLedger.append(
            self.account.uuid, TxType.DEDUCTION, "150.00", TxStatus.PENDING
        )

        with self.assertRaises(InsufficientFunds):
            TransactionStatusService.transition(tx.id, TxStatus.COMPLETED)

        tx.refresh_from_db()
        self.assertEqual(tx.status, TxStatus.PENDING)

    def test_completing_backdated_deduction_uses_its_position(self):
        account, _ = WalletLedger.open_account("user-2")
        WalletLedger.append(
            account.uuid, TxType.ADDITION, "100.00", created_at=at(2024, 3, 10)
        )
        tx = WalletLedger.append(
            account.uuid,
            TxType.DEDUCTION,
            "80.00",
            TxStatus.PENDING,
            created_at=at(2024, 3, 5),
        )

        with self.assertRaises(InsufficientFunds) as ctx:
            TransactionStatusService.transition(tx.id, TxStatus.COMPLETED)

        self.assertEqual(ctx.exception.balance, Decimal("0.00"))
        tx.refresh_from_db()
        self.assertEqual(tx.status, TxStatus.PENDING)


# ============================================================
# Report Tests
# ============================================================


class ReportAggregatorTest(TestCase):
    def setUp(self):
        CommissionConfig.objects.create(restaurant_id=None, value=Decimal("10"))

    def test_dashboard_counts_unsettled_revenue(self):
        settled = build_order("ord-1", delivered_at=at(2024, 3, 5))
        build_order(
            "ord-2",
            subtotal=Decimal("200.00"),
            platform_fee=Decimal("0"),
            delivery_fee=Decimal("0"),
            gst=Decimal("0"),
            total=Decimal("200.00"),
            delivered_at=at(2024, 3, 6),
        )
        build_order("ord-outside", delivered_at=at(2024, 2, 1))
        SettlementService.settle(settled.order_id)

        report = ReportAggregator.dashboard(at(2024, 3, 1), at(2024, 4, 1))

        self.assertEqual(report["revenue"], Decimal("723.40"))
        self.assertEqual(report["commission"], Decimal("45.00"))
        self.assertEqual(report["total_admin_earnings"], Decimal("118.40"))
        self.assertEqual(report["restaurant_net_earnings"], Decimal("405.00"))
        self.assertEqual(report["delivered_orders"], 2)
        self.assertEqual(report["unsettled_orders"], 1)

    def test_dashboard_orders_by_status_and_last_30_days(self):
        build_order("ord-1")
        build_order("ord-2", status=Order.Status.CANCELLED)

        report = ReportAggregator.dashboard()

        self.assertEqual(report["orders_by_status"]["delivered"], 1)
        self.assertEqual(report["orders_by_status"]["cancelled"], 1)
        self.assertEqual(report["orders_by_status"]["pending"], 0)
        self.assertEqual(report["last_30_days"]["revenue"], Decimal("523.40"))

    def test_dashboard_includes_adjustments(self):
        order = build_order("ord-1", delivered_at=at(2024, 3, 5))
        settlement, _ = SettlementService.settle(order.order_id)
        CommissionConfig.objects.update(value=Decimal("12"))
        SettlementService.recompute(order.order_id, "rate corrected")

        report = ReportAggregator.dashboard(at(2024, 3, 1), at(2024, 4, 1))

        self.assertEqual(report["commission"], Decimal("54.00"))
        self.assertEqual(report["restaurant_net_earnings"], Decimal("396.00"))
        self.assertEqual(report["adjustments"], 1)

    def test_monthly_joins_by_delivery_month(self):
        february = build_order("ord-feb", delivered_at=at(2024, 2, 29, 23, 30))
        build_order("ord-mar", delivered_at=at(2024, 3, 1, 0, 30))
        SettlementService.settle(february.order_id)

        series = ReportAggregator.monthly(now=at(2024, 3, 15, 12), months=3)

        self.assertEqual([bucket["month"] for bucket in series], ["Jan", "Feb", "Mar"])
        self.assertEqual(series[0]["orders"], 0)
        self.assertEqual(series[1]["revenue"], Decimal("523.40"))
        self.assertEqual(series[1]["commission"], Decimal("45.00"))
        self.assertEqual(series[2]["orders"], 1)
        self.assertEqual(series[2]["commission"], Decimal("0.00"))

    def test_monthly_crosses_year_boundary(self):
        series = ReportAggregator.monthly(now=at(2024, 1, 10), months=2)

        self.assertEqual(
            [(bucket["month"], bucket["year"]) for bucket in series],
            [("Dec", 2023), ("Jan", 2024)],
        )

    def test_monthly_boundaries_across_dst_change(self):
        with timezone.override("Europe/London"):
            build_order("ord-mar", delivered_at=at(2024, 3, 31, 23, 30))
            build_order("ord-apr", delivered_at=at(2024, 4, 1, 0, 30))
            build_order("ord-feb", delivered_at=at(2024, 2, 29, 23, 30))

            series = ReportAggregator.monthly(now=at(2024, 4, 15), months=2)

        self.assertEqual([bucket["month"] for bucket in series], ["Mar", "Apr"])
        self.assertEqual(series[0]["orders"], 1)
        self.assertEqual(series[1]["orders"], 1)

    def test_payout_cycle_across_dst_change(self):
        with timezone.override("Europe/London"):
            start, end = ReportAggregator.current_payout_cycle(now=at(2024, 3, 31, 12))

            self.assertEqual(start, at(2024, 3, 25))
            self.assertEqual(end, at(2024, 4, 1))
            self.assertEqual(timezone.localtime(start).hour, 0)
            self.assertEqual(timezone.localtime(end).hour, 0)

    def test_restaurant_statement_default_cycle(self):
        current = build_order("ord-now")
        old = build_order("ord-old", delivered_at=timezone.now() - timedelta(days=8))
        SettlementService.settle(current.order_id)
        SettlementService.settle(old.order_id)

        statement = ReportAggregator.restaurant_statement("rest-1")

        self.assertEqual(statement["orders"], 1)
        self.assertEqual(statement["net_earning"], Decimal("405.00"))
        self.assertEqual(statement["payable"], Decimal("405.00"))
        self.assertEqual(statement["start"].weekday(), 0)
        self.assertEqual(statement["end"] - statement["start"], timedelta(days=7))

    def test_wallet_report_labels_and_balances(self):
        account, _ = WalletLedger.open_account("user-1")
        WalletLedger.append(
            account.uuid,
            TxType.ADDITION,
            "200.00",
            gateway_reference="pay_123",
            created_at=at(2024, 3, 1),
        )
        WalletLedger.admin_credit(account.uuid, "50.00", created_at=at(2024, 3, 2))
        WalletLedger.append(
            account.uuid,
            TxType.DEDUCTION,
            "100.00",
            order_id="ord-1",
            created_at=at(2024, 3, 3),
        )

        report = ReportAggregator.wallet_report(from_date=at(2024, 3, 2))
        rows = report["rows"]

        self.assertEqual([row["label"] for row in rows], ["Add Fund By Admin", "Order Payment"])
        self.assertEqual([row["balance"] for row in rows], [Decimal("250.00"), Decimal("150.00")])
        self.assertEqual(rows[1]["reference"], "ord-1")
        self.assertEqual(rows[1]["debit"], Decimal("100.00"))
        self.assertEqual(report["total_credit"], Decimal("50.00"))
        self.assertEqual(report["total_debit"], Decimal("100.00"))


# ============================================================
# Order Service Client Tests
# ============================================================


class OrderServiceClientTest(TestCase):
    @patch("ledger.utils.orders.requests.get")
    def test_unwraps_order_payload(self, mock_get):
        mock_get.return_value.status_code = 200
        mock_get.return_value.json.return_value = {"order": {"orderId": "ord-1"}}

        result = request_order_snapshot("ord-1")

        self.assertTrue(result["success"])
        self.assertEqual(result["response"], {"orderId": "ord-1"})

    @patch("ledger.utils.orders.requests.get")
    def test_http_error(self, mock_get):
        mock_get.return_value.status_code = 404

        result = request_order_snapshot("ord-1")

        self.assertFalse(result["success"])
        self.assertEqual(result["response"]["status"], 404)

    @patch("ledger.utils.orders.requests.get")
    def test_connection_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")

        result = request_order_snapshot("ord-1")

        self.assertFalse(result["success"])
        self.assertEqual(result["response"]["error"], "connection_error")

    @patch("ledger.utils.orders.requests.get")
    def test_timeout(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout("slow")

        result = request_order_snapshot("ord-1")

        self.assertEqual(result["response"]["error"], "timeout")


# ============================================================
# API Tests
# ============================================================


class WalletAPITest(TransactionTestCase):
    def setUp(self):
        self.client = APIClient()
        self.account, _ = WalletLedger.open_account("user-1")
        self.url = reverse("wallet-transactions", args=[self.account.uuid])

    def test_open_wallet(self):
        response = self.client.post(
            reverse("wallet-open"), {"user_id": "user-2"}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["user_id"], "user-2")

        response = self.client.post(
            reverse("wallet-open"), {"user_id": "user-2"}, format="json"
        )
        self.assertEqual(response.status_code, 200)

    def test_wallet_summary(self):
        WalletLedger.append(self.account.uuid, TxType.ADDITION, "100.00")

        response = self.client.get(reverse("wallet-detail", args=[self.account.uuid]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["balance"], "100.00")

    def test_wallet_summary_not_found(self):
        response = self.client.get(
            reverse("wallet-detail", args=["00000000-0000-0000-0000-000000000000"])
        )
        self.assertEqual(response.status_code, 404)

    def test_append(self):
        response = self.client.post(
            self.url,
            {"transaction_type": "addition", "amount": "100.00"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], "Completed")
        self.assertEqual(response.data["wallet_uuid"], str(self.account.uuid))

    def test_append_invalid_amount(self):
        response = self.client.post(
            self.url, {"transaction_type": "addition", "amount": "0"}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    def test_append_insufficient_funds(self):
        WalletLedger.append(self.account.uuid, TxType.ADDITION, "100.00")

        response = self.client.post(
            self.url,
            {"transaction_type": "deduction", "amount": "150.00", "order_id": "ord-1"},
            format="json",
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data["balance"], "100.00")

    def test_append_duplicate_order(self):
        WalletLedger.append(self.account.uuid, TxType.ADDITION, "100.00")
        payload = {"transaction_type": "deduction", "amount": "10.00", "order_id": "ord-1"}

        self.client.post(self.url, payload, format="json")
        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, 409)

    def test_append_unknown_wallet(self):
        response = self.client.post(
            reverse("wallet-transactions", args=["00000000-0000-0000-0000-000000000000"]),
            {"transaction_type": "addition", "amount": "10.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 404)

    def test_history_with_window(self):
        WalletLedger.append(
            self.account.uuid, TxType.ADDITION, "200.00", created_at=at(2024, 3, 1)
        )
        WalletLedger.append(
            self.account.uuid, TxType.DEDUCTION, "50.00", created_at=at(2024, 3, 2)
        )

        response = self.client.get(self.url, {"from": at(2024, 3, 2).isoformat()})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["balance"], "150.00")

    def test_balance(self):
        WalletLedger.append(
            self.account.uuid, TxType.ADDITION, "200.00", created_at=at(2024, 3, 1)
        )

        response = self.client.get(
            reverse("wallet-balance", args=[self.account.uuid]),
            {"as_of": at(2024, 2, 1).isoformat()},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["balance"], "0.00")

    def test_transition(self):
        tx = WalletLedger.append(
            self.account.uuid, TxType.ADDITION, "20.00", TxStatus.PENDING
        )
        url = reverse("transaction-status", args=[self.account.uuid, tx.id])

        response = self.client.post(url, {"status": "Completed"}, format="json")
        self.assertEqual(response.status_code, 200)

        response = self.client.post(url, {"status": "Failed"}, format="json")
        self.assertEqual(response.status_code, 409)


class SettlementAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        CommissionConfig.objects.create(restaurant_id="rest-1", value=Decimal("10"))

    def test_settle(self):
        build_order("ord-1")

        response = self.client.post(
            reverse("settlement-create"), {"order_id": "ord-1"}, format="json"
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["admin_earning"]["commission"], "45.00")
        self.assertEqual(response.data["admin_earning"]["total"], "118.40")
        self.assertEqual(response.data["restaurant_earning"]["net_earning"], "405.00")

        response = self.client.post(
            reverse("settlement-create"), {"order_id": "ord-1"}, format="json"
        )
        self.assertEqual(response.status_code, 200)

    def test_settle_unknown_order(self):
        response = self.client.post(
            reverse("settlement-create"), {"order_id": "missing"}, format="json"
        )
        self.assertEqual(response.status_code, 404)

    def test_settle_undelivered_order(self):
        build_order("ord-1", status=Order.Status.CONFIRMED)

        response = self.client.post(
            reverse("settlement-create"), {"order_id": "ord-1"}, format="json"
        )

        self.assertEqual(response.status_code, 409)

    def test_settle_integrity_alarm(self):
        build_order("ord-1", total=Decimal("600.00"))

        response = self.client.post(
            reverse("settlement-create"), {"order_id": "ord-1"}, format="json"
        )

        self.assertEqual(response.status_code, 422)
        self.assertFalse(Settlement.objects.exists())

    def test_settlement_detail(self):
        build_order("ord-1")
        SettlementService.settle("ord-1")

        response = self.client.get(reverse("settlement-detail", args=["ord-1"]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["order_id"], "ord-1")
        self.assertEqual(response.data["adjustments"], [])

    def test_record_order(self):
        response = self.client.post(reverse("order-record"), snapshot_payload(), format="json")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["changed"])
        self.assertTrue(Order.objects.filter(order_id="ord-100").exists())

    def test_record_invalid_order(self):
        response = self.client.post(
            reverse("order-record"), snapshot_payload(deliveredAt=None), format="json"
        )
        self.assertEqual(response.status_code, 400)


class ReportAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        CommissionConfig.objects.create(restaurant_id=None, value=Decimal("10"))
        build_order("ord-1")
        SettlementService.settle("ord-1")

    def test_dashboard(self):
        response = self.client.get(reverse("report-dashboard"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["revenue"], "523.40")
        self.assertEqual(response.data["unsettled_orders"], 0)

    def test_dashboard_invalid_window(self):
        response = self.client.get(
            reverse("report-dashboard"),
            {"start": at(2024, 3, 2).isoformat(), "end": at(2024, 3, 1).isoformat()},
        )
        self.assertEqual(response.status_code, 400)

    def test_monthly(self):
        response = self.client.get(reverse("report-monthly"), {"months": 2})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[-1]["revenue"], "523.40")

    def test_restaurant_statement(self):
        response = self.client.get(reverse("report-restaurant", args=["rest-1"]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["orders"], 1)
        self.assertEqual(len(response.data["settlements"]), 1)

    def test_wallet_report(self):
        account, _ = WalletLedger.open_account("user-1")
        WalletLedger.append(account.uuid, TxType.ADDITION, "10.00")

        response = self.client.get(reverse("report-wallets"), {"user_id": "user-1"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["rows"][0]["label"], "Add Fund")
        self.assertEqual(response.data["rows"][0]["reference"], "N/A")


# ============================================================
# Celery Task Tests (with mocked order service)
# ============================================================


class CeleryTaskTest(TransactionTestCase):
    def setUp(self):
        CommissionConfig.objects.create(restaurant_id="rest-1", value=Decimal("10"))

    def test_settle_order_task(self):
        build_order("ord-1")

        from ledger.tasks import settle_order

        result = settle_order.apply(args=["ord-1"])
        self.assertEqual(result.get()["status"], "CREATED")

        result = settle_order.apply(args=["ord-1"])
        self.assertEqual(result.get()["status"], "EXISTS")
        self.assertEqual(Settlement.objects.count(), 1)

    def test_settle_order_task_not_found(self):
        from ledger.tasks import settle_order

        result = settle_order.apply(args=["missing"])
        self.assertEqual(result.get()["status"], "NOT_FOUND")

    def test_settle_order_task_invalid_state(self):
        build_order("ord-1", status=Order.Status.PENDING)

        from ledger.tasks import settle_order

        result = settle_order.apply(args=["ord-1"])
        self.assertEqual(result.get()["status"], "INVALID_STATE")

    def test_settle_order_task_integrity_alarm(self):
        build_order("ord-1", total=Decimal("600.00"))

        from ledger.tasks import settle_order

        result = settle_order.apply(args=["ord-1"])
        self.assertEqual(result.get()["status"], "REJECTED")
        self.assertEqual(Settlement.objects.count(), 0)

    @patch("ledger.tasks.settle_order.delay")
    def test_settle_unsettled_orders(self, mock_delay):
        build_order("ord-1")
        build_order("ord-2")
        build_order("ord-3", status=Order.Status.CANCELLED)
        SettlementService.settle("ord-2")

        from ledger.tasks import settle_unsettled_orders

        result = settle_unsettled_orders.apply()

        self.assertEqual(result.get()["dispatched"], 1)
        mock_delay.assert_called_once_with("ord-1")

    @patch("ledger.tasks.settle_order.delay")
    @patch("ledger.tasks.request_order_snapshot")
    def test_sync_delivered_order(self, mock_snapshot, mock_delay):
        mock_snapshot.return_value = {"success": True, "response": snapshot_payload("ord-9")}

        from ledger.tasks import sync_delivered_order

        result = sync_delivered_order.apply(args=["ord-9"])

        self.assertEqual(result.get()["status"], "SETTLEMENT_DISPATCHED")
        self.assertTrue(Order.objects.get(order_id="ord-9").is_delivered)
        mock_delay.assert_called_once_with("ord-9")

    @patch("ledger.tasks.settle_order.delay")
    @patch("ledger.tasks.request_order_snapshot")
    def test_sync_open_order_does_not_settle(self, mock_snapshot, mock_delay):
        mock_snapshot.return_value = {
            "success": True,
            "response": snapshot_payload("ord-9", status="preparing"),
        }

        from ledger.tasks import sync_delivered_order

        result = sync_delivered_order.apply(args=["ord-9"])

        self.assertEqual(result.get()["status"], "RECORDED")
        mock_delay.assert_not_called()

    @patch("ledger.tasks.request_order_snapshot")
    def test_sync_order_not_found_upstream(self, mock_snapshot):
        mock_snapshot.return_value = {
            "success": False,
            "response": {"error": "http_error", "status": 404},
        }

        from ledger.tasks import sync_delivered_order

        result = sync_delivered_order.apply(args=["ord-9"])

        self.assertEqual(result.get()["status"], "FETCH_FAILED")
        self.assertEqual(mock_snapshot.call_count, 1)

    @patch("ledger.tasks.request_order_snapshot")
    def test_sync_retries_when_order_service_is_down(self, mock_snapshot):
        mock_snapshot.return_value = {
            "success": False,
            "response": {"error": "connection_error", "detail": "refused"},
        }

        from ledger.tasks import sync_delivered_order

        result = sync_delivered_order.apply(args=["ord-9"])

        self.assertTrue(result.failed())
        self.assertGreater(mock_snapshot.call_count, 1)
        self.assertFalse(Order.objects.filter(order_id="ord-9").exists())


# ============================================================
# Middleware / Management Command Tests
# ============================================================


class RequestLoggingMiddlewareTest(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_logs_request_and_response(self):
        with self.assertLogs("ledger.middleware", level="INFO") as logs:
            self.client.post(reverse("wallet-open"), {"user_id": "user-1"}, format="json")

        output = "\n".join(logs.output)
        self.assertIn("API request: method=POST path=/wallets/", output)
        self.assertIn("user-1", output)
        self.assertIn("status=201", output)

    def test_error_responses_logged_as_warning(self):
        with self.assertLogs("ledger.middleware", level="WARNING") as logs:
            self.client.get(
                reverse("wallet-detail", args=["00000000-0000-0000-0000-000000000000"])
            )

        self.assertIn("status=404", logs.output[0])


class WaitForDbCommandTest(TestCase):
    def test_database_available(self):
        out = StringIO()
        call_command("wait_for_db", stdout=out)
        self.assertIn("Database available!", out.getvalue())

    def test_gives_up_after_timeout(self):
        with patch.object(
            connections["default"], "ensure_connection", side_effect=OperationalError
        ):
            with self.assertRaises(CommandError):
                call_command("wait_for_db", timeout=0, stdout=StringIO())
