import logging
from decimal import Decimal
from typing import List, NamedTuple, Tuple

from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from ledger.exceptions import (
    DuplicateOrderTransaction,
    InsufficientFunds,
    InvalidAmount,
    InvalidStatusTransition,
)
from ledger.models import Transaction, WalletAccount
from ledger.utils.money import ZERO, round2, to_decimal

logger = logging.getLogger(__name__)

TxType = Transaction.TransactionType
TxStatus = Transaction.Status

ADMIN_CREDIT_PREFIX = "Admin credit"


class HistoryEntry(NamedTuple):
    transaction: Transaction
    balance: Decimal


class WalletLedger:
    """
    Append-only wallet history with derived balances.

    Appends to one account are serialized by locking the account row with
    select_for_update() for the duration of the database transaction, so the
    funds check and the insert see the same balance. Appends to different
    accounts never wait on each other.

    Balances are replayed in created_at order (ties by id), never in storage
    order, and only Completed entries move them.
    """

    @staticmethod
    def open_account(user_id: str) -> Tuple[WalletAccount, bool]:
        """Get or create the single wallet of a user."""
        account, created = WalletAccount.objects.get_or_create(user_id=user_id)
        if created:
            logger.info("Wallet opened: user=%s account=%s", user_id, account.uuid)
        return account, created

    @staticmethod
    @transaction.atomic
    def append(
        account_uuid,
        transaction_type: str,
        amount,
        status: str = TxStatus.COMPLETED,
        *,
        order_id: str = "",
        description: str = "",
        gateway_reference: str = "",
        created_at=None,
        allow_overdraft: bool = False,
    ) -> Transaction:
        """
        Append a transaction to a wallet.

        Args:
            account_uuid: Public identifier of the wallet.
            transaction_type: addition, deduction or refund.
            amount: Strictly positive amount.
            status: Pending, Completed or Failed.
            order_id: Order the entry belongs to, if any.
            description: Free text shown in statements.
            gateway_reference: Payment gateway reference for top-ups.
            created_at: Time of the underlying event; defaults to now.
            allow_overdraft: Authorize a Completed deduction to overdraw.

        Returns:
            The created Transaction.

        Raises:
            WalletAccount.DoesNotExist: If the wallet doesn't exist.
            InvalidAmount: If amount is not positive.
            ValueError: If the type or status is unknown.
            InsufficientFunds: If a Completed deduction would overdraw.
            DuplicateOrderTransaction: If the order already has a deduction
                (or refund) on this wallet.
        """
        amount = round2(to_decimal(amount))
        if amount <= 0:
            raise InvalidAmount(f"Transaction amount must be positive, got {amount}.")
        if transaction_type not in TxType.values:
            raise ValueError(f"Unknown transaction type: {transaction_type!r}.")
        if status not in TxStatus.values:
            raise ValueError(f"Unknown transaction status: {status!r}.")

        # Lock the account row: one writer per wallet at a time
        account = WalletAccount.objects.select_for_update().get(uuid=account_uuid)
        if created_at is None:
            created_at = timezone.now()

        if order_id and transaction_type in Transaction.ORDER_UNIQUE_TYPES:
            if account.transactions.filter(
                order_id=order_id, transaction_type=transaction_type
            ).exists():
                logger.warning(
                    "Duplicate order transaction: account=%s order=%s type=%s",
                    account.uuid,
                    order_id,
                    transaction_type,
                )
                raise DuplicateOrderTransaction(
                    f"A {transaction_type} for order {order_id} already exists."
                )

        if (
            transaction_type == TxType.DEDUCTION
            and status == TxStatus.COMPLETED
            and not allow_overdraft
        ):
            # Every later Completed entry must still see enough funds
            balance = Transaction.lowest_balance_from(account.pk, created_at)
            if balance < amount:
                logger.warning(
                    "Deduction rejected (insufficient funds): account=%s balance=%s "
                    "amount=%s order=%s",
                    account.uuid,
                    balance,
                    amount,
                    order_id,
                )
                raise InsufficientFunds(balance, amount)

        fields = {
            "account": account,
            "amount": amount,
            "transaction_type": transaction_type,
            "status": status,
            "order_id": order_id or "",
            "description": description or "",
            "gateway_reference": gateway_reference or "",
            "allow_overdraft": allow_overdraft,
            "created_at": created_at,
        }

        try:
            with transaction.atomic():
                tx = Transaction.objects.create(**fields)
        except IntegrityError:
            raise DuplicateOrderTransaction(
                f"A {transaction_type} for order {order_id} already exists."
            )

        logger.info(
            "Wallet transaction appended: account=%s type=%s amount=%s status=%s "
            "order=%s tx=%d",
            account.uuid,
            transaction_type,
            amount,
            status,
            order_id,
            tx.id,
        )
        return tx

    @staticmethod
    def admin_credit(account_uuid, amount, note: str = "", created_at=None) -> Transaction:
        """Completed addition made by an operator rather than a top-up."""
        description = f"{ADMIN_CREDIT_PREFIX}: {note}" if note else ADMIN_CREDIT_PREFIX
        return WalletLedger.append(
            account_uuid,
            TxType.ADDITION,
            amount,
            TxStatus.COMPLETED,
            description=description,
            created_at=created_at,
        )

    @staticmethod
    def balance_as_of(account_uuid, timestamp=None) -> Decimal:
        """Completed balance including every entry created at or before `timestamp`."""
        account = WalletAccount.objects.get(uuid=account_uuid)
        return round2(Transaction.completed_balance(account.pk, as_of=timestamp))

    @staticmethod
    def history(account_uuid, from_date=None, to_date=None) -> List[HistoryEntry]:
        """
        Time-ordered entries with the running balance after each one.

        The window only decides which rows are returned. Every earlier entry
        is still accumulated, so a row shows the same balance whatever window
        it is viewed through.
        """
        account = WalletAccount.objects.get(uuid=account_uuid)
        return WalletLedger.replay(account, from_date, to_date)

    @staticmethod
    def replay(account: WalletAccount, from_date=None, to_date=None) -> List[HistoryEntry]:
        transactions = account.transactions.order_by("created_at", "id")
        if to_date is not None:
            transactions = transactions.filter(created_at__lte=to_date)

        running = ZERO
        entries = []
        for tx in transactions:
            if tx.affects_balance:
                running += tx.signed_amount
            if from_date is not None and tx.created_at < from_date:
                continue
            entries.append(HistoryEntry(tx, running))
        return entries

    @staticmethod
    def summary(account_uuid) -> dict:
        """Derived balance and lifetime totals of a wallet."""
        account = WalletAccount.objects.get(uuid=account_uuid)
        completed = Q(status=TxStatus.COMPLETED)
        totals = account.transactions.aggregate(
            total_added=Sum(
                "amount", filter=completed & Q(transaction_type=TxType.ADDITION)
            ),
            total_spent=Sum(
                "amount", filter=completed & Q(transaction_type=TxType.DEDUCTION)
            ),
            total_refunded=Sum(
                "amount", filter=completed & Q(transaction_type=TxType.REFUND)
            ),
            pending=Count("id", filter=Q(status=TxStatus.PENDING)),
            count=Count("id"),
        )
        added = round2(totals["total_added"] or ZERO)
        spent = round2(totals["total_spent"] or ZERO)
        refunded = round2(totals["total_refunded"] or ZERO)
        return {
            "uuid": account.uuid,
            "user_id": account.user_id,
            "currency": account.currency,
            "balance": added + refunded - spent,
            "total_added": added,
            "total_spent": spent,
            "total_refunded": refunded,
            "pending_transactions": totals["pending"],
            "total_transactions": totals["count"],
        }


class TransactionStatusService:
    """
    Status transitions for the owner of the payment or refund event.

    Mirrors WalletLedger.append's locking: the account row is locked before
    a deduction is allowed to complete, so the funds check cannot race with
    concurrent appends.
    """

    @staticmethod
    @transaction.atomic
    def transition(transaction_id: int, new_status: str) -> Transaction:
        """
        Move a Pending transaction to Completed or Failed.

        Raises:
            Transaction.DoesNotExist: If the transaction doesn't exist.
            InvalidStatusTransition: If it is not Pending or the target is invalid.
            InsufficientFunds: If completing a deduction would overdraw.
        """
        if new_status not in (TxStatus.COMPLETED, TxStatus.FAILED):
            raise InvalidStatusTransition(
                f"Transactions can only move to Completed or Failed, not {new_status!r}."
            )

        account_id = Transaction.objects.values_list("account_id", flat=True).get(
            pk=transaction_id
        )
        WalletAccount.objects.select_for_update().get(pk=account_id)
        tx = Transaction.objects.select_for_update().get(pk=transaction_id)

        if tx.status != TxStatus.PENDING:
            raise InvalidStatusTransition(
                f"Transaction {tx.id} is {tx.status}; only Pending can transition."
            )

        if (
            new_status == TxStatus.COMPLETED
            and tx.transaction_type == TxType.DEDUCTION
            and not tx.allow_overdraft
        ):
            balance = Transaction.lowest_balance_from(
                account_id, tx.created_at, position_id=tx.id
            )
            if balance < tx.amount:
                logger.warning(
                    "Deduction completion rejected (insufficient funds): tx=%d "
                    "balance=%s amount=%s",
                    tx.id,
                    balance,
                    tx.amount,
                )
                raise InsufficientFunds(balance, tx.amount)

        tx.status = new_status
        tx.save(update_fields=["status", "updated_at"])

        logger.info(
            "Wallet transaction %s: tx=%d type=%s amount=%s",
            new_status.lower(),
            tx.id,
            tx.transaction_type,
            tx.amount,
        )
        return tx
