from ledger.models.commission import CommissionConfig, CommissionKind, CommissionRule
from ledger.models.order import Order
from ledger.models.settlement import Settlement, SettlementAdjustment
from ledger.models.transaction import Transaction
from ledger.models.wallet import WalletAccount

__all__ = [
    "CommissionConfig",
    "CommissionKind",
    "CommissionRule",
    "Order",
    "Settlement",
    "SettlementAdjustment",
    "Transaction",
    "WalletAccount",
]
