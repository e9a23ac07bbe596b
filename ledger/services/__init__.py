from ledger.services.calculator import SettlementBreakdown, SettlementCalculator
from ledger.services.commission import CommissionResolver, ResolvedCommission
from ledger.services.ledger import HistoryEntry, TransactionStatusService, WalletLedger
from ledger.services.orders import OrderIntakeService
from ledger.services.reports import ReportAggregator
from ledger.services.settlement import SettlementService, SettlementStore

__all__ = [
    "CommissionResolver",
    "HistoryEntry",
    "OrderIntakeService",
    "ReportAggregator",
    "ResolvedCommission",
    "SettlementBreakdown",
    "SettlementCalculator",
    "SettlementService",
    "SettlementStore",
    "TransactionStatusService",
    "WalletLedger",
]
