from ledger.views.report import (
    DashboardView,
    MonthlyReportView,
    RestaurantStatementView,
    WalletReportView,
)
from ledger.views.settlement import (
    RecordOrderView,
    SettleOrderView,
    SettlementDetailView,
)
from ledger.views.transaction import (
    TransactionDetailView,
    TransactionStatusView,
    WalletTransactionsView,
)
from ledger.views.wallet import OpenWalletView, WalletBalanceView, WalletSummaryView

__all__ = [
    "DashboardView",
    "MonthlyReportView",
    "OpenWalletView",
    "RecordOrderView",
    "RestaurantStatementView",
    "SettleOrderView",
    "SettlementDetailView",
    "TransactionDetailView",
    "TransactionStatusView",
    "WalletBalanceView",
    "WalletReportView",
    "WalletSummaryView",
    "WalletTransactionsView",
]
