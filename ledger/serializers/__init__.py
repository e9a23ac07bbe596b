from ledger.serializers.order import OrderSerializer, OrderSnapshotSerializer
from ledger.serializers.report import (
    DashboardSerializer,
    DateRangeSerializer,
    MonthlyBucketSerializer,
    MonthlyQuerySerializer,
    RestaurantStatementSerializer,
    WalletReportQuerySerializer,
    WalletReportSerializer,
)
from ledger.serializers.settlement import SettleOrderSerializer, SettlementSerializer
from ledger.serializers.transaction import (
    AppendTransactionSerializer,
    BalanceQuerySerializer,
    HistoryEntrySerializer,
    HistoryQuerySerializer,
    TransactionSerializer,
    TransitionSerializer,
)
from ledger.serializers.wallet import (
    OpenWalletSerializer,
    WalletAccountSerializer,
    WalletSummarySerializer,
)

__all__ = [
    "AppendTransactionSerializer",
    "BalanceQuerySerializer",
    "DashboardSerializer",
    "DateRangeSerializer",
    "HistoryEntrySerializer",
    "HistoryQuerySerializer",
    "MonthlyBucketSerializer",
    "MonthlyQuerySerializer",
    "OpenWalletSerializer",
    "OrderSerializer",
    "OrderSnapshotSerializer",
    "RestaurantStatementSerializer",
    "SettleOrderSerializer",
    "SettlementSerializer",
    "TransactionSerializer",
    "TransitionSerializer",
    "WalletAccountSerializer",
    "WalletReportQuerySerializer",
    "WalletReportSerializer",
    "WalletSummarySerializer",
]
