from django.urls import path

from ledger.views import (
    DashboardView,
    MonthlyReportView,
    OpenWalletView,
    RecordOrderView,
    RestaurantStatementView,
    SettleOrderView,
    SettlementDetailView,
    TransactionDetailView,
    TransactionStatusView,
    WalletBalanceView,
    WalletReportView,
    WalletSummaryView,
    WalletTransactionsView,
)

urlpatterns = [
    path("wallets/", OpenWalletView.as_view(), name="wallet-open"),
    path("wallets/<uuid:uuid>/", WalletSummaryView.as_view(), name="wallet-detail"),
    path(
        "wallets/<uuid:uuid>/balance/",
        WalletBalanceView.as_view(),
        name="wallet-balance",
    ),
    path(
        "wallets/<uuid:uuid>/transactions/",
        WalletTransactionsView.as_view(),
        name="wallet-transactions",
    ),
    path(
        "wallets/<uuid:uuid>/transactions/<int:id>/",
        TransactionDetailView.as_view(),
        name="transaction-detail",
    ),
    path(
        "wallets/<uuid:uuid>/transactions/<int:id>/status/",
        TransactionStatusView.as_view(),
        name="transaction-status",
    ),
    path("orders/", RecordOrderView.as_view(), name="order-record"),
    path("settlements/", SettleOrderView.as_view(), name="settlement-create"),
    path(
        "settlements/<str:order_id>/",
        SettlementDetailView.as_view(),
        name="settlement-detail",
    ),
    path("reports/dashboard/", DashboardView.as_view(), name="report-dashboard"),
    path("reports/monthly/", MonthlyReportView.as_view(), name="report-monthly"),
    path(
        "reports/restaurants/<str:restaurant_id>/",
        RestaurantStatementView.as_view(),
        name="report-restaurant",
    ),
    path("reports/wallets/", WalletReportView.as_view(), name="report-wallets"),
]
