import logging

from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.serializers import (
    DashboardSerializer,
    DateRangeSerializer,
    MonthlyBucketSerializer,
    MonthlyQuerySerializer,
    RestaurantStatementSerializer,
    WalletReportQuerySerializer,
    WalletReportSerializer,
)
from ledger.services import ReportAggregator

logger = logging.getLogger(__name__)


class DashboardView(APIView):
    """
    GET /reports/dashboard/ — Revenue and commission for a window.

    Query params:
        - start, end: Half-open window on delivery time. Open-ended if omitted.
    """

    def get(self, request, *args, **kwargs):
        query = DateRangeSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        report = ReportAggregator.dashboard(**query.validated_data)
        return Response(DashboardSerializer(report).data)


class MonthlyReportView(APIView):
    """GET /reports/monthly/?months= — Trailing monthly series, oldest first."""

    def get(self, request, *args, **kwargs):
        query = MonthlyQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        series = ReportAggregator.monthly(months=query.validated_data["months"])
        return Response(MonthlyBucketSerializer(series, many=True).data)


class RestaurantStatementView(APIView):
    """
    GET /reports/restaurants/<restaurant_id>/ — Payout statement.

    Defaults to the current Monday to Sunday cycle.
    """

    def get(self, request, restaurant_id, *args, **kwargs):
        query = DateRangeSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        statement = ReportAggregator.restaurant_statement(
            restaurant_id, **query.validated_data
        )
        return Response(RestaurantStatementSerializer(statement).data)


class WalletReportView(APIView):
    """
    GET /reports/wallets/ — Customer wallet report.

    Query params:
        - from_date, to_date: Inclusive bounds on created_at.
        - user_id: Restrict to one customer.
    """

    def get(self, request, *args, **kwargs):
        query = WalletReportQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        report = ReportAggregator.wallet_report(**query.validated_data)
        return Response(WalletReportSerializer(report).data)
