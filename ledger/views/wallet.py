import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.models import WalletAccount
from ledger.serializers import (
    BalanceQuerySerializer,
    OpenWalletSerializer,
    WalletAccountSerializer,
    WalletSummarySerializer,
)
from ledger.services import WalletLedger

logger = logging.getLogger(__name__)


class OpenWalletView(APIView):
    """
    POST /wallets/ — Open the wallet of a user.

    Request body: {"user_id": "<id>"}
    Returns 201 when the wallet was created, 200 when it already existed.
    """

    def post(self, request, *args, **kwargs):
        serializer = OpenWalletSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        account, created = WalletLedger.open_account(
            serializer.validated_data["user_id"]
        )
        return Response(
            WalletAccountSerializer(account).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class WalletSummaryView(APIView):
    """GET /wallets/<uuid>/ — Derived balance and totals of a wallet."""

    def get(self, request, uuid, *args, **kwargs):
        try:
            summary = WalletLedger.summary(uuid)
        except WalletAccount.DoesNotExist:
            return Response(
                {"error": "Wallet not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(WalletSummarySerializer(summary).data)


class WalletBalanceView(APIView):
    """
    GET /wallets/<uuid>/balance/ — Completed balance.

    Query params:
        - as_of: Only count entries created at or before this time.
    """

    def get(self, request, uuid, *args, **kwargs):
        query = BalanceQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        as_of = query.validated_data["as_of"]

        try:
            balance = WalletLedger.balance_as_of(uuid, as_of)
        except WalletAccount.DoesNotExist:
            return Response(
                {"error": "Wallet not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response({"uuid": str(uuid), "as_of": as_of, "balance": str(balance)})
