import logging

from rest_framework import status
from rest_framework.generics import RetrieveAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.exceptions import (
    DuplicateOrderTransaction,
    InsufficientFunds,
    InvalidStatusTransition,
)
from ledger.models import Transaction, WalletAccount
from ledger.serializers import (
    AppendTransactionSerializer,
    HistoryEntrySerializer,
    HistoryQuerySerializer,
    TransactionSerializer,
    TransitionSerializer,
)
from ledger.services import TransactionStatusService, WalletLedger

logger = logging.getLogger(__name__)


class WalletTransactionsView(APIView):
    """
    /wallets/<uuid>/transactions/

    GET  — History with running balances.
           Query params: from, to (inclusive bounds on created_at).
    POST — Append a transaction.
           Request body: {"transaction_type", "amount", "status", "order_id", ...}
    """

    def get(self, request, uuid, *args, **kwargs):
        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            entries = WalletLedger.history(
                uuid,
                from_date=query.validated_data.get("from_date"),
                to_date=query.validated_data.get("to_date"),
            )
        except WalletAccount.DoesNotExist:
            return Response(
                {"error": "Wallet not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(HistoryEntrySerializer(entries, many=True).data)

    def post(self, request, uuid, *args, **kwargs):
        serializer = AppendTransactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            tx = WalletLedger.append(
                uuid,
                data["transaction_type"],
                data["amount"],
                data["status"],
                order_id=data["order_id"],
                description=data["description"],
                gateway_reference=data["gateway_reference"],
                created_at=data["created_at"],
                allow_overdraft=data["allow_overdraft"],
            )
        except WalletAccount.DoesNotExist:
            return Response(
                {"error": "Wallet not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        except DuplicateOrderTransaction as exc:
            return Response(
                {"error": str(exc)},
                status=status.HTTP_409_CONFLICT,
            )
        except InsufficientFunds as exc:
            return Response(
                {
                    "error": str(exc),
                    "balance": str(exc.balance),
                    "amount": str(exc.amount),
                },
                status=status.HTTP_422_UNPROCESSABLE_ENTITY,
            )
        except ValueError as exc:
            return Response(
                {"error": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(
            TransactionSerializer(tx).data,
            status=status.HTTP_201_CREATED,
        )


class TransactionDetailView(RetrieveAPIView):
    """GET /wallets/<uuid>/transactions/<id>/ — Retrieve a single transaction."""

    serializer_class = TransactionSerializer
    lookup_field = "id"

    def get_queryset(self):
        return Transaction.objects.filter(account__uuid=self.kwargs["uuid"])


class TransactionStatusView(APIView):
    """
    POST /wallets/<uuid>/transactions/<id>/status/ — Settle a Pending entry.

    Request body: {"status": "Completed" | "Failed"}
    """

    def post(self, request, uuid, id, *args, **kwargs):
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if not Transaction.objects.filter(id=id, account__uuid=uuid).exists():
            return Response(
                {"error": "Transaction not found."},
                status=status.HTTP_404_NOT_FOUND,
            )

        try:
            tx = TransactionStatusService.transition(
                id, serializer.validated_data["status"]
            )
        except InvalidStatusTransition as exc:
            return Response(
                {"error": str(exc)},
                status=status.HTTP_409_CONFLICT,
            )
        except InsufficientFunds as exc:
            return Response(
                {"error": str(exc)},
                status=status.HTTP_422_UNPROCESSABLE_ENTITY,
            )

        return Response(TransactionSerializer(tx).data)
