import logging

from rest_framework import status
from rest_framework.generics import RetrieveAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.exceptions import IntegrityAlarm, InvalidOrderState
from ledger.models import Order, Settlement
from ledger.serializers import (
    OrderSerializer,
    SettleOrderSerializer,
    SettlementSerializer,
)
from ledger.services import OrderIntakeService, SettlementService

logger = logging.getLogger(__name__)


class RecordOrderView(APIView):
    """
    POST /orders/ — Record an order snapshot pushed by the order service.

    Request body: the order-management payload (orderId, status, pricing, ...).
    """

    def post(self, request, *args, **kwargs):
        order, changed = OrderIntakeService.record(request.data)
        return Response(
            {"order": OrderSerializer(order).data, "changed": changed},
            status=status.HTTP_200_OK,
        )


class SettleOrderView(APIView):
    """
    POST /settlements/ — Settle a delivered order.

    Request body: {"order_id": "<id>"}
    Returns 201 when the settlement was created, 200 when it already existed.
    """

    def post(self, request, *args, **kwargs):
        serializer = SettleOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order_id = serializer.validated_data["order_id"]

        try:
            settlement, created = SettlementService.settle(order_id)
        except Order.DoesNotExist:
            return Response(
                {"error": "Order not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        except InvalidOrderState as exc:
            return Response(
                {"error": str(exc)},
                status=status.HTTP_409_CONFLICT,
            )
        except IntegrityAlarm as exc:
            logger.error("Settlement rejected: order=%s error=%s", order_id, exc)
            return Response(
                {"error": str(exc)},
                status=status.HTTP_422_UNPROCESSABLE_ENTITY,
            )

        return Response(
            SettlementSerializer(settlement).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class SettlementDetailView(RetrieveAPIView):
    """GET /settlements/<order_id>/ — Retrieve the settlement of an order."""

    serializer_class = SettlementSerializer
    queryset = Settlement.objects.prefetch_related("adjustments")
    lookup_field = "order_id"
