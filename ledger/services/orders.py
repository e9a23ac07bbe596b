import logging
from typing import Tuple

from django.db import transaction

from ledger.models import Order
from ledger.serializers.order import OrderSnapshotSerializer

logger = logging.getLogger(__name__)


class OrderIntakeService:
    """
    Records order snapshots from the order-management service.

    Payloads are validated into one normalized schema at this boundary.
    Snapshots of an order that is already delivered are ignored: a delivered
    order is frozen.
    """

    @staticmethod
    @transaction.atomic
    def record(payload: dict) -> Tuple[Order, bool]:
        """
        Validate and store an order snapshot.

        Returns:
            (order, changed). changed is False when the stored order was
            already delivered and the snapshot was ignored.

        Raises:
            rest_framework.exceptions.ValidationError: If the payload is invalid.
        """
        serializer = OrderSnapshotSerializer(data=payload)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        fields = {
            "status": data["status"],
            "restaurant_id": data["restaurant_id"],
            "customer_id": data.get("customer_id", ""),
            "delivered_at": data.get("delivered_at"),
            **data["pricing"],
        }
        if data.get("created_at") is not None:
            fields["created_at"] = data["created_at"]

        order = (
            Order.objects.select_for_update()
            .filter(order_id=data["order_id"])
            .first()
        )
        if order is None:
            order = Order.objects.create(order_id=data["order_id"], **fields)
            logger.info(
                "Order snapshot recorded: order=%s status=%s total=%s",
                order.order_id,
                order.status,
                order.total,
            )
            return order, True

        if order.is_delivered:
            logger.warning(
                "Ignoring snapshot for delivered order: order=%s incoming_status=%s",
                order.order_id,
                data["status"],
            )
            return order, False

        for name, value in fields.items():
            setattr(order, name, value)
        order.save()
        logger.info(
            "Order snapshot updated: order=%s status=%s", order.order_id, order.status
        )
        return order, True
