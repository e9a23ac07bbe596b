import logging

from celery import shared_task
from django.conf import settings
from rest_framework.exceptions import ValidationError

from ledger.exceptions import IntegrityAlarm, InvalidOrderState
from ledger.models import Order
from ledger.services import OrderIntakeService, SettlementService
from ledger.utils import request_order_snapshot

logger = logging.getLogger(__name__)

MAX_RETRIES = getattr(settings, "SETTLEMENT_MAX_RETRIES", 3)
POLL_BATCH_SIZE = getattr(settings, "SETTLEMENT_POLL_BATCH_SIZE", 500)

# Failures of the order service worth another attempt
TRANSIENT_ERRORS = ("connection_error", "timeout")


@shared_task(bind=True, acks_late=True, max_retries=MAX_RETRIES, default_retry_delay=30)
def settle_order(self, order_id: str):
    """
    Settle one delivered order.

    Uses acks_late=True so a crashed worker leaves the message on the queue;
    running it twice is harmless because settlement is at-most-once.
    """
    try:
        logger.info("Settling order=%s", order_id)
        settlement, created = SettlementService.settle(order_id)
        return {
            "order_id": order_id,
            "status": "CREATED" if created else "EXISTS",
            "settlement_id": settlement.pk,
        }

    except Order.DoesNotExist:
        logger.error("Order %s not found; cannot settle.", order_id)
        return {"order_id": order_id, "status": "NOT_FOUND"}

    except InvalidOrderState as exc:
        logger.warning("Order %s not settled: %s", order_id, exc)
        return {"order_id": order_id, "status": "INVALID_STATE", "error": str(exc)}

    except IntegrityAlarm as exc:
        # Needs manual reconciliation; not retried
        logger.error("Settlement integrity alarm for order=%s: %s", order_id, exc)
        return {"order_id": order_id, "status": "REJECTED", "error": str(exc)}

    except Exception as exc:
        logger.exception(
            "Unexpected error settling order=%s: %s",
            order_id,
            str(exc),
        )
        # Retry with exponential backoff
        raise self.retry(exc=exc, countdown=2**self.request.retries * 10)


@shared_task
def settle_unsettled_orders():
    """
    Periodic task: dispatch settlement for delivered orders that have none.

    Catches orders whose settlement was never triggered or whose task was
    lost. Runs via Celery Beat.
    """
    order_ids = list(
        Order.get_unsettled_deliveries()
        .order_by("delivered_at", "id")
        .values_list("order_id", flat=True)[:POLL_BATCH_SIZE]
    )
    count = len(order_ids)

    if count == 0:
        return {"dispatched": 0}

    logger.info("Found %d delivered order(s) without settlement.", count)

    for order_id in order_ids:
        settle_order.delay(order_id)

    return {"dispatched": count}


@shared_task(bind=True, acks_late=True, max_retries=MAX_RETRIES, default_retry_delay=30)
def sync_delivered_order(self, order_id: str):
    """
    Pull an order from the order-management service, record it and, once it
    is delivered, dispatch its settlement.
    """
    result = request_order_snapshot(order_id)

    if not result["success"]:
        error = result["response"].get("error")
        if error in TRANSIENT_ERRORS:
            logger.warning(
                "Order service unavailable for order=%s (%s), retrying.", order_id, error
            )
            raise self.retry(countdown=2**self.request.retries * 10)
        return {"order_id": order_id, "status": "FETCH_FAILED", "error": error}

    try:
        order, changed = OrderIntakeService.record(result["response"])
    except ValidationError as exc:
        logger.error("Invalid snapshot for order=%s: %s", order_id, exc.detail)
        return {"order_id": order_id, "status": "INVALID_SNAPSHOT", "errors": exc.detail}

    if order.is_delivered:
        settle_order.delay(order.order_id)
        return {
            "order_id": order.order_id,
            "status": "SETTLEMENT_DISPATCHED",
            "changed": changed,
        }

    return {"order_id": order.order_id, "status": "RECORDED", "order_status": order.status}
