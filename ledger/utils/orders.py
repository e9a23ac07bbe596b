import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

# Configurable via Django settings with sensible defaults
ORDER_SERVICE_BASE_URL = getattr(
    settings, "ORDER_SERVICE_BASE_URL", "http://localhost:8020"
)
ORDER_SERVICE_TIMEOUT = getattr(settings, "ORDER_SERVICE_TIMEOUT", 10)


def request_order_snapshot(order_id: str) -> dict:
    """
    Fetch the current snapshot of an order from the order-management service.

    Network failures and non-200 answers are reported in the result instead
    of raised, so callers (Celery tasks) can decide whether to retry.

    Args:
        order_id: External identifier of the order.

    Returns:
        dict with keys:
            - success (bool): Whether a snapshot was returned.
            - response (dict): The order payload or error details.
    """
    try:
        response = requests.get(
            f"{ORDER_SERVICE_BASE_URL}/orders/{order_id}",
            timeout=ORDER_SERVICE_TIMEOUT,
        )

        if response.status_code == 200:
            payload = response.json()
            # The service wraps the order as {"order": {...}} on some routes
            if isinstance(payload, dict) and isinstance(payload.get("order"), dict):
                payload = payload["order"]
            logger.info("Order snapshot fetched: order=%s", order_id)
            return {"success": True, "response": payload}

        logger.warning(
            "Order snapshot request rejected: order=%s status=%d",
            order_id,
            response.status_code,
        )
        return {
            "success": False,
            "response": {"error": "http_error", "status": response.status_code},
        }

    except requests.exceptions.ConnectionError as exc:
        logger.error(
            "Order service connection error: order=%s error=%s", order_id, str(exc)
        )
        return {
            "success": False,
            "response": {"error": "connection_error", "detail": str(exc)},
        }

    except requests.exceptions.Timeout as exc:
        logger.error("Order service timeout: order=%s error=%s", order_id, str(exc))
        return {
            "success": False,
            "response": {"error": "timeout", "detail": str(exc)},
        }

    except (requests.exceptions.RequestException, ValueError) as exc:
        logger.error(
            "Order service request error: order=%s error=%s", order_id, str(exc)
        )
        return {
            "success": False,
            "response": {"error": "request_error", "detail": str(exc)},
        }
