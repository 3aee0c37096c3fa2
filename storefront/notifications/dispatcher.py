import logging
from typing import Optional

from prometheus_client import Counter

from .model import Notification, notification_to_dict
from ..common.database import AsyncSessionLocal
from ..orders.model import ACCEPTED, REJECTED
from ..realtime.channels import publish_notification

_logger = logging.getLogger(__name__)

ORDER_STATUS_TITLE = "Order Status Updated"

NOTIFICATIONS_DISPATCHED = Counter(
    "notifications_dispatched_total", "Order status notifications by outcome", ["outcome"]
)


def notification_type_for(status: str) -> str:
    if status == ACCEPTED:
        return "success"
    if status == REJECTED:
        return "error"
    return "info"


def status_message(order_id: int, status: str, notes: str = "") -> str:
    message = f"Your order #{order_id} has been {status}."
    notes = (notes or "").strip()
    if notes:
        message = f"{message} {notes}"
    return message


async def dispatch_order_notification(
    order_id: int, customer_id: str, new_status: str, notes: str = ""
) -> Optional[Notification]:
    """Persist and push one notification for a status change.

    Best-effort: failures are logged and None is returned, never raised.
    """
    try:
        async with AsyncSessionLocal() as session:
            notification = Notification(
                user_id=customer_id,
                title=ORDER_STATUS_TITLE,
                message=status_message(order_id, new_status, notes),
                type=notification_type_for(new_status),
                read=False,
                related_order_id=order_id,
            )
            session.add(notification)
            await session.commit()
            await session.refresh(notification)
    except Exception as e:
        NOTIFICATIONS_DISPATCHED.labels(outcome="failed").inc()
        _logger.error("Failed to create notification | order_id=%s err=%s", order_id, e)
        return None

    NOTIFICATIONS_DISPATCHED.labels(outcome="created").inc()
    _logger.info(
        "Created order notification %s for user %s | order_id=%s status=%s",
        notification.id,
        customer_id,
        order_id,
        new_status,
    )
    try:
        await publish_notification(notification_to_dict(notification))
    except Exception as e:
        _logger.warning("Notification push failed, customer will see it on next fetch | id=%s err=%s", notification.id, e)
    return notification
