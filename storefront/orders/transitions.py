"""Order transition engine.

Legal moves form a forward-only graph::

    pending   -> accepted | rejected
    accepted  -> preparing
    preparing -> ready
    ready     -> delivered

``cancelled`` is a valid status value but nothing transitions into it.
"""
import logging
from typing import Dict, Tuple

from prometheus_client import Counter

from . import store
from .model import (
    ACCEPTED,
    DELIVERED,
    Order,
    PENDING,
    PREPARING,
    READY,
    REJECTED,
    STATUSES,
    order_to_dict,
)
from .service import clean_text
from ..admin.service import add_admin_log
from ..common.database import AsyncSessionLocal
from ..common.db import utcnow
from ..common.errors import AuthorizationError, InvalidTransition, NotFoundError
from ..notifications.dispatcher import dispatch_order_notification
from ..realtime.channels import publish_order_update
from ..users.model import Profile, ROLE_ADMIN, STATUS_ACTIVE

_logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    PENDING: (ACCEPTED, REJECTED),
    ACCEPTED: (PREPARING,),
    PREPARING: (READY,),
    READY: (DELIVERED,),
}

ORDER_TRANSITIONS = Counter("order_transitions_total", "Applied order status transitions", ["from_status", "to_status"])


def next_statuses(status: str) -> Tuple[str, ...]:
    return TRANSITIONS.get(status, ())


def is_legal(current: str, target: str) -> bool:
    return target in next_statuses(current)


async def transition(order_id: int, target_status: str, actor_id: str, notes: str = "") -> Order:
    notes = clean_text(notes, "notes")
    async with AsyncSessionLocal() as session:
        async with session.begin():
            profile = await session.get(Profile, actor_id)
            if profile is None or profile.role != ROLE_ADMIN or profile.status != STATUS_ACTIVE:
                _logger.warning("Rejected transition by non-admin | actor_id=%s order_id=%s", actor_id, order_id)
                raise AuthorizationError("Only administrators can change order status")

            order = await session.get(Order, order_id)
            if order is None:
                raise NotFoundError(f"Order #{order_id} not found")
            current = order.status
            if target_status not in STATUSES or not is_legal(current, target_status):
                raise InvalidTransition(
                    f"Cannot move order #{order_id} from {current} to {target_status}",
                    current_status=current,
                    allowed=list(next_statuses(current)),
                )

            now = utcnow()
            await store.update_order_in(
                session,
                order_id,
                {
                    "status": target_status,
                    "admin_notes": notes,
                    "processed_by": actor_id,
                    "processed_at": now,
                },
                expected_status=current,
            )
            add_admin_log(
                session,
                actor_id,
                "order_status_update",
                "order",
                order_id,
                {"old_status": current, "new_status": target_status, "notes": notes},
            )
        await session.refresh(order)

    ORDER_TRANSITIONS.labels(from_status=current, to_status=target_status).inc()
    _logger.info(
        "Order transitioned | order_id=%s %s -> %s by=%s", order_id, current, target_status, actor_id
    )

    row = order_to_dict(order)
    try:
        await publish_order_update(row)
    except Exception as e:
        _logger.warning("Order update push failed | order_id=%s err=%s", order_id, e)
    await dispatch_order_notification(order.id, order.customer_id, target_status, notes)
    return order
