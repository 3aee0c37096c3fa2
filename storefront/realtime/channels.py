"""Per-customer live update channels on Redis pub/sub.

Every message is a JSON envelope ``{"type": ..., ...}``:

- ``order_update``: ``{"order": <order row>}`` on ``orders:<customer_id>``
- ``payment_confirmed``: ``{"order_id", "method", "account", "reference"}`` on the same channel
- ``notification_insert``: ``{"notification": <notification row>}`` on ``notifications:<user_id>``
"""
import json
import logging
from typing import Any, Dict, List, Optional

from ..common.config import settings
from ..common.redis_client import get_redis, publish_json

_logger = logging.getLogger(__name__)

ORDER_UPDATE = "order_update"
PAYMENT_CONFIRMED = "payment_confirmed"
NOTIFICATION_INSERT = "notification_insert"

# Short wait when draining; a zero timeout can miss already-buffered replies.
DRAIN_TIMEOUT = 0.01


def order_channel(customer_id: str) -> str:
    return f"{settings.ORDER_CHANNEL_PREFIX}:{customer_id}"


def notification_channel(user_id: str) -> str:
    return f"{settings.NOTIFICATION_CHANNEL_PREFIX}:{user_id}"


async def publish_order_update(order_row: Dict[str, Any]) -> None:
    await publish_json(order_channel(order_row["customer_id"]), {"type": ORDER_UPDATE, "order": order_row})
    _logger.info("Published order update | order_id=%s status=%s", order_row["id"], order_row["status"])


async def publish_notification(notification_row: Dict[str, Any]) -> None:
    await publish_json(
        notification_channel(notification_row["user_id"]),
        {"type": NOTIFICATION_INSERT, "notification": notification_row},
    )


async def publish_payment_confirmed(customer_id: str, payment: Dict[str, Any]) -> None:
    await publish_json(order_channel(customer_id), dict(payment, type=PAYMENT_CONFIRMED))


class Subscription:
    """One live channel; open it before fetching a snapshot so no event is lost."""

    def __init__(self, channel: str):
        self.channel = channel
        self._pubsub = None

    @property
    def is_open(self) -> bool:
        return self._pubsub is not None

    async def open(self) -> "Subscription":
        r = await get_redis()
        self._pubsub = r.pubsub()
        await self._pubsub.subscribe(self.channel)
        _logger.debug("Subscribed | channel=%s", self.channel)
        return self

    async def next_event(self, timeout: float = 0.0) -> Optional[Dict[str, Any]]:
        """Return the next decoded event, or None when nothing is waiting."""
        if self._pubsub is None:
            return None
        while True:
            message = await self._pubsub.get_message(timeout=timeout)
            if message is None:
                return None
            if message.get("type") != "message":
                # subscribe confirmations and the like
                continue
            data = message.get("data")
            try:
                return json.loads(data)
            except (TypeError, ValueError):
                _logger.warning("Dropping undecodable message | channel=%s", self.channel)

    async def drain(self, timeout: float = DRAIN_TIMEOUT) -> List[Dict[str, Any]]:
        events = []
        while True:
            event = await self.next_event(timeout=timeout)
            if event is None:
                return events
            events.append(event)

    async def close(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.unsubscribe(self.channel)
        finally:
            await pubsub.close()
