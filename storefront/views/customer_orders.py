"""Customer order tracking as a reconciling local store.

Mounting subscribes to both live channels before fetching the snapshot, so an
event published while the snapshot is in flight waits in the subscription and
is applied afterwards instead of being lost or racing the fetch.
"""
import logging
from typing import Any, Dict, List, Optional

from .toasts import ToastLog
from ..common.auth import Actor
from ..notifications import service as notification_service
from ..orders import store as order_store
from ..orders.model import order_to_dict
from ..realtime.channels import (
    NOTIFICATION_INSERT,
    ORDER_UPDATE,
    PAYMENT_CONFIRMED,
    Subscription,
    notification_channel,
    order_channel,
)

_logger = logging.getLogger(__name__)


class CustomerOrderView:
    def __init__(self, actor: Actor):
        self.actor = actor
        self.orders: List[Dict[str, Any]] = []
        self.notifications: List[Dict[str, Any]] = []
        self.toasts = ToastLog()
        self.loading = True
        self.mounted = False
        self._subscriptions: List[Subscription] = []

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n["read"])

    def order(self, order_id: int) -> Optional[Dict[str, Any]]:
        return next((o for o in self.orders if o["id"] == order_id), None)

    async def mount(self) -> None:
        self.mounted = True
        for channel in (order_channel(self.actor.id), notification_channel(self.actor.id)):
            subscription = Subscription(channel)
            try:
                await subscription.open()
            except Exception as e:
                # Still usable without push; refresh() pulls.
                self.toasts.failure("connect to live updates", e)
                continue
            self._subscriptions.append(subscription)
        await self.refresh()
        await self.pump()

    async def refresh(self) -> None:
        """Replace local state with an authoritative snapshot."""
        try:
            orders = [order_to_dict(o) for o in await order_store.list_by_customer(self.actor.id)]
        except Exception as e:
            orders = None
            self.toasts.failure("load orders", e)
        try:
            notifications = await notification_service.recent_notifications(self.actor.id)
        except Exception as e:
            notifications = None
            _logger.warning("Error fetching notifications | user_id=%s err=%s", self.actor.id, e)
        if not self.mounted:
            return
        if orders is not None:
            self.orders = orders
        if notifications is not None:
            self.notifications = notifications
        self.loading = False

    async def pump(self) -> int:
        """Apply every event waiting on the live channels; returns how many changed state."""
        applied = 0
        for subscription in list(self._subscriptions):
            for event in await subscription.drain():
                if not self.mounted:
                    return applied
                if self.apply_event(event):
                    applied += 1
        return applied

    def apply_event(self, event: Dict[str, Any]) -> bool:
        kind = event.get("type")
        if kind == ORDER_UPDATE:
            return self.apply_order_update(event["order"])
        if kind == NOTIFICATION_INSERT:
            return self.apply_notification_insert(event["notification"])
        if kind == PAYMENT_CONFIRMED:
            self.toasts.success(f"Payment confirmed for order #{event['order_id']} (ref {event['reference']})")
            return True
        _logger.debug("Ignoring live event | type=%s", kind)
        return False

    def apply_order_update(self, row: Dict[str, Any]) -> bool:
        for index, current in enumerate(self.orders):
            if current["id"] != row["id"]:
                continue
            if (row.get("updated_at") or "") < (current.get("updated_at") or ""):
                # Older than what the snapshot already holds.
                return False
            self.orders[index] = row
            self.toasts.success("Order status updated!")
            return True
        return False

    def apply_notification_insert(self, row: Dict[str, Any]) -> bool:
        if any(n["id"] == row["id"] for n in self.notifications):
            return False
        self.notifications.insert(0, row)
        self.toasts.info("New notification received!")
        return True

    async def mark_read(self, notification_id: int) -> None:
        notification = next((n for n in self.notifications if n["id"] == notification_id), None)
        if notification is None or notification["read"]:
            return
        notification["read"] = True
        try:
            await notification_service.mark_read(self.actor.id, notification_id)
        except Exception as e:
            _logger.warning("Error marking notification read | id=%s err=%s", notification_id, e)

    async def unmount(self) -> None:
        self.mounted = False
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            try:
                await subscription.close()
            except Exception as e:
                _logger.debug("Subscription close failed | channel=%s err=%s", subscription.channel, e)
