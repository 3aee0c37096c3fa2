from typing import Any, Dict, List, Optional, Tuple

from .toasts import ToastLog
from ..common.auth import Actor
from ..common.errors import ValidationError
from ..orders import store, transitions
from ..orders.model import ACCEPTED, DELIVERED, PENDING, PREPARING, READY, REJECTED, STATUSES, order_to_dict

TILE_STATUSES = (PENDING, ACCEPTED, REJECTED, PREPARING, READY, DELIVERED)
# The pending fork asks the admin for a note before committing.
NOTES_STATUSES = (ACCEPTED, REJECTED)


class AdminOrderConsole:
    def __init__(self, actor: Actor):
        self.actor = actor
        self.orders: List[Dict[str, Any]] = []
        self.filter = "all"
        self.toasts = ToastLog()
        self.loading = True
        self.pending_action: Optional[Tuple[int, str]] = None

    async def mount(self) -> None:
        if not self.actor.can_transition_orders():
            self.toasts.error("Admin access required")
            self.loading = False
            return
        try:
            self.orders = [order_to_dict(o) for o in await store.list_all()]
        except Exception as e:
            self.toasts.failure("load orders", e)
        finally:
            self.loading = False

    @property
    def status_counts(self) -> Dict[str, int]:
        counts = {status: 0 for status in TILE_STATUSES}
        for order in self.orders:
            if order["status"] in counts:
                counts[order["status"]] += 1
        return counts

    def set_filter(self, status: str) -> None:
        if status != "all" and status not in STATUSES:
            raise ValidationError(f"Unknown order status: {status}")
        self.filter = status

    @property
    def visible_orders(self) -> List[Dict[str, Any]]:
        if self.filter == "all":
            return list(self.orders)
        return [o for o in self.orders if o["status"] == self.filter]

    def available_actions(self, order: Dict[str, Any]) -> Tuple[str, ...]:
        return transitions.next_statuses(order["status"])

    async def choose_action(self, order_id: int, status: str) -> Optional[Dict[str, Any]]:
        """Start an action; accept/reject stop at the notes step, the rest commit right away."""
        if status in NOTES_STATUSES:
            self.pending_action = (order_id, status)
            return None
        return await self.transition(order_id, status)

    async def confirm_action(self, notes: str = "") -> Optional[Dict[str, Any]]:
        if self.pending_action is None:
            return None
        order_id, status = self.pending_action
        row = await self.transition(order_id, status, notes)
        if row is not None:
            self.pending_action = None
        return row

    def cancel_action(self) -> None:
        self.pending_action = None

    async def transition(self, order_id: int, status: str, notes: str = "") -> Optional[Dict[str, Any]]:
        try:
            order = await transitions.transition(order_id, status, self.actor.id, notes)
        except Exception as e:
            self.toasts.failure("update order status", e)
            return None
        row = order_to_dict(order)
        self.orders = [row if o["id"] == order_id else o for o in self.orders]
        self.toasts.success(f"Order {status} successfully!")
        return row
