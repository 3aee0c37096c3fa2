import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

import sqlalchemy as sa

from . import store
from .model import STATUSES, Order, order_to_dict
from ..common.auth import Actor
from ..common.config import settings
from ..common.database import AsyncSessionLocal
from ..common.errors import AuthorizationError, NotFoundError, ValidationError
from ..common.kafka_client import publish_event
from ..menu.model import MenuItem
from ..payments.methods import PAYMENT_METHODS
from ..users.model import Profile

_logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    menu_item_id: int
    quantity: int = 1


@dataclass
class PricedLine:
    name: str
    size: str
    unit_price: Decimal
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


def parse_cart(raw_items: Any) -> List[CartLine]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Please add items to your cart")
    lines = []
    for raw in raw_items:
        try:
            line = CartLine(menu_item_id=int(raw["menu_item_id"]), quantity=int(raw.get("quantity", 1)))
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Each cart item needs a menu_item_id and an integer quantity")
        if line.quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        lines.append(line)
    return lines


def clean_text(value: Any, field: str) -> str:
    """Optional free-text input: missing becomes "", anything but a string is rejected."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def order_total(lines: Iterable[PricedLine]) -> Decimal:
    return sum((line.subtotal for line in lines), Decimal("0"))


def _amount(value: Decimal) -> str:
    # 560.00 -> 560, 12.50 -> 12.5
    return format(value.normalize(), "f")


def render_order_details(lines: Iterable[PricedLine], notes: str = "", currency: Optional[str] = None) -> str:
    currency = currency or settings.CURRENCY
    details = "\n".join(
        f"{line.name} ({line.size}) x{line.quantity} - {_amount(line.subtotal)} {currency}" for line in lines
    )
    notes = (notes or "").strip()
    if notes:
        details += "\n\nAdditional Details:\n" + notes
    return details


async def price_cart(lines: List[CartLine]) -> List[PricedLine]:
    """Freeze live menu prices into order lines."""
    ids = {line.menu_item_id for line in lines}
    async with AsyncSessionLocal() as session:
        res = await session.execute(sa.select(MenuItem).where(MenuItem.id.in_(ids)))
        items = {item.id: item for item in res.scalars().all()}
    priced = []
    for line in lines:
        item = items.get(line.menu_item_id)
        if item is None:
            raise ValidationError(f"Menu item {line.menu_item_id} does not exist")
        if not item.available:
            raise ValidationError(f"{item.name} is currently unavailable")
        priced.append(PricedLine(item.name, item.size, Decimal(str(item.price)), line.quantity))
    return priced


async def place_order(
    actor: Actor,
    items: Any,
    customer_name: str = "",
    customer_phone: str = "",
    notes: str = "",
    payment_method: str = "telebirr",
) -> Order:
    if not actor.can_place_orders():
        raise AuthorizationError("Your account cannot place orders")
    lines = parse_cart(items)
    customer_name = clean_text(customer_name, "customer_name").strip()
    customer_phone = clean_text(customer_phone, "customer_phone").strip()
    notes = clean_text(notes, "notes")
    if not isinstance(payment_method, str) or payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {payment_method}")

    if not customer_name or not customer_phone:
        async with AsyncSessionLocal() as session:
            profile = await session.get(Profile, actor.id)
        if profile is not None:
            customer_name = customer_name or profile.full_name
            customer_phone = customer_phone or profile.phone
    if not customer_name:
        raise ValidationError("Customer name is required")
    if not customer_phone:
        raise ValidationError("Customer phone is required")

    priced = await price_cart(lines)
    order = await store.insert_order(
        {
            "customer_id": actor.id,
            "customer_name": customer_name,
            "customer_phone": customer_phone,
            "order_details": render_order_details(priced, notes),
            "total_amount": order_total(priced),
        }
    )
    _logger.info("Order placed | order_id=%s customer_id=%s total=%s", order.id, actor.id, order.total_amount)

    await publish_event(
        settings.ORDER_PLACED_TOPIC,
        {
            "order_id": order.id,
            "customer_id": order.customer_id,
            "total_amount": str(order.total_amount),
            "payment_method": payment_method,
        },
    )
    return order


async def orders_for(actor: Actor, status: Optional[str] = None) -> List[Dict[str, Any]]:
    if status is not None and status not in STATUSES:
        raise ValidationError(f"Unknown order status: {status}")
    if actor.can_transition_orders():
        orders = await store.list_all(status)
    else:
        orders = [o for o in await store.list_by_customer(actor.id) if status is None or o.status == status]
    return [order_to_dict(o) for o in orders]


async def order_for(actor: Actor, order_id: int) -> Dict[str, Any]:
    order = await store.get_order(order_id)
    # Customers get the same answer for someone else's order as for a missing one.
    if order is None or (order.customer_id != actor.id and not actor.can_transition_orders()):
        raise NotFoundError(f"Order #{order_id} not found")
    return order_to_dict(order)
