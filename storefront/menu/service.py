import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import sqlalchemy as sa

from .model import MenuItem, menu_item_to_dict
from ..admin.service import add_admin_log
from ..common.auth import Actor, require
from ..common.database import AsyncSessionLocal
from ..common.db import utcnow
from ..common.errors import NotFoundError, ValidationError

_logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "description", "price", "category", "image_url", "size", "popular", "spicy", "available")
BOOL_FIELDS = ("popular", "spicy", "available")


def clean_menu_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    fields = {k: data[k] for k in EDITABLE_FIELDS if k in data}
    if not partial:
        for required in ("name", "price", "category"):
            if required not in fields:
                raise ValidationError(f"Missing required field: {required}")
    if "name" in fields:
        fields["name"] = str(fields["name"]).strip()
        if not fields["name"]:
            raise ValidationError("Menu item name cannot be empty")
    if "price" in fields:
        try:
            fields["price"] = Decimal(str(fields["price"]))
        except (InvalidOperation, ValueError):
            raise ValidationError("Invalid price")
        if not fields["price"].is_finite():
            raise ValidationError("Invalid price")
        if fields["price"] < 0:
            raise ValidationError("Price cannot be negative")
    for name in BOOL_FIELDS:
        if name in fields:
            fields[name] = bool(fields[name])
    return fields


async def list_menu(category: Optional[str] = None, include_unavailable: bool = False) -> List[Dict[str, Any]]:
    stmt = sa.select(MenuItem).order_by(MenuItem.category, MenuItem.name)
    if not include_unavailable:
        stmt = stmt.where(MenuItem.available == True)  # noqa: E712
    if category and category != "all":
        stmt = stmt.where(MenuItem.category == category)
    async with AsyncSessionLocal() as session:
        res = await session.execute(stmt)
        return [menu_item_to_dict(item) for item in res.scalars().all()]


async def get_menu_item(item_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        item = await session.get(MenuItem, item_id)
    if item is None:
        raise NotFoundError("Menu item not found")
    return menu_item_to_dict(item)


async def create_menu_item(actor: Actor, data: Dict[str, Any]) -> Dict[str, Any]:
    require(actor.can_edit_menu())
    fields = clean_menu_fields(data)
    async with AsyncSessionLocal() as session:
        async with session.begin():
            item = MenuItem(**fields)
            session.add(item)
            await session.flush()  # assign PK
            add_admin_log(session, actor.id, "menu_item_create", "menu_item", item.id, {"name": item.name})
    return menu_item_to_dict(item)


async def update_menu_item(actor: Actor, item_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    require(actor.can_edit_menu())
    fields = clean_menu_fields(data, partial=True)
    async with AsyncSessionLocal() as session:
        async with session.begin():
            item = await session.get(MenuItem, item_id)
            if item is None:
                raise NotFoundError("Menu item not found")
            for key, value in fields.items():
                setattr(item, key, value)
            item.updated_at = utcnow()
            changes = {k: str(v) if isinstance(v, Decimal) else v for k, v in fields.items()}
            add_admin_log(
                session, actor.id, "menu_item_update", "menu_item", item_id, {"name": item.name, "updates": changes}
            )
    return menu_item_to_dict(item)


async def delete_menu_item(actor: Actor, item_id: int) -> None:
    require(actor.can_edit_menu())
    async with AsyncSessionLocal() as session:
        async with session.begin():
            item = await session.get(MenuItem, item_id)
            if item is None:
                raise NotFoundError("Menu item not found")
            await session.delete(item)
            add_admin_log(session, actor.id, "menu_item_delete", "menu_item", item_id, {"name": item.name})
    _logger.info("Menu item deleted | item_id=%s", item_id)
