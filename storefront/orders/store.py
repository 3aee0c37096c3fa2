"""Persistence for the ``orders`` table.

The store is not actor-aware: row ownership is checked by the callers in
``orders.service`` and the transition engine.
"""
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from .model import Order, PENDING, STATUSES
from ..common.database import AsyncSessionLocal
from ..common.db import utcnow
from ..common.errors import NotFoundError, TransitionConflict, ValidationError

IMMUTABLE_FIELDS = ("id", "customer_id", "total_amount", "created_at")


async def insert_order(fields: Dict[str, Any]) -> Order:
    async with AsyncSessionLocal() as session:
        now = utcnow()
        order = Order(**fields, status=PENDING, admin_notes="", created_at=now, updated_at=now)
        session.add(order)
        await session.commit()
        await session.refresh(order)
        return order


async def get_order(order_id: int) -> Optional[Order]:
    async with AsyncSessionLocal() as session:
        return await session.get(Order, order_id)


async def update_order_in(
    session: AsyncSession,
    order_id: int,
    fields: Dict[str, Any],
    expected_status: Optional[str] = None,
) -> None:
    """Apply ``fields`` inside the caller's transaction.

    With ``expected_status`` the write only lands if the row still has that
    status; otherwise ``TransitionConflict`` is raised.
    """
    for name in fields:
        if name in IMMUTABLE_FIELDS:
            raise ValidationError(f"Order field {name} cannot be changed")
    if "status" in fields and fields["status"] not in STATUSES:
        raise ValidationError(f"Unknown order status: {fields['status']}")

    stmt = sa.update(Order).where(Order.id == order_id).values(**fields, updated_at=utcnow())
    if expected_status is not None:
        stmt = stmt.where(Order.status == expected_status)
    res = await session.execute(stmt)
    if (res.rowcount or 0) > 0:
        return

    current = await session.scalar(sa.select(Order.status).where(Order.id == order_id))
    if current is None:
        raise NotFoundError(f"Order #{order_id} not found")
    raise TransitionConflict(
        f"Order #{order_id} was changed to {current} by someone else",
        current_status=current,
    )


async def update_order(order_id: int, fields: Dict[str, Any], expected_status: Optional[str] = None) -> Order:
    async with AsyncSessionLocal() as session:
        async with session.begin():
            await update_order_in(session, order_id, fields, expected_status)
        return await session.get(Order, order_id, populate_existing=True)


async def list_by_customer(customer_id: str) -> List[Order]:
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            sa.select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(res.scalars().all())


async def list_all(status: Optional[str] = None) -> List[Order]:
    stmt = sa.select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if status is not None:
        if status not in STATUSES:
            raise ValidationError(f"Unknown order status: {status}")
        stmt = stmt.where(Order.status == status)
    async with AsyncSessionLocal() as session:
        res = await session.execute(stmt)
        return list(res.scalars().all())
