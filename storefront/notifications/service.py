from typing import Any, Dict, List

import sqlalchemy as sa

from .model import Notification, notification_to_dict
from ..common.database import AsyncSessionLocal
from ..common.errors import NotFoundError

RECENT_LIMIT = 20


async def recent_notifications(user_id: str, limit: int = RECENT_LIMIT) -> List[Dict[str, Any]]:
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            sa.select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return [notification_to_dict(n) for n in res.scalars().all()]


async def unread_count(user_id: str) -> int:
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            sa.select(sa.func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.read == False  # noqa: E712
            )
        )
        return int(res.scalar() or 0)


async def mark_read(user_id: str, notification_id: int) -> None:
    """Only the recipient may mark a notification read."""
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            sa.update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(read=True)
        )
        await session.commit()
    if not res.rowcount:
        raise NotFoundError(f"Notification #{notification_id} not found")
