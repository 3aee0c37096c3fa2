from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from .config import settings
from .db import Base
from ..admin.model import AdminLog
from ..menu.model import MenuItem
from ..notifications.model import Notification
from ..orders.model import Order
from ..users.model import Profile

__all__ = ["engine", "AsyncSessionLocal", "init_db", "drop_db", "AdminLog", "MenuItem", "Notification", "Order", "Profile"]


# Async SQLAlchemy engine and session factory
engine = create_async_engine(settings.DB_URL, future=True, echo=False)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
