import asyncio
import logging
from decimal import Decimal

import sqlalchemy as sa

from .common.config import settings
from .common.database import init_db, AsyncSessionLocal
from .menu.model import MenuItem
from .users.model import Profile, ROLE_ADMIN, STATUS_ACTIVE

_logger = logging.getLogger(__name__)


SAMPLE_MENU = [
    {"name": "Margherita", "category": "pizza", "size": "medium", "price": "280", "popular": True,
     "description": "Tomato, mozzarella and basil."},
    {"name": "Pepperoni", "category": "pizza", "size": "large", "price": "350", "spicy": True,
     "description": "Pepperoni with chili oil."},
    {"name": "Classic Burger", "category": "burgers", "size": "regular", "price": "220", "popular": True,
     "description": "Beef patty, cheddar, pickles."},
    {"name": "French Fries", "category": "sides", "size": "regular", "price": "60",
     "description": "Crispy and salted."},
    {"name": "Lemonade", "category": "drinks", "size": "500ml", "price": "45",
     "description": "Fresh squeezed."},
]


async def seed() -> None:
    await init_db()
    async with AsyncSessionLocal() as session:
        added = 0
        for entry in SAMPLE_MENU:
            # avoid duplicates by name
            res = await session.execute(sa.select(MenuItem.id).where(MenuItem.name == entry["name"]))
            if res.first():
                continue
            session.add(MenuItem(**dict(entry, price=Decimal(entry["price"]))))
            added += 1

        if settings.ADMIN_USER_ID:
            profile = await session.get(Profile, settings.ADMIN_USER_ID)
            if profile is None:
                session.add(
                    Profile(
                        id=settings.ADMIN_USER_ID,
                        email=settings.ADMIN_EMAIL,
                        full_name=settings.ADMIN_NAME,
                        role=ROLE_ADMIN,
                        status=STATUS_ACTIVE,
                    )
                )
            else:
                profile.role = ROLE_ADMIN
                profile.status = STATUS_ACTIVE
        await session.commit()
    _logger.info("Seed complete. Added %s menu items.", added)


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    asyncio.run(seed())
