import os
import tempfile

# Settings are read at import time, so the environment must be in place first.
_DB_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["KAFKA_ENABLED"] = "0"
os.environ["PAYMENTS_WORKER_ENABLED"] = "0"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fakeredis import aioredis as fake_aioredis  # noqa: E402

from storefront.common import redis_client  # noqa: E402
from storefront.common.auth import Actor  # noqa: E402
from storefront.common.database import AsyncSessionLocal, drop_db, engine, init_db  # noqa: E402
from storefront.menu.model import MenuItem  # noqa: E402
from storefront.orders.model import Order  # noqa: E402
from storefront.users.model import Profile  # noqa: E402


@pytest.fixture(autouse=True)
async def database():
    await drop_db()
    await init_db()
    yield
    await engine.dispose()


@pytest.fixture(autouse=True)
async def redis():
    client = fake_aioredis.FakeRedis(decode_responses=True)
    redis_client.use_redis(client)
    yield client
    redis_client.use_redis(None)


async def add_profile(user_id, role="customer", status="active", full_name="", phone="", email=""):
    async with AsyncSessionLocal() as session:
        session.add(
            Profile(id=user_id, role=role, status=status, full_name=full_name, phone=phone, email=email)
        )
        await session.commit()
    return Actor(id=user_id, role=role, status=status, email=email)


@pytest.fixture
async def admin():
    return await add_profile("admin-1", role="admin", full_name="Abebe Kebede", email="abebe@example.com")


@pytest.fixture
async def customer():
    return await add_profile("cust-1", full_name="Sara Tesfaye", phone="0911000000", email="sara@example.com")


@pytest.fixture
async def menu():
    items = [
        MenuItem(name="Margherita", category="pizza", size="medium", price=Decimal("280")),
        MenuItem(name="French Fries", category="sides", size="regular", price=Decimal("60")),
        MenuItem(name="Seasonal Soup", category="sides", size="bowl", price=Decimal("90"), available=False),
    ]
    async with AsyncSessionLocal() as session:
        session.add_all(items)
        await session.commit()
    return {item.name: item.id for item in items}


@pytest.fixture
async def order_42(customer):
    async with AsyncSessionLocal() as session:
        order = Order(
            id=42,
            customer_id=customer.id,
            customer_name="Sara Tesfaye",
            customer_phone="0911000000",
            order_details="Margherita (medium) x2 - 560 ETB",
            total_amount=Decimal("560"),
        )
        session.add(order)
        await session.commit()
    return 42
