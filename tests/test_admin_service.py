from datetime import timedelta
from decimal import Decimal

import pytest
import sqlalchemy as sa

from storefront.admin.model import AdminLog
from storefront.admin.service import dashboard_stats, describe_action, list_admin_logs
from storefront.common.database import AsyncSessionLocal
from storefront.common.db import utcnow
from storefront.common.errors import AuthorizationError, NotFoundError, ValidationError
from storefront.menu.service import create_menu_item, delete_menu_item, list_menu
from storefront.orders.model import ACCEPTED
from storefront.orders.service import place_order
from storefront.orders.transitions import transition
from storefront.users.service import list_profiles, update_profile


async def test_role_and_status_changes_are_logged(admin, customer):
    user = await update_profile(admin, customer.id, {"role": "admin", "status": "inactive", "phone": "0933"})

    assert (user["role"], user["status"], user["phone"]) == ("admin", "inactive", "0933")
    logs = await list_admin_logs()
    assert sorted(log["action_type"] for log in logs) == [
        "user_profile_update",
        "user_role_update",
        "user_status_update",
    ]
    assert all(log["admin_name"] == "Abebe Kebede" for log in logs)


async def test_admin_cannot_demote_themself(admin):
    with pytest.raises(ValidationError):
        await update_profile(admin, admin.id, {"role": "customer"})


async def test_customer_cannot_manage_users(customer, admin):
    with pytest.raises(AuthorizationError):
        await update_profile(customer, admin.id, {"status": "suspended"})


async def test_update_unknown_user(admin):
    with pytest.raises(NotFoundError):
        await update_profile(admin, "ghost", {"status": "suspended"})


async def test_list_profiles_filters(admin, customer):
    assert [u["id"] for u in await list_profiles(role="customer")] == [customer.id]
    assert [u["id"] for u in await list_profiles(search="SARA")] == [customer.id]
    assert [u["id"] for u in await list_profiles(search="0911")] == [customer.id]
    assert await list_profiles(status="suspended") == []


async def test_log_filters_and_descriptions(admin, order_42):
    await transition(42, ACCEPTED, admin.id)
    async with AsyncSessionLocal() as session:
        session.add(
            AdminLog(
                admin_id=admin.id,
                action_type="password_reset",
                target_type="user",
                target_id="cust-1",
                details={},
                created_at=utcnow() - timedelta(days=10),
            )
        )
        await session.commit()

    week = await list_admin_logs(window="week")
    assert [log["action_type"] for log in week] == ["order_status_update"]
    assert week[0]["description"] == 'Changed order #42 status from "pending" to "accepted"'

    month = await list_admin_logs(window="month")
    assert len(month) == 2
    assert [log["target_id"] for log in await list_admin_logs(action_type="password_reset")] == ["cust-1"]
    assert [log["action_type"] for log in await list_admin_logs(search="abebe")] == [
        "order_status_update",
        "password_reset",
    ]

    with pytest.raises(ValidationError):
        await list_admin_logs(window="decade")


async def test_describe_unknown_action():
    log = {"action_type": "export", "target_type": "report", "target_id": "7", "details": {}}
    assert describe_action(log) == "Performed export on report 7"


async def test_menu_admin_changes_are_logged(admin):
    item = await create_menu_item(admin, {"name": "Tibs", "price": "320", "category": "mains"})
    await delete_menu_item(admin, item["id"])

    async with AsyncSessionLocal() as session:
        actions = (await session.execute(sa.select(AdminLog.action_type).order_by(AdminLog.id))).scalars().all()
    assert actions == ["menu_item_create", "menu_item_delete"]
    assert await list_menu() == []


async def test_customer_cannot_edit_menu(customer):
    with pytest.raises(AuthorizationError):
        await create_menu_item(customer, {"name": "Tibs", "price": "320", "category": "mains"})


async def test_menu_listing_hides_unavailable(menu):
    names = [item["name"] for item in await list_menu()]
    assert "Seasonal Soup" not in names
    assert [item["name"] for item in await list_menu(category="pizza")] == ["Margherita"]


async def test_dashboard_stats(admin, customer, menu):
    await place_order(customer, [{"menu_item_id": menu["Margherita"], "quantity": 2}])
    await place_order(customer, [{"menu_item_id": menu["French Fries"]}])

    stats = await dashboard_stats()

    assert stats["total_orders"] == 2
    assert stats["pending_orders"] == 2
    assert Decimal(stats["total_revenue"]) == Decimal("620")
    assert stats["total_customers"] == 1
