import pytest
import sqlalchemy as sa

from storefront.admin.model import AdminLog
from storefront.common.database import AsyncSessionLocal
from storefront.common.errors import (
    AuthorizationError,
    InvalidTransition,
    NotFoundError,
    TransitionConflict,
    ValidationError,
)
from storefront.notifications import dispatcher
from storefront.notifications.model import Notification
from storefront.orders import store
from storefront.orders.model import ACCEPTED, CANCELLED, DELIVERED, PENDING, PREPARING, READY, REJECTED, STATUSES
from storefront.orders.service import place_order
from storefront.orders.transitions import TRANSITIONS, next_statuses, transition

from conftest import add_profile


async def notifications_for_order(order_id):
    async with AsyncSessionLocal() as session:
        res = await session.execute(sa.select(Notification).where(Notification.related_order_id == order_id))
        return list(res.scalars().all())


async def test_accept_with_notes(admin, order_42):
    order = await transition(42, ACCEPTED, admin.id, "Ready in 20 min")

    assert order.status == ACCEPTED
    assert order.admin_notes == "Ready in 20 min"
    assert order.processed_by == admin.id
    assert order.processed_at is not None
    assert order.updated_at >= order.created_at

    notifications = await notifications_for_order(42)
    assert len(notifications) == 1
    note = notifications[0]
    assert note.type == "success"
    assert note.user_id == "cust-1"
    assert note.read is False
    assert "accepted" in note.message and "Ready in 20 min" in note.message
    assert note.message == "Your order #42 has been accepted. Ready in 20 min"


async def test_skipping_ahead_is_rejected_and_order_unchanged(admin, order_42):
    with pytest.raises(InvalidTransition):
        await transition(42, DELIVERED, admin.id)

    order = await store.get_order(42)
    assert order.status == PENDING
    assert order.processed_by is None and order.processed_at is None
    assert await notifications_for_order(42) == []


async def test_full_happy_path_one_notification_per_step(admin, order_42):
    expected_types = {ACCEPTED: "success", PREPARING: "info", READY: "info", DELIVERED: "info"}
    for status in (ACCEPTED, PREPARING, READY, DELIVERED):
        order = await transition(42, status, admin.id)
        assert order.status == status

    notifications = await notifications_for_order(42)
    assert len(notifications) == 4
    assert sorted(n.type for n in notifications) == sorted(expected_types.values())
    assert all(n.message.endswith(".") for n in notifications)


async def test_reject_maps_to_error_notification(admin, order_42):
    await transition(42, REJECTED, admin.id, "Out of dough")

    [note] = await notifications_for_order(42)
    assert note.type == "error"
    assert note.message == "Your order #42 has been rejected. Out of dough"


@pytest.mark.parametrize("current", STATUSES)
@pytest.mark.parametrize("target", STATUSES)
async def test_graph_has_no_back_edges_or_cancel_edges(current, target):
    order = list(STATUSES)
    if target in next_statuses(current):
        assert target != CANCELLED
        assert order.index(target) > order.index(current)


async def test_terminal_statuses_have_no_moves():
    for status in (REJECTED, DELIVERED, CANCELLED):
        assert next_statuses(status) == ()
    assert set(TRANSITIONS) == {PENDING, ACCEPTED, PREPARING, READY}


async def test_rejected_order_cannot_be_reopened(admin, order_42):
    await transition(42, REJECTED, admin.id)

    for target in (PENDING, ACCEPTED, CANCELLED):
        with pytest.raises(InvalidTransition):
            await transition(42, target, admin.id)
    assert (await store.get_order(42)).status == REJECTED


async def test_unknown_target_status(admin, order_42):
    with pytest.raises(InvalidTransition):
        await transition(42, "shipped", admin.id)


async def test_customer_cannot_transition(customer, order_42):
    with pytest.raises(AuthorizationError):
        await transition(42, ACCEPTED, customer.id)
    assert (await store.get_order(42)).status == PENDING


async def test_suspended_admin_cannot_transition(order_42):
    await add_profile("admin-2", role="admin", status="suspended")

    with pytest.raises(AuthorizationError):
        await transition(42, ACCEPTED, "admin-2")


async def test_unknown_actor_cannot_transition(order_42):
    with pytest.raises(AuthorizationError):
        await transition(42, ACCEPTED, "nobody")


async def test_missing_order(admin):
    with pytest.raises(NotFoundError):
        await transition(404, ACCEPTED, admin.id)


async def test_stale_status_write_is_a_conflict(admin, order_42):
    await transition(42, ACCEPTED, admin.id)

    # A second admin still looking at the pending row.
    with pytest.raises(TransitionConflict) as excinfo:
        await store.update_order(42, {"status": REJECTED}, expected_status=PENDING)

    assert excinfo.value.details["current_status"] == ACCEPTED
    assert (await store.get_order(42)).status == ACCEPTED


async def test_store_update_missing_order():
    with pytest.raises(NotFoundError):
        await store.update_order(7, {"admin_notes": "x"})


async def test_transition_writes_admin_log(admin, order_42):
    await transition(42, ACCEPTED, admin.id, "ok")

    async with AsyncSessionLocal() as session:
        logs = (await session.execute(sa.select(AdminLog))).scalars().all()
    assert len(logs) == 1
    assert logs[0].action_type == "order_status_update"
    assert logs[0].target_id == "42"
    assert logs[0].details["old_status"] == PENDING
    assert logs[0].details["new_status"] == ACCEPTED


async def test_processed_fields_set_together(admin, order_42, customer, menu):
    fresh = await place_order(customer, [{"menu_item_id": menu["French Fries"]}])
    await transition(42, ACCEPTED, admin.id)

    for order in await store.list_all():
        assert (order.processed_by is None) == (order.processed_at is None)
    assert (await store.get_order(fresh.id)).processed_by is None


async def test_dispatch_failure_does_not_fail_transition(admin, order_42, monkeypatch):
    def broken_session():
        raise RuntimeError("storage unavailable")

    monkeypatch.setattr(dispatcher, "AsyncSessionLocal", broken_session)

    order = await transition(42, ACCEPTED, admin.id, "Ready in 20 min")

    assert order.status == ACCEPTED
    assert (await store.get_order(42)).status == ACCEPTED
    assert await notifications_for_order(42) == []


async def test_push_failure_does_not_fail_transition(admin, order_42, monkeypatch):
    async def unreachable(*args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr("storefront.realtime.channels.publish_json", unreachable)

    order = await transition(42, ACCEPTED, admin.id)

    assert order.status == ACCEPTED
    assert len(await notifications_for_order(42)) == 1


async def test_notes_are_stored_as_written(admin, order_42):
    order = await transition(42, ACCEPTED, admin.id, "  Ready in 20 min\n")

    assert order.admin_notes == "  Ready in 20 min\n"
    [note] = await notifications_for_order(42)
    assert note.message == "Your order #42 has been accepted. Ready in 20 min"


@pytest.mark.parametrize("notes", [123, ["late"], {"eta": 20}])
async def test_non_text_notes_are_a_validation_error(admin, order_42, notes):
    with pytest.raises(ValidationError):
        await transition(42, ACCEPTED, admin.id, notes)
    assert (await store.get_order(42)).status == PENDING
