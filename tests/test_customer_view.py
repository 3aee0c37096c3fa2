from storefront.notifications import service as notification_service
from storefront.orders.model import ACCEPTED, PENDING, PREPARING
from storefront.orders.transitions import transition
from storefront.realtime.channels import publish_payment_confirmed
from storefront.views.customer_orders import CustomerOrderView

from conftest import add_profile


async def mounted_view(actor):
    view = CustomerOrderView(actor)
    await view.mount()
    return view


async def test_mount_loads_snapshot(customer, order_42):
    view = await mounted_view(customer)

    assert view.loading is False
    assert [o["id"] for o in view.orders] == [42]
    assert view.orders[0]["status"] == PENDING
    assert view.notifications == []
    assert view.unread_count == 0
    await view.unmount()


async def test_live_update_replaces_order_and_prepends_notification(customer, admin, order_42):
    view = await mounted_view(customer)

    await transition(42, ACCEPTED, admin.id, "Ready in 20 min")
    applied = await view.pump()

    assert applied == 2
    assert view.order(42)["status"] == ACCEPTED
    assert view.order(42)["admin_notes"] == "Ready in 20 min"
    assert view.notifications[0]["type"] == "success"
    assert view.unread_count == 1
    assert [t.message for t in view.toasts.items] == ["Order status updated!", "New notification received!"]
    await view.unmount()


async def test_push_and_pull_agree(customer, admin, order_42):
    pushed = await mounted_view(customer)

    await transition(42, ACCEPTED, admin.id, "Ready in 20 min")
    await pushed.pump()

    pulled = await mounted_view(customer)

    assert pushed.orders == pulled.orders
    assert pushed.notifications == pulled.notifications
    await pushed.unmount()
    await pulled.unmount()


async def test_events_published_during_snapshot_are_not_lost(customer, admin, order_42, monkeypatch):
    view = CustomerOrderView(customer)
    real_refresh = view.refresh

    async def refresh_racing_a_transition():
        # The snapshot is read first, then the admin acts before mount finishes.
        await real_refresh()
        await transition(42, ACCEPTED, admin.id)

    monkeypatch.setattr(view, "refresh", refresh_racing_a_transition)
    await view.mount()

    assert view.order(42)["status"] == ACCEPTED
    assert view.unread_count == 1
    await view.unmount()


async def test_stale_event_does_not_undo_newer_snapshot(customer, admin, order_42):
    view = await mounted_view(customer)
    await transition(42, ACCEPTED, admin.id)
    await transition(42, PREPARING, admin.id)

    # Pull first, then let the buffered events arrive.
    await view.refresh()
    await view.pump()

    assert view.order(42)["status"] == PREPARING
    assert view.unread_count == 2
    await view.unmount()


async def test_mark_notification_read(customer, admin, order_42):
    view = await mounted_view(customer)
    await transition(42, ACCEPTED, admin.id)
    await view.pump()
    note_id = view.notifications[0]["id"]
    before = view.unread_count

    await view.mark_read(note_id)

    assert view.unread_count == before - 1
    assert view.notifications[0]["read"] is True
    assert await notification_service.unread_count(customer.id) == 0
    await view.unmount()


async def test_mark_read_failure_keeps_optimistic_state(customer, admin, order_42, monkeypatch):
    view = await mounted_view(customer)
    await transition(42, ACCEPTED, admin.id)
    await view.pump()

    async def failing(*args):
        raise ConnectionError("offline")

    monkeypatch.setattr(notification_service, "mark_read", failing)
    await view.mark_read(view.notifications[0]["id"])

    assert view.unread_count == 0
    await view.unmount()


async def test_payment_confirmation_surfaces_as_toast(customer, order_42):
    view = await mounted_view(customer)

    await publish_payment_confirmed(customer.id, {"order_id": 42, "method": "cbe", "reference": "ABC123"})
    await view.pump()

    assert view.toasts.last.message == "Payment confirmed for order #42 (ref ABC123)"
    await view.unmount()


async def test_other_customers_events_are_not_received(customer, admin, order_42):
    other = await add_profile("cust-7")
    view = await mounted_view(other)

    await transition(42, ACCEPTED, admin.id)

    assert await view.pump() == 0
    assert view.orders == []
    await view.unmount()


async def test_unmounted_view_discards_events(customer, admin, order_42):
    view = await mounted_view(customer)
    await view.unmount()

    await transition(42, ACCEPTED, admin.id)

    assert await view.pump() == 0
    assert view.order(42)["status"] == PENDING
