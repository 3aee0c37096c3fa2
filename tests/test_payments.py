from storefront.common.kafka_client import publish_event
from storefront.orders.service import place_order
from storefront.payments.worker import confirm_payment
from storefront.realtime.channels import PAYMENT_CONFIRMED, Subscription, order_channel


async def test_confirmation_is_pushed_on_customer_channel(customer, menu):
    order = await place_order(customer, [{"menu_item_id": menu["Margherita"], "quantity": 2}], payment_method="telebirr")
    subscription = await Subscription(order_channel(customer.id)).open()

    confirmation = await confirm_payment({"order_id": order.id, "payment_method": "telebirr"}, delay=0)
    events = await subscription.drain()
    await subscription.close()

    assert confirmation["amount"] == "560.00"
    assert confirmation["account"] == "0911234567"
    assert len(confirmation["reference"]) == 12
    assert events == [dict(confirmation, type=PAYMENT_CONFIRMED)]


async def test_unknown_order_is_skipped(customer):
    assert await confirm_payment({"order_id": 12345, "payment_method": "cbe"}, delay=0) is None


async def test_unknown_method_is_skipped(customer, menu):
    order = await place_order(customer, [{"menu_item_id": menu["French Fries"]}])

    assert await confirm_payment({"order_id": order.id, "payment_method": "bitcoin"}, delay=0) is None


async def test_order_placed_event_is_dropped_when_kafka_is_off():
    assert await publish_event("order-placed", {"order_id": 1}) is False
