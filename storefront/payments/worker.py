import asyncio
import json
import logging
import uuid
from typing import Any, Dict, Optional

from prometheus_client import Counter

from .methods import PAYMENT_METHODS
from ..common.config import settings
from ..common.kafka_client import create_consumer, close_consumer
from ..orders.store import get_order
from ..realtime.channels import publish_payment_confirmed

_logger = logging.getLogger(__name__)

PAYMENTS_CONFIRMED = Counter("payments_confirmed_total", "Simulated payment confirmations", ["method"])


async def confirm_payment(payload: Dict[str, Any], delay: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """Simulate the gateway round-trip for one order-placed event and push the result."""
    order_id = int(payload["order_id"])
    method = payload.get("payment_method") or "telebirr"
    if method not in PAYMENT_METHODS:
        _logger.warning("Unknown payment method, skipping | order_id=%s method=%s", order_id, method)
        return None

    await asyncio.sleep(settings.PAYMENT_DELAY_SECONDS if delay is None else delay)

    order = await get_order(order_id)
    if order is None:
        _logger.warning("Order vanished before payment confirmation | order_id=%s", order_id)
        return None

    confirmation = {
        "order_id": order_id,
        "method": method,
        "account": PAYMENT_METHODS[method]["account"],
        "amount": str(order.total_amount),
        "reference": uuid.uuid4().hex[:12].upper(),
    }
    await publish_payment_confirmed(order.customer_id, confirmation)
    PAYMENTS_CONFIRMED.labels(method=method).inc()
    _logger.info("Payment confirmed | order_id=%s method=%s ref=%s", order_id, method, confirmation["reference"])
    return confirmation


async def payments_worker(stop_event: Optional[asyncio.Event] = None):
    """
    Kafka consumer for order-placed events.
    - Simulates the payment gateway delay (no real gateway)
    - Pushes a payment_confirmed event on the customer's order channel
    Resilient to Kafka outages: retries connection with backoff.
    """
    backoff = 1.0
    while True:
        if stop_event and stop_event.is_set():
            break
        consumer = None
        try:
            _logger.info("Payments worker connecting to Kafka topic=%s", settings.ORDER_PLACED_TOPIC)
            consumer = await create_consumer(settings.ORDER_PLACED_TOPIC, group_id=settings.PAYMENTS_GROUP_ID)
            _logger.info("Payments worker connected and consuming")
            backoff = 1.0
            while True:
                if stop_event and stop_event.is_set():
                    break
                batch = await consumer.getmany(timeout_ms=1000)
                if not batch:
                    continue
                for _, messages in batch.items():
                    for result in messages:
                        try:
                            payload = json.loads(result.value.decode("utf-8"))
                        except (UnicodeDecodeError, ValueError):
                            _logger.warning("Skipping malformed order-placed event at offset %s", result.offset)
                            continue
                        try:
                            await confirm_payment(payload)
                        except Exception as e:
                            _logger.error("Payment confirmation failed | payload=%s err=%s", payload, e)
        except Exception as e:
            _logger.warning("Payments worker error, will retry | err=%s", e)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, 30.0)
        finally:
            await close_consumer(consumer)
