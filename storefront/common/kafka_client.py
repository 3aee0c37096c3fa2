import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from aiokafka import AIOKafkaProducer, AIOKafkaConsumer

from .config import settings

_logger = logging.getLogger(__name__)

_producer: Optional[AIOKafkaProducer] = None
_producer_lock = asyncio.Lock()

MAX_BACKOFF = 30.0

Client = TypeVar("Client", AIOKafkaProducer, AIOKafkaConsumer)


async def _start(factory: Callable[[], Client], label: str, attempts: int) -> Client:
    """Build and start a fresh client per attempt, doubling the wait between failures."""
    backoff = 1.0
    for attempt in range(1, attempts + 1):
        client = factory()
        try:
            await client.start()
            return client
        except Exception as e:
            _logger.warning("Kafka %s start failed (attempt %s/%s): %s", label, attempt, attempts, e)
            if attempt == attempts:
                raise
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, MAX_BACKOFF)


async def get_producer(attempts: Optional[int] = None) -> AIOKafkaProducer:
    global _producer
    if _producer is None:
        async with _producer_lock:
            if _producer is None:
                _producer = await _start(
                    lambda: AIOKafkaProducer(bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS),
                    "producer",
                    attempts or settings.KAFKA_CONNECT_ATTEMPTS,
                )
                _logger.info("Kafka producer connected to %s", settings.KAFKA_BOOTSTRAP_SERVERS)
    return _producer


async def publish_event(topic: str, payload: Dict[str, Any]) -> bool:
    """Send a JSON event. Returns False when Kafka is disabled or unreachable.

    Called on the request path, so the producer gets a single connect attempt.
    """
    if not settings.KAFKA_ENABLED:
        _logger.debug("Kafka disabled, dropping event for topic=%s", topic)
        return False
    try:
        producer = await get_producer(attempts=1)
        await producer.send_and_wait(topic, json.dumps(payload).encode("utf-8"))
    except Exception as e:
        _logger.warning("Kafka publish failed | topic=%s err=%s", topic, e)
        return False
    return True


async def close_producer() -> None:
    global _producer
    producer, _producer = _producer, None
    if producer is not None:
        await producer.stop()


async def create_consumer(topic: str, group_id: str) -> AIOKafkaConsumer:
    return await _start(
        lambda: AIOKafkaConsumer(
            topic,
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            group_id=group_id,
            enable_auto_commit=True,
            auto_offset_reset="earliest",
        ),
        "consumer",
        settings.KAFKA_CONNECT_ATTEMPTS,
    )


async def close_consumer(consumer: Optional[AIOKafkaConsumer]) -> None:
    if consumer is not None:
        await consumer.stop()
