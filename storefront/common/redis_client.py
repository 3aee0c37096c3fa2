import asyncio
import json
import logging
import ssl
from typing import Any, Dict, Optional

from redis.asyncio import Redis

from .config import settings

_logger = logging.getLogger(__name__)

_redis: Optional[Redis] = None
_lock = asyncio.Lock()


def _connection_kwargs() -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {
        "host": settings.REDIS_HOST,
        "port": settings.REDIS_PORT,
        "db": settings.REDIS_DB,
        "username": settings.REDIS_USERNAME or None,
        "password": settings.REDIS_PASSWORD or None,
        "decode_responses": True,
    }
    if settings.REDIS_SSL:
        kwargs["ssl"] = True
        kwargs["ssl_cert_reqs"] = ssl.CERT_REQUIRED if settings.REDIS_SSL_VERIFY else ssl.CERT_NONE
    return kwargs


async def get_redis() -> Redis:
    """Shared client for the live channels, connected on first use."""
    global _redis
    if _redis is not None:
        return _redis
    async with _lock:
        if _redis is None:
            client = Redis(**_connection_kwargs())
            try:
                await client.ping()
            except Exception as e:
                _logger.error("Failed to connect to Redis at %s:%s: %s", settings.REDIS_HOST, settings.REDIS_PORT, e)
                await client.close()
                raise
            _logger.info(
                "Connected to Redis at %s:%s (SSL=%s)", settings.REDIS_HOST, settings.REDIS_PORT, settings.REDIS_SSL
            )
            _redis = client
    return _redis


def use_redis(client: Optional[Redis]) -> None:
    """Install an already-built client (used by the test suite)."""
    global _redis
    _redis = client


async def publish_json(channel: str, payload: Dict[str, Any]) -> int:
    """Publish one JSON message; returns the number of live subscribers that got it."""
    r = await get_redis()
    return await r.publish(channel, json.dumps(payload))


async def close_redis() -> None:
    global _redis
    client, _redis = _redis, None
    if client is not None:
        await client.close()
