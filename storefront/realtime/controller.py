import asyncio
import json
import logging

from quart import Blueprint, Response

from .channels import Subscription, notification_channel, order_channel
from ..common.auth import current_actor

_logger = logging.getLogger(__name__)

bp = Blueprint("realtime", __name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def _stream(channel: str):
    async def gen():
        subscription = None
        backoff = 1.0
        # Advise client on retry
        yield "retry: 3000\n\n"
        try:
            while True:
                try:
                    if subscription is None:
                        subscription = await Subscription(channel).open()
                    event = await subscription.next_event(timeout=5.0)
                    if event:
                        yield f"event: {event.get('type', 'message')}\n"
                        yield f"data: {json.dumps(event)}\n\n"
                    else:
                        # Keep-alive to prevent closes by proxies
                        yield ": keep-alive\n\n"
                    backoff = 1.0
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    _logger.warning("Live channel error | channel=%s err=%s", channel, e)
                    yield f": redis-error, retrying in {int(backoff)}s\n\n"
                    await asyncio.sleep(backoff)
                    backoff = min(backoff * 2, 15.0)
                    if subscription is not None:
                        try:
                            await subscription.close()
                        except Exception as close_err:
                            _logger.debug("Closing broken subscription failed | err=%s", close_err)
                    subscription = None
        finally:
            if subscription is not None:
                try:
                    await subscription.close()
                except Exception as e:
                    _logger.debug("Closing subscription on disconnect failed | channel=%s err=%s", channel, e)

    return Response(gen(), mimetype="text/event-stream", headers=SSE_HEADERS)


@bp.get("/events/orders")
async def order_events():
    actor = await current_actor()
    return _stream(order_channel(actor.id))


@bp.get("/events/notifications")
async def notification_events():
    actor = await current_actor()
    return _stream(notification_channel(actor.id))
