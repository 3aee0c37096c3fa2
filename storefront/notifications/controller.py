from quart import Blueprint, jsonify

from .service import mark_read, recent_notifications, unread_count
from ..common.auth import current_actor

bp = Blueprint("notifications", __name__)


@bp.get("/notifications")
async def notifications_list():
    actor = await current_actor()
    items = await recent_notifications(actor.id)
    return jsonify({"notifications": items, "unread_count": await unread_count(actor.id)})


@bp.post("/notifications/<int:notification_id>/read")
async def notification_read(notification_id: int):
    actor = await current_actor()
    await mark_read(actor.id, notification_id)
    return jsonify({"ok": True, "unread_count": await unread_count(actor.id)})
