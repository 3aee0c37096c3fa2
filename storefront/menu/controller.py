from quart import Blueprint, jsonify, request

from .service import create_menu_item, delete_menu_item, get_menu_item, list_menu, update_menu_item
from ..common.auth import current_actor

bp = Blueprint("menu", __name__)


@bp.get("/menu")
async def menu_list():
    items = await list_menu(category=request.args.get("category"))
    return jsonify({"items": items})


@bp.get("/menu/<int:item_id>")
async def menu_detail(item_id: int):
    return jsonify({"item": await get_menu_item(item_id)})


@bp.post("/menu")
async def menu_create():
    actor = await current_actor()
    data = await request.get_json(force=True, silent=True) or {}
    return jsonify({"item": await create_menu_item(actor, data)}), 201


@bp.put("/menu/<int:item_id>")
async def menu_update(item_id: int):
    actor = await current_actor()
    data = await request.get_json(force=True, silent=True) or {}
    return jsonify({"item": await update_menu_item(actor, item_id, data)})


@bp.delete("/menu/<int:item_id>")
async def menu_delete(item_id: int):
    actor = await current_actor()
    await delete_menu_item(actor, item_id)
    return jsonify({"ok": True})
