from quart import Blueprint, jsonify, request

from .model import order_to_dict
from .service import order_for, orders_for, place_order
from .transitions import transition
from ..common.auth import current_actor, require
from ..common.errors import ValidationError

bp = Blueprint("orders", __name__)


async def _json_object():
    data = await request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    return data


@bp.post("/orders")
async def orders_post():
    actor = await current_actor()
    data = await _json_object()
    order = await place_order(
        actor,
        data.get("items"),
        customer_name=data.get("customer_name", ""),
        customer_phone=data.get("customer_phone", ""),
        notes=data.get("notes", ""),
        payment_method=data.get("payment_method", "telebirr"),
    )
    return jsonify({"order": order_to_dict(order)}), 201


@bp.get("/orders")
async def orders_list():
    actor = await current_actor()
    status = request.args.get("status")
    orders = await orders_for(actor, None if status in (None, "", "all") else status)
    return jsonify({"orders": orders})


@bp.get("/orders/<int:order_id>")
async def order_detail(order_id: int):
    actor = await current_actor()
    return jsonify({"order": await order_for(actor, order_id)})


@bp.post("/orders/<int:order_id>/transition")
async def order_transition(order_id: int):
    actor = await current_actor()
    require(actor.can_transition_orders(), "Only administrators can change order status")
    data = await _json_object()
    order = await transition(order_id, str(data.get("status", "")), actor.id, data.get("notes"))
    return jsonify({"order": order_to_dict(order)})
