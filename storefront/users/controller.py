from quart import Blueprint, jsonify, request

from .service import get_own_profile, update_own_profile
from ..common.auth import current_actor
from ..common.errors import ValidationError

bp = Blueprint("profile", __name__)


@bp.get("/profile")
async def profile_detail():
    actor = await current_actor()
    return jsonify({"user": await get_own_profile(actor)})


@bp.patch("/profile")
async def profile_update():
    actor = await current_actor()
    data = await request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    return jsonify({"user": await update_own_profile(actor, data)})
