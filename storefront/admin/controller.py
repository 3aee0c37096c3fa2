from quart import Blueprint, jsonify, request

from .service import dashboard_stats, list_admin_logs
from ..common.auth import current_actor, require
from ..users.service import list_profiles, update_profile

bp = Blueprint("admin", __name__, url_prefix="/admin")


@bp.get("/dashboard")
async def dashboard():
    actor = await current_actor()
    require(actor.is_admin)
    return jsonify(await dashboard_stats())


@bp.get("/users")
async def users_list():
    actor = await current_actor()
    require(actor.can_manage_users())
    users = await list_profiles(
        search=request.args.get("search", ""),
        role=request.args.get("role", "all"),
        status=request.args.get("status", "all"),
    )
    return jsonify({"users": users})


@bp.patch("/users/<user_id>")
async def users_update(user_id: str):
    actor = await current_actor()
    data = await request.get_json(force=True, silent=True) or {}
    return jsonify({"user": await update_profile(actor, user_id, data)})


@bp.get("/logs")
async def logs_list():
    actor = await current_actor()
    require(actor.can_view_admin_logs())
    logs = await list_admin_logs(
        action_type=request.args.get("action"),
        window=request.args.get("window", "all"),
        search=request.args.get("search", ""),
    )
    return jsonify({"logs": logs, "action_types": sorted({log["action_type"] for log in logs})})
