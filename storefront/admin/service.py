import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from quart import has_request_context, request
from sqlalchemy.ext.asyncio import AsyncSession

from .model import AdminLog, admin_log_to_dict
from ..common.database import AsyncSessionLocal
from ..common.db import utcnow
from ..common.errors import ValidationError
from ..orders.model import Order, PENDING
from ..users.model import Profile, ROLE_CUSTOMER

_logger = logging.getLogger(__name__)

LOG_LIMIT = 100
DATE_WINDOWS = ("all", "today", "week", "month")


def _request_meta():
    if not has_request_context():
        return None, None
    return request.remote_addr, request.headers.get("User-Agent")


def add_admin_log(
    session: AsyncSession,
    admin_id: str,
    action_type: str,
    target_type: str,
    target_id: Any,
    details: Optional[Dict[str, Any]] = None,
) -> AdminLog:
    """Stage an audit entry on ``session``; it commits with the caller's change."""
    ip_address, user_agent = _request_meta()
    entry = AdminLog(
        admin_id=admin_id,
        action_type=action_type,
        target_type=target_type,
        target_id=str(target_id),
        details=dict(details or {}, timestamp=utcnow().isoformat()),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    session.add(entry)
    _logger.info(
        "Admin action | admin_id=%s action=%s target=%s:%s", admin_id, action_type, target_type, target_id
    )
    return entry


def _window_start(window: str, now: datetime) -> Optional[datetime]:
    if window == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if window == "week":
        return now - timedelta(days=7)
    if window == "month":
        return now - timedelta(days=30)
    return None


async def list_admin_logs(
    action_type: Optional[str] = None,
    window: str = "all",
    search: str = "",
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    if window not in DATE_WINDOWS:
        raise ValidationError(f"Unknown date filter: {window}")
    stmt = (
        sa.select(AdminLog, Profile.full_name)
        .outerjoin(Profile, Profile.id == AdminLog.admin_id)
        .order_by(AdminLog.created_at.desc(), AdminLog.id.desc())
        .limit(LOG_LIMIT)
    )
    if action_type and action_type != "all":
        stmt = stmt.where(AdminLog.action_type == action_type)
    start = _window_start(window, now or utcnow())
    if start is not None:
        stmt = stmt.where(AdminLog.created_at >= start)

    async with AsyncSessionLocal() as session:
        rows = (await session.execute(stmt)).all()

    logs = [admin_log_to_dict(log, full_name) for log, full_name in rows]
    term = search.strip().lower()
    if term:
        logs = [
            log
            for log in logs
            if term in log["admin_name"].lower() or term in log["action_type"].lower() or term in log["target_id"]
        ]
    for log in logs:
        log["description"] = describe_action(log)
    return logs


def describe_action(log: Dict[str, Any]) -> str:
    action = log["action_type"]
    target_id = log["target_id"]
    details = log.get("details") or {}
    if action == "user_status_update":
        return f'Updated user status to "{details.get("new_status")}" for user {target_id}'
    if action == "user_role_update":
        return f'Changed user role to "{details.get("new_role")}" for user {target_id}'
    if action == "user_profile_update":
        return f"Updated profile information for user {target_id}"
    if action == "order_status_update":
        return (
            f'Changed order #{target_id} status from "{details.get("old_status")}" '
            f'to "{details.get("new_status")}"'
        )
    if action.startswith("menu_item_"):
        return f"{action.rsplit('_', 1)[-1].capitalize()}d menu item {details.get('name', target_id)}"
    return f"Performed {action} on {log['target_type']} {target_id}"


async def dashboard_stats() -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        total_orders = (await session.execute(sa.select(sa.func.count(Order.id)))).scalar() or 0
        pending_orders = (
            await session.execute(sa.select(sa.func.count(Order.id)).where(Order.status == PENDING))
        ).scalar() or 0
        revenue = (await session.execute(sa.select(sa.func.sum(Order.total_amount)))).scalar() or 0
        customers = (
            await session.execute(sa.select(sa.func.count(Profile.id)).where(Profile.role == ROLE_CUSTOMER))
        ).scalar() or 0
    return {
        "total_orders": int(total_orders),
        "pending_orders": int(pending_orders),
        "total_revenue": str(revenue),
        "total_customers": int(customers),
    }
