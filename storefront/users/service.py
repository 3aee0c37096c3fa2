import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa

from .model import Profile, ROLES, STATUSES, profile_to_dict
from ..admin.service import add_admin_log
from ..common.auth import Actor, require
from ..common.database import AsyncSessionLocal
from ..common.db import utcnow
from ..common.errors import NotFoundError, ValidationError

_logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("full_name", "email", "phone")
OWN_PROFILE_FIELDS = ("full_name", "phone")


async def list_profiles(search: str = "", role: str = "all", status: str = "all") -> List[Dict[str, Any]]:
    stmt = sa.select(Profile).order_by(Profile.created_at.desc())
    if role != "all":
        stmt = stmt.where(Profile.role == role)
    if status != "all":
        stmt = stmt.where(Profile.status == status)
    term = search.strip()
    if term:
        like = f"%{term.lower()}%"
        stmt = stmt.where(
            sa.or_(
                sa.func.lower(Profile.full_name).like(like),
                sa.func.lower(Profile.email).like(like),
                Profile.phone.like(f"%{term}%"),
            )
        )
    async with AsyncSessionLocal() as session:
        res = await session.execute(stmt)
        return [profile_to_dict(p) for p in res.scalars().all()]


async def update_profile(actor: Actor, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply role, status and profile-field changes, one audit entry per kind of change."""
    require(actor.can_manage_users())
    new_role: Optional[str] = data.get("role")
    new_status: Optional[str] = data.get("status")
    updates = {k: str(data[k]).strip() for k in PROFILE_FIELDS if k in data}

    if new_role is not None and new_role not in ROLES:
        raise ValidationError(f"Unknown role: {new_role}")
    if new_status is not None and new_status not in STATUSES:
        raise ValidationError(f"Unknown status: {new_status}")
    if user_id == actor.id and (new_role not in (None, actor.role) or new_status not in (None, actor.status)):
        raise ValidationError("You cannot change your own role or status")
    if new_role is None and new_status is None and not updates:
        raise ValidationError("Nothing to update")

    async with AsyncSessionLocal() as session:
        async with session.begin():
            profile = await session.get(Profile, user_id)
            if profile is None:
                raise NotFoundError("User not found")
            if new_role is not None and new_role != profile.role:
                profile.role = new_role
                add_admin_log(session, actor.id, "user_role_update", "user", user_id, {"new_role": new_role})
            if new_status is not None and new_status != profile.status:
                profile.status = new_status
                add_admin_log(session, actor.id, "user_status_update", "user", user_id, {"new_status": new_status})
            if updates:
                for key, value in updates.items():
                    setattr(profile, key, value)
                add_admin_log(session, actor.id, "user_profile_update", "user", user_id, {"updates": updates})
            profile.updated_at = utcnow()
    return profile_to_dict(profile)


async def get_own_profile(actor: Actor) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        profile = await session.get(Profile, actor.id)
    if profile is None:
        raise NotFoundError("User not found")
    return profile_to_dict(profile)


async def update_own_profile(actor: Actor, data: Dict[str, Any]) -> Dict[str, Any]:
    """Let a user edit their own name and phone; role, status and e-mail stay admin-managed."""
    unknown = sorted(set(data) - set(OWN_PROFILE_FIELDS))
    if unknown:
        raise ValidationError(f"Cannot update: {', '.join(unknown)}")
    updates = {}
    for key in OWN_PROFILE_FIELDS:
        if key not in data:
            continue
        if not isinstance(data[key], str):
            raise ValidationError(f"{key} must be a string")
        updates[key] = data[key].strip()
    if not updates:
        raise ValidationError("Nothing to update")

    async with AsyncSessionLocal() as session:
        async with session.begin():
            profile = await session.get(Profile, actor.id)
            if profile is None:
                raise NotFoundError("User not found")
            for key, value in updates.items():
                setattr(profile, key, value)
            profile.updated_at = utcnow()
    _logger.info("Profile updated by owner | user_id=%s fields=%s", actor.id, sorted(updates))
    return profile_to_dict(profile)
