"""Actor context.

Authentication happens upstream: the identity provider in front of the service
forwards the authenticated user id (and e-mail) as request headers. Role and
status live in the ``profiles`` table and are looked up on every request, so an
``Actor`` always reflects the current profile.
"""
import logging
from dataclasses import dataclass

from quart import request

from .database import AsyncSessionLocal
from .db import utcnow
from .errors import AuthenticationRequired, AuthorizationError
from ..users.model import Profile, ROLE_ADMIN, ROLE_CUSTOMER, STATUS_ACTIVE

_logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
USER_EMAIL_HEADER = "X-User-Email"


@dataclass(frozen=True)
class Actor:
    id: str
    role: str = ROLE_CUSTOMER
    status: str = STATUS_ACTIVE
    email: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN and self.is_active

    def can_place_orders(self) -> bool:
        return self.is_active

    def can_transition_orders(self) -> bool:
        return self.is_admin

    def can_edit_menu(self) -> bool:
        return self.is_admin

    def can_manage_users(self) -> bool:
        return self.is_admin

    def can_view_admin_logs(self) -> bool:
        return self.is_admin


def actor_from_profile(profile: Profile) -> Actor:
    return Actor(id=profile.id, role=profile.role, status=profile.status, email=profile.email)


async def load_actor(user_id: str, email: str = "") -> Actor:
    """Return the actor for ``user_id``, creating a customer profile on first sight.

    Every call stamps ``last_login``.
    """
    async with AsyncSessionLocal() as session:
        profile = await session.get(Profile, user_id)
        if profile is None:
            profile = Profile(id=user_id, email=email, role=ROLE_CUSTOMER, last_login=utcnow())
            session.add(profile)
            _logger.info("Created customer profile | user_id=%s", user_id)
        else:
            profile.last_login = utcnow()
            if email and not profile.email:
                profile.email = email
        await session.commit()
        return actor_from_profile(profile)


async def current_actor() -> Actor:
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        raise AuthenticationRequired("Please login to continue")
    email = (request.headers.get(USER_EMAIL_HEADER) or "").strip()
    return await load_actor(user_id, email)


def require(allowed: bool, message: str = "Admin access required") -> None:
    if not allowed:
        raise AuthorizationError(message)
