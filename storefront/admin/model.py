from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..common.db import Base, isoformat, utcnow


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    admin_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    target_type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_id: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[Any] = mapped_column(JSON, nullable=False, default=dict)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


def admin_log_to_dict(log: AdminLog, admin_name: Optional[str] = None) -> dict:
    return {
        "id": log.id,
        "admin_id": log.admin_id,
        "admin_name": admin_name or "Unknown Admin",
        "action_type": log.action_type,
        "target_type": log.target_type,
        "target_id": log.target_id,
        "details": log.details or {},
        "ip_address": log.ip_address,
        "user_agent": log.user_agent,
        "created_at": isoformat(log.created_at),
    }
