from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..common.db import Base, isoformat, utcnow

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
PREPARING = "preparing"
READY = "ready"
DELIVERED = "delivered"
# Reserved: a legal status value with no transition leading into it.
CANCELLED = "cancelled"

STATUSES = (PENDING, ACCEPTED, REJECTED, PREPARING, READY, DELIVERED, CANCELLED)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(64), nullable=False)
    order_details: Mapped[str] = mapped_column(Text, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=PENDING, index=True)
    admin_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    processed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


def order_to_dict(order: Order) -> dict:
    """Row shape shared by the REST responses and the live update events."""
    return {
        "id": order.id,
        "customer_id": order.customer_id,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "order_details": order.order_details,
        "total_amount": str(order.total_amount),
        "status": order.status,
        "admin_notes": order.admin_notes or "",
        "processed_by": order.processed_by,
        "processed_at": isoformat(order.processed_at),
        "created_at": isoformat(order.created_at),
        "updated_at": isoformat(order.updated_at),
    }
