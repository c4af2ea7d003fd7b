"""Module: product."""

import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from control_tower.db.base import Base, utcnow


def _default_adapter_services() -> dict:
    return {
        "hasEquipmentSA": False,
        "hasEquipmentSE": False,
        "hasMapping": False,
        "hasConstruction": False,
    }


# Product catalogue entry; deployments copy its name for display.
class Product(Base):
    __tablename__ = "products"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    product_owner: Mapped[str] = mapped_column(String(100), nullable=True)
    engineering_owner: Mapped[str] = mapped_column(String(100), nullable=True)
    delivery_lead: Mapped[str] = mapped_column(String(100), nullable=True)
    next_release_date: Mapped[date] = mapped_column(Date, nullable=True)

    # Adapter products track four extra sub-service statuses per deployment.
    is_adapter: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    adapter_services: Mapped[dict] = mapped_column(JSON, nullable=False, default=_default_adapter_services)
    notification_emails: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
