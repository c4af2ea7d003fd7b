"""Module: approval."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from control_tower.db.base import Base, utcnow


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# Release approval request for a deployment. Display names are denormalized
# at request time; once status leaves "pending" the row is never re-resolved.
class Approval(Base):
    __tablename__ = "approvals"

    approval_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    deployment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("deployments.deployment_id"),
        nullable=False,
        index=True
    )
    deployment_name: Mapped[str] = mapped_column(String(200), nullable=True)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True)
    product_name: Mapped[str] = mapped_column(String(200), nullable=True)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True)
    client_name: Mapped[str] = mapped_column(String(200), nullable=True)

    requested_by: Mapped[str] = mapped_column(String(100), nullable=False)
    requested_by_name: Mapped[str] = mapped_column(String(100), nullable=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ApprovalStatus.PENDING.value, index=True)
    reviewed_by: Mapped[str] = mapped_column(String(100), nullable=True)
    reviewed_by_name: Mapped[str] = mapped_column(String(100), nullable=True)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    comments: Mapped[str] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
