"""Module: audit_log."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from control_tower.db.base import Base, utcnow


class AuditAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESTORE = "restore"
    STATUS_CHANGE = "status_change"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


# Stores immutable audit trail entries for audited resource mutations.
# resource_type/resource_id is a soft reference: audited types are heterogeneous.
class AuditLog(Base):
    __tablename__ = "audit_logs"

    # Insertion sequence; breaks ties between entries sharing a timestamp.
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    audit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        unique=True,
        nullable=False,
        default=uuid.uuid4
    )

    user_id: Mapped[str] = mapped_column(String(100), nullable=True, index=True)
    user_name: Mapped[str] = mapped_column(String(100), nullable=True)
    user_email: Mapped[str] = mapped_column(String(255), nullable=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[str] = mapped_column(String(100), nullable=True)
    resource_name: Mapped[str] = mapped_column(String(200), nullable=True)

    changes: Mapped[list] = mapped_column(JSON, nullable=True)
    meta: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True
    )
