"""Module: deployment."""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from control_tower.db.base import Base, utcnow


class DeploymentStatus(str, enum.Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    BLOCKED = "Blocked"
    RELEASED = "Released"


class DeploymentType(str, enum.Enum):
    GA = "ga"
    EAP = "eap"
    FEATURE_RELEASE = "feature-release"
    CLIENT_SPECIFIC = "client-specific"


class Environment(str, enum.Enum):
    QA = "qa"
    SANDBOX = "sandbox"
    PRODUCTION = "production"


# Status values for the adapter sub-services (SA/SE equipment, mapping, construction).
class SubServiceStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"


# Delivery of one product to one or more clients, with its embedded status
# history and blocked-comment thread stored as JSON documents.
class Deployment(Base):
    __tablename__ = "deployments"

    deployment_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("products.product_id"),
        nullable=False
    )
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Multi-client (EAP) shape; client_id/client_name mirror the first element.
    client_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    client_names: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=DeploymentStatus.NOT_STARTED.value)
    deployment_type: Mapped[str] = mapped_column(String(20), nullable=False, default=DeploymentType.GA.value)
    environment: Mapped[str] = mapped_column(String(20), nullable=True)

    owner: Mapped[str] = mapped_column(String(100), nullable=True)
    next_delivery_date: Mapped[date] = mapped_column(Date, nullable=True)
    feature_name: Mapped[str] = mapped_column(String(200), nullable=True)
    release_items: Mapped[str] = mapped_column(Text, nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=True)

    equipment_sa_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SubServiceStatus.NOT_STARTED.value)
    equipment_se_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SubServiceStatus.NOT_STARTED.value)
    mapping_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SubServiceStatus.NOT_STARTED.value)
    construction_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SubServiceStatus.NOT_STARTED.value)

    # Embedded documents: always replaced with a new list, never mutated in place.
    status_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    blocked_comments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    notification_emails: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Optimistic lock: every UPDATE is issued as "... WHERE version_id = <read value>".
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    __mapper_args__ = {"version_id_col": version_id}
