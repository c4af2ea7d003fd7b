"""Module: audit_recorder.

Append-only audit trail persistence and queries.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import desc, func, or_, select
from sqlalchemy.orm import Session

from control_tower.core.errors import NotFoundError, ValidationFailure
from control_tower.db.base import utcnow
from control_tower.db.models.audit_log import AuditAction, AuditLog

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

_VALID_ACTIONS = {action.value for action in AuditAction}


@dataclass(frozen=True)
class ActorContext:
    """Who performed a mutation, and from where. Every field is optional."""

    user_id: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None

    @property
    def display_name(self) -> str | None:
        return self.user_name or self.user_email or self.user_id

    def metadata(self) -> dict[str, str]:
        meta = {
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "requestId": self.request_id,
        }
        return {key: value for key, value in meta.items() if value}


SYSTEM_ACTOR = ActorContext()


# occurred_at is stored as naive UTC; aware bounds are converted to match.
def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _newest_first(stmt):
    return stmt.order_by(desc(AuditLog.occurred_at), desc(AuditLog.seq))


class AuditRecorder:
    """The only writer of ``audit_logs`` rows.

    Entries are inserted and committed on their own; nothing here updates or
    deletes an existing row.
    """

    def record(
        self,
        db: Session,
        *,
        action: str,
        resource_type: str | None = None,
        resource_id: Any = None,
        resource_name: str | None = None,
        changes: list[dict[str, Any]] | None = None,
        actor: ActorContext | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLog:
        action = getattr(action, "value", action)
        if action not in _VALID_ACTIONS:
            raise ValidationFailure(f"Unknown audit action: {action}")

        actor = actor or SYSTEM_ACTOR
        meta = actor.metadata()
        meta.update(metadata or {})

        entry = AuditLog(
            audit_id=uuid.uuid4(),
            user_id=actor.user_id,
            user_name=actor.user_name,
            user_email=actor.user_email,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            resource_name=resource_name,
            changes=changes or None,
            meta=meta,
            occurred_at=utcnow(),
        )
        db.add(entry)
        db.commit()
        logger.debug(
            "Audit entry %s action=%s resource=%s/%s",
            entry.audit_id, action, resource_type, entry.resource_id,
        )
        return entry

    def get(self, db: Session, audit_id: uuid.UUID) -> AuditLog:
        entry = db.execute(select(AuditLog).where(AuditLog.audit_id == audit_id)).scalar_one_or_none()
        if not entry:
            raise NotFoundError("Audit log not found")
        return entry

    def get_by_resource(self, db: Session, resource_type: str, resource_id: Any) -> list[AuditLog]:
        stmt = select(AuditLog).where(
            AuditLog.resource_type == resource_type,
            AuditLog.resource_id == str(resource_id),
        )
        return list(db.execute(_newest_first(stmt)).scalars().all())

    def get_by_actor(self, db: Session, user_id: str) -> list[AuditLog]:
        stmt = select(AuditLog).where(AuditLog.user_id == user_id)
        return list(db.execute(_newest_first(stmt)).scalars().all())

    def search(
        self,
        db: Session,
        *,
        user_id: str | None = None,
        action: str | None = None,
        resource_type: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """Filtered, paginated listing, newest first.

        ``search`` is a case-insensitive substring match on resource name or
        actor name. Date bounds are inclusive.
        """
        page = max(int(page or 1), 1)
        limit = min(max(int(limit or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

        conditions = []
        if user_id:
            conditions.append(AuditLog.user_id == user_id)
        if action:
            conditions.append(AuditLog.action == action)
        if resource_type:
            conditions.append(AuditLog.resource_type == resource_type)
        if start_date:
            conditions.append(AuditLog.occurred_at >= _as_naive_utc(start_date))
        if end_date:
            conditions.append(AuditLog.occurred_at <= _as_naive_utc(end_date))
        if search:
            needle = search.lower()
            conditions.append(
                or_(
                    func.lower(AuditLog.resource_name).contains(needle, autoescape=True),
                    func.lower(AuditLog.user_name).contains(needle, autoescape=True),
                )
            )

        total = db.execute(
            select(func.count()).select_from(AuditLog).where(*conditions)
        ).scalar_one()

        rows = db.execute(
            _newest_first(select(AuditLog).where(*conditions))
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return {
            "data": list(rows),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit) if total else 0,
            },
        }
