"""Module: audit_logs."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from control_tower.api.v1.routes.deps import get_db, parse_uuid
from control_tower.db.models.audit_log import AuditLog
from control_tower.services.audit_recorder import AuditRecorder

router = APIRouter()

recorder = AuditRecorder()


def audit_out(entry: AuditLog) -> dict:
    return {
        "id": str(entry.audit_id),
        "user_id": entry.user_id,
        "user_name": entry.user_name,
        "user_email": entry.user_email,
        "action": entry.action,
        "resource_type": entry.resource_type,
        "resource_id": entry.resource_id,
        "resource_name": entry.resource_name,
        "changes": entry.changes,
        "metadata": entry.meta or {},
        "timestamp": entry.occurred_at,
    }


@router.get("", summary="Search audit logs")
def search_audit_logs(
    user_id: str | None = Query(default=None),
    action: str | None = Query(default=None),
    resource_type: str | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    search: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1),
    db: Session = Depends(get_db),
):
    result = recorder.search(
        db,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        start_date=start_date,
        end_date=end_date,
        search=search,
        page=page,
        limit=limit,
    )
    return {"data": [audit_out(e) for e in result["data"]], "pagination": result["pagination"]}


@router.get("/resource/{resource_type}/{resource_id}", summary="Audit trail for one resource")
def get_by_resource(resource_type: str, resource_id: str, db: Session = Depends(get_db)):
    return [audit_out(e) for e in recorder.get_by_resource(db, resource_type, resource_id)]


@router.get("/user/{user_id}", summary="Audit trail for one actor")
def get_by_user(user_id: str, db: Session = Depends(get_db)):
    return [audit_out(e) for e in recorder.get_by_actor(db, user_id)]


@router.get("/{audit_id}", summary="Get audit log entry")
def get_audit_log(audit_id: str, db: Session = Depends(get_db)):
    return audit_out(recorder.get(db, parse_uuid(audit_id, "audit_id")))
