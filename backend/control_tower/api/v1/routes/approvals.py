"""Module: approvals."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from control_tower.api.v1.routes.deps import get_db, get_event_bus, get_interceptor, parse_uuid, require_actor
from control_tower.core.events import EventBus
from control_tower.services import approvals
from control_tower.services.audit_recorder import ActorContext
from control_tower.services.interceptor import MutationInterceptor

router = APIRouter()


class ApprovalRequestPayload(BaseModel):
    deployment_id: uuid.UUID


class ApprovePayload(BaseModel):
    comments: str | None = None


class RejectPayload(BaseModel):
    rejection_reason: str = Field(min_length=1)


@router.get("", summary="List approvals")
def list_approvals(status: str | None = Query(default=None), db: Session = Depends(get_db)):
    return [approvals.approval_to_dict(a) for a in approvals.list_approvals(db, status)]


@router.get("/pending", summary="Approvals awaiting review")
def list_pending(db: Session = Depends(get_db)):
    return [approvals.approval_to_dict(a) for a in approvals.list_pending(db)]


@router.get("/deployment/{deployment_id}", summary="Approvals for a deployment")
def list_for_deployment(deployment_id: str, db: Session = Depends(get_db)):
    did = parse_uuid(deployment_id, "deployment_id")
    return [approvals.approval_to_dict(a) for a in approvals.list_by_deployment(db, did)]


@router.get("/{approval_id}", summary="Get approval")
def get_approval(approval_id: str, db: Session = Depends(get_db)):
    aid = parse_uuid(approval_id, "approval_id")
    return approvals.approval_to_dict(approvals.get_approval(db, aid))


@router.post("/request", status_code=201, summary="Request release approval for a deployment")
def request_approval(
    payload: ApprovalRequestPayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    approval = approvals.request_approval(db, payload.deployment_id, actor, interceptor=interceptor)
    return approvals.approval_to_dict(approval)


@router.post("/{approval_id}/approve", summary="Approve and release the deployment")
def approve(
    approval_id: str,
    payload: ApprovePayload | None = None,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
    bus: EventBus = Depends(get_event_bus),
):
    aid = parse_uuid(approval_id, "approval_id")
    comments = payload.comments if payload else None
    approval = approvals.approve(db, aid, actor, comments, interceptor=interceptor, bus=bus)
    return approvals.approval_to_dict(approval)


@router.post("/{approval_id}/reject", summary="Reject an approval request")
def reject(
    approval_id: str,
    payload: RejectPayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
    bus: EventBus = Depends(get_event_bus),
):
    aid = parse_uuid(approval_id, "approval_id")
    approval = approvals.reject(db, aid, actor, payload.rejection_reason, interceptor=interceptor, bus=bus)
    return approvals.approval_to_dict(approval)


@router.post("/{approval_id}/cancel", summary="Withdraw a pending approval request")
def cancel(
    approval_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
    bus: EventBus = Depends(get_event_bus),
):
    aid = parse_uuid(approval_id, "approval_id")
    approval = approvals.cancel(db, aid, actor, interceptor=interceptor, bus=bus)
    return approvals.approval_to_dict(approval)
