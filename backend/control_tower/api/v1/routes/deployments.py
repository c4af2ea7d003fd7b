"""Module: deployments."""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from control_tower.api.v1.routes.deps import get_actor, get_db, get_event_bus, get_interceptor, parse_uuid
from control_tower.core.events import EventBus
from control_tower.services import deployments, lookups
from control_tower.services.audit_recorder import ActorContext
from control_tower.services.interceptor import MutationInterceptor

router = APIRouter()


class DeploymentCreatePayload(BaseModel):
    product_id: uuid.UUID
    client_ids: list[uuid.UUID] = Field(min_length=1)
    deployment_type: str | None = None
    environment: str | None = None
    owner: str | None = None
    next_delivery_date: date | None = None
    feature_name: str | None = None
    release_items: str | None = None
    notes: str | None = None
    equipment_sa_status: str | None = None
    equipment_se_status: str | None = None
    mapping_status: str | None = None
    construction_status: str | None = None
    notification_emails: list[str] = []


class DeploymentUpdatePayload(BaseModel):
    client_ids: list[uuid.UUID] | None = None
    deployment_type: str | None = None
    environment: str | None = None
    owner: str | None = None
    next_delivery_date: date | None = None
    feature_name: str | None = None
    release_items: str | None = None
    notes: str | None = None
    equipment_sa_status: str | None = None
    equipment_se_status: str | None = None
    mapping_status: str | None = None
    construction_status: str | None = None
    notification_emails: list[str] | None = None


class StatusChangePayload(BaseModel):
    status: str
    author: str | None = None
    note: str | None = None


class BlockedCommentPayload(BaseModel):
    text: str = Field(min_length=1)
    author: str | None = None
    parent_id: str | None = None


@router.get("", summary="List deployments")
def list_deployments(
    status: str | None = Query(default=None),
    product_id: str | None = Query(default=None),
    client_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = deployments.list_deployments(
        db,
        status=status,
        product_id=parse_uuid(product_id, "product_id") if product_id else None,
        client_id=parse_uuid(client_id, "client_id") if client_id else None,
    )
    return [deployments.deployment_to_dict(d) for d in rows]


@router.get("/overdue", summary="Deployments past their delivery date")
def list_overdue(db: Session = Depends(get_db)):
    return [deployments.deployment_to_dict(d) for d in deployments.get_overdue(db)]


@router.get("/upcoming", summary="Deployments due within the next N days")
def list_upcoming(days: int = Query(default=7, ge=0, le=365), db: Session = Depends(get_db)):
    return [deployments.deployment_to_dict(d) for d in deployments.get_upcoming(db, days=days)]


@router.get("/{deployment_id}", summary="Get deployment detail")
def get_deployment(deployment_id: str, db: Session = Depends(get_db)):
    did = parse_uuid(deployment_id, "deployment_id")
    return deployments.deployment_to_dict(lookups.get_deployment(db, did))


@router.post("", status_code=201, summary="Create deployment (seeds its checklist)")
def create_deployment(
    payload: DeploymentCreatePayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
    bus: EventBus = Depends(get_event_bus),
):
    values = payload.model_dump(exclude_none=True, exclude={"product_id", "client_ids"})
    deployment = deployments.create_deployment(
        db,
        product_id=payload.product_id,
        client_ids=payload.client_ids,
        values=values,
        actor=actor,
        interceptor=interceptor,
        bus=bus,
    )
    return deployments.deployment_to_dict(deployment)


@router.put("/{deployment_id}", summary="Update deployment fields")
def update_deployment(
    deployment_id: str,
    payload: DeploymentUpdatePayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    did = parse_uuid(deployment_id, "deployment_id")
    deployment = deployments.update_deployment(
        db, did, payload.model_dump(exclude_unset=True), actor=actor, interceptor=interceptor,
    )
    return deployments.deployment_to_dict(deployment)


@router.put("/{deployment_id}/status", summary="Change deployment status")
def change_status(
    deployment_id: str,
    payload: StatusChangePayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
    bus: EventBus = Depends(get_event_bus),
):
    did = parse_uuid(deployment_id, "deployment_id")
    deployment = deployments.transition_status(
        db,
        did,
        payload.status,
        author=payload.author or actor.display_name,
        note=payload.note,
        actor=actor,
        interceptor=interceptor,
        bus=bus,
    )
    return deployments.deployment_to_dict(deployment)


@router.post("/{deployment_id}/comment", summary="Add a blocked-reason comment")
def add_comment(
    deployment_id: str,
    payload: BlockedCommentPayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    did = parse_uuid(deployment_id, "deployment_id")
    deployment = deployments.add_blocked_comment(
        db, did, payload.text, author=payload.author or actor.display_name, parent_id=payload.parent_id,
    )
    return deployments.deployment_to_dict(deployment)


@router.delete("/{deployment_id}", summary="Soft-delete deployment")
def delete_deployment(
    deployment_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    did = parse_uuid(deployment_id, "deployment_id")
    return deployments.deployment_to_dict(
        deployments.delete_deployment(db, did, actor=actor, interceptor=interceptor)
    )


@router.post("/{deployment_id}/restore", summary="Restore a soft-deleted deployment")
def restore_deployment(
    deployment_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    did = parse_uuid(deployment_id, "deployment_id")
    return deployments.deployment_to_dict(
        deployments.restore_deployment(db, did, actor=actor, interceptor=interceptor)
    )
