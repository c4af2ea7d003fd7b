"""Module: clients."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from control_tower.api.v1.routes.deps import get_actor, get_db, get_interceptor, parse_uuid
from control_tower.db.models.audit_log import AuditAction
from control_tower.db.models.client import Client
from control_tower.services import crud, deployments
from control_tower.services.audit_recorder import ActorContext
from control_tower.services.interceptor import MutationInterceptor, MutationKind

router = APIRouter()


class ClientPayload(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    comments: str | None = None


class ClientUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    comments: str | None = None


def _client_out(client: Client) -> dict:
    return {
        "id": str(client.client_id),
        "name": client.name,
        "comments": client.comments,
        "created_at": client.created_at,
        "updated_at": client.updated_at,
        "deleted_at": client.deleted_at,
    }


def _ensure_unique_name(db: Session, name: str, exclude_id=None) -> None:
    stmt = select(Client.client_id).where(Client.name == name.strip())
    if exclude_id is not None:
        stmt = stmt.where(Client.client_id != exclude_id)
    if db.execute(stmt).first():
        raise HTTPException(status_code=409, detail="Client name already exists")


@router.get("", summary="List clients")
def list_clients(db: Session = Depends(get_db)):
    return [_client_out(c) for c in crud.list_entities(db, Client, order_by=Client.name)]


@router.get("/{client_id}", summary="Get client with its deployments")
def get_client(client_id: str, db: Session = Depends(get_db)):
    cid = parse_uuid(client_id, "client_id")
    out = _client_out(crud.get_entity(db, Client, cid))
    out["deployments"] = [
        deployments.deployment_to_dict(d) for d in deployments.list_deployments(db, client_id=cid)
    ]
    return out


@router.post("", status_code=201, summary="Create client")
def create_client(
    payload: ClientPayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    _ensure_unique_name(db, payload.name)
    values = {"name": payload.name.strip(), "comments": payload.comments}
    try:
        client = interceptor.intercept(
            db, "client", MutationKind.CREATE,
            lambda: crud.create_entity(db, Client, values),
            actor=actor,
        )
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Client name already exists")
    return _client_out(client)


@router.put("/{client_id}", summary="Update client")
def update_client(
    client_id: str,
    payload: ClientUpdatePayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    cid = parse_uuid(client_id, "client_id")
    values = payload.model_dump(exclude_unset=True)
    if values.get("name"):
        values["name"] = values["name"].strip()
        _ensure_unique_name(db, values["name"], exclude_id=cid)
    client = interceptor.intercept(
        db, "client", MutationKind.UPDATE,
        lambda: crud.update_entity(db, Client, cid, values),
        entity_id=cid,
        actor=actor,
    )
    return _client_out(client)


@router.delete("/{client_id}", summary="Soft-delete client")
def delete_client(
    client_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    cid = parse_uuid(client_id, "client_id")
    if deployments.list_deployments(db, client_id=cid):
        raise HTTPException(status_code=409, detail="Client still has active deployments")
    client = interceptor.intercept(
        db, "client", MutationKind.DELETE,
        lambda: crud.soft_delete_entity(db, Client, cid),
        entity_id=cid,
        actor=actor,
    )
    return _client_out(client)


@router.post("/{client_id}/restore", summary="Restore a soft-deleted client")
def restore_client(
    client_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    cid = parse_uuid(client_id, "client_id")
    client = interceptor.intercept(
        db, "client", MutationKind.UPDATE,
        lambda: crud.restore_entity(db, Client, cid),
        entity_id=cid,
        actor=actor,
        action=AuditAction.RESTORE.value,
    )
    return _client_out(client)
