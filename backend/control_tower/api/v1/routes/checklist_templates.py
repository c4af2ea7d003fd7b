"""Module: checklist_templates."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from control_tower.api.v1.routes.deps import get_actor, get_db, get_interceptor, parse_uuid
from control_tower.db.models.checklist_template import ChecklistTemplate
from control_tower.services import checklists, crud
from control_tower.services.audit_recorder import ActorContext
from control_tower.services.interceptor import MutationInterceptor, MutationKind

router = APIRouter()


class TemplatePayload(BaseModel):
    key: str = Field(min_length=1, max_length=50)
    label: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)
    sort_order: int = 0
    is_active: bool = True


class TemplateUpdatePayload(BaseModel):
    label: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)
    sort_order: int | None = None
    is_active: bool | None = None


class ReorderEntry(BaseModel):
    id: str
    sort_order: int


class ReorderPayload(BaseModel):
    items: list[ReorderEntry]


def _template_out(template: ChecklistTemplate) -> dict:
    return {
        "id": str(template.template_id),
        "key": template.key,
        "label": template.label,
        "description": template.description,
        "sort_order": template.sort_order,
        "is_active": template.is_active,
        "created_at": template.created_at,
        "updated_at": template.updated_at,
    }


@router.get("", summary="List checklist templates")
def list_templates(db: Session = Depends(get_db)):
    rows = crud.list_entities(db, ChecklistTemplate, order_by=ChecklistTemplate.sort_order)
    return [_template_out(t) for t in rows]


@router.get("/active", summary="Active templates in checklist order")
def list_active(db: Session = Depends(get_db)):
    return [_template_out(t) for t in checklists.get_active_templates(db)]


@router.post("/seed", summary="Insert the default template set if none exist")
def seed_defaults(db: Session = Depends(get_db)):
    return checklists.seed_default_templates(db)


@router.post("/reorder", summary="Reorder checklist templates")
def reorder(payload: ReorderPayload, db: Session = Depends(get_db)):
    orders = [(parse_uuid(entry.id, "id"), entry.sort_order) for entry in payload.items]
    return [_template_out(t) for t in checklists.reorder_templates(db, orders)]


@router.get("/{template_id}", summary="Get checklist template")
def get_template(template_id: str, db: Session = Depends(get_db)):
    tid = parse_uuid(template_id, "template_id")
    return _template_out(crud.get_entity(db, ChecklistTemplate, tid))


@router.post("", status_code=201, summary="Create checklist template")
def create_template(
    payload: TemplatePayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    values = payload.model_dump()
    template = interceptor.intercept(
        db, "checklist_template", MutationKind.CREATE,
        lambda: crud.create_entity(db, ChecklistTemplate, values),
        actor=actor,
    )
    return _template_out(template)


@router.put("/{template_id}", summary="Update checklist template")
def update_template(
    template_id: str,
    payload: TemplateUpdatePayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    tid = parse_uuid(template_id, "template_id")
    values = payload.model_dump(exclude_unset=True)
    template = interceptor.intercept(
        db, "checklist_template", MutationKind.UPDATE,
        lambda: crud.update_entity(db, ChecklistTemplate, tid, values),
        entity_id=tid,
        actor=actor,
    )
    return _template_out(template)


@router.delete("/{template_id}", summary="Delete checklist template")
def delete_template(
    template_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    tid = parse_uuid(template_id, "template_id")
    template = interceptor.intercept(
        db, "checklist_template", MutationKind.DELETE,
        lambda: crud.soft_delete_entity(db, ChecklistTemplate, tid),
        entity_id=tid,
        actor=actor,
    )
    return _template_out(template)
