"""Module: checklists."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from control_tower.api.v1.routes.deps import get_db, parse_uuid
from control_tower.db.models.checklist_item import ChecklistItem
from control_tower.services import checklists, lookups

router = APIRouter()


def _item_out(item: ChecklistItem) -> dict:
    return {
        "id": str(item.item_id),
        "deployment_id": str(item.deployment_id),
        "label": item.label,
        "sort_order": item.sort_order,
        "is_completed": item.is_completed,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


@router.get("/deployment/{deployment_id}", summary="Checklist items for a deployment")
def list_items(deployment_id: str, db: Session = Depends(get_db)):
    did = parse_uuid(deployment_id, "deployment_id")
    lookups.get_deployment(db, did)
    return [_item_out(item) for item in checklists.list_items(db, did)]


@router.get("/deployment/{deployment_id}/progress", summary="Checklist completion for a deployment")
def get_progress(deployment_id: str, db: Session = Depends(get_db)):
    did = parse_uuid(deployment_id, "deployment_id")
    lookups.get_deployment(db, did)
    return checklists.get_progress(db, did)


@router.put("/{item_id}/toggle", summary="Toggle a checklist item")
def toggle_item(item_id: str, db: Session = Depends(get_db)):
    iid = parse_uuid(item_id, "item_id")
    return _item_out(checklists.toggle_item(db, iid))


@router.put("/deployment/{deployment_id}/complete", summary="Mark every item complete")
def mark_all_complete(deployment_id: str, db: Session = Depends(get_db)):
    did = parse_uuid(deployment_id, "deployment_id")
    lookups.get_deployment(db, did)
    return [_item_out(item) for item in checklists.mark_all_complete(db, did)]


@router.put("/deployment/{deployment_id}/reset", summary="Mark every item incomplete")
def reset_all(deployment_id: str, db: Session = Depends(get_db)):
    did = parse_uuid(deployment_id, "deployment_id")
    lookups.get_deployment(db, did)
    return [_item_out(item) for item in checklists.reset_all(db, did)]
