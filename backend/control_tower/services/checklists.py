"""Module: checklists.

Checklist templates and per-deployment checklist items.

New deployments get a copy of the active template labels. The copy is plain
text on each ``ChecklistItem``; nothing links an item back to its template.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from control_tower.core.errors import NotFoundError, ValidationFailure
from control_tower.db.models.checklist_item import ChecklistItem
from control_tower.db.models.checklist_template import ChecklistTemplate

logger = logging.getLogger(__name__)

# Used when no active template exists or the template lookup fails.
DEFAULT_CHECKLIST: tuple[tuple[str, str], ...] = (
    ("requirements", "Requirements Gathering"),
    ("design", "Design & Architecture"),
    ("development", "Development"),
    ("testing", "Testing"),
    ("documentation", "Documentation"),
    ("training", "Training"),
    ("deployment", "Deployment"),
    ("validation", "Validation"),
    ("handover", "Handover"),
)

TemplateProvider = Callable[[Session], list[str]]


def get_active_templates(db: Session) -> list[ChecklistTemplate]:
    stmt = (
        select(ChecklistTemplate)
        .where(ChecklistTemplate.is_active.is_(True), ChecklistTemplate.deleted_at.is_(None))
        .order_by(ChecklistTemplate.sort_order, ChecklistTemplate.created_at)
    )
    return list(db.execute(stmt).scalars().all())


def active_template_labels(db: Session) -> list[str]:
    return [template.label for template in get_active_templates(db)]


def resolve_checklist_labels(db: Session, provider: TemplateProvider = active_template_labels) -> list[str]:
    """Labels for a new checklist: the active set, or the defaults.

    Never raises; a failing provider is logged and the defaults are used.
    """
    try:
        labels = provider(db)
    except Exception:
        logger.warning("Checklist template lookup failed; using default checklist", exc_info=True)
        db.rollback()
        labels = []
    if not labels:
        return [label for _, label in DEFAULT_CHECKLIST]
    return list(labels)


def instantiate_checklist(db: Session, deployment_id: uuid.UUID, labels: Iterable[str]) -> list[ChecklistItem]:
    """Stage one incomplete item per label; the caller commits."""
    items = [
        ChecklistItem(deployment_id=deployment_id, label=label, sort_order=index, is_completed=False)
        for index, label in enumerate(labels, start=1)
    ]
    db.add_all(items)
    return items


def list_items(db: Session, deployment_id: uuid.UUID) -> list[ChecklistItem]:
    stmt = (
        select(ChecklistItem)
        .where(ChecklistItem.deployment_id == deployment_id)
        .order_by(ChecklistItem.sort_order, ChecklistItem.created_at)
    )
    return list(db.execute(stmt).scalars().all())


def toggle_item(db: Session, item_id: uuid.UUID) -> ChecklistItem:
    item = db.get(ChecklistItem, item_id)
    if not item:
        raise NotFoundError("Checklist item not found")
    # Single UPDATE so two concurrent toggles cannot both read the same value.
    db.execute(
        update(ChecklistItem)
        .where(ChecklistItem.item_id == item_id)
        .values(is_completed=~ChecklistItem.is_completed)
    )
    db.commit()
    db.refresh(item)
    return item


def _set_all(db: Session, deployment_id: uuid.UUID, completed: bool) -> list[ChecklistItem]:
    db.execute(
        update(ChecklistItem)
        .where(ChecklistItem.deployment_id == deployment_id)
        .values(is_completed=completed)
    )
    db.commit()
    db.expire_all()
    return list_items(db, deployment_id)


def mark_all_complete(db: Session, deployment_id: uuid.UUID) -> list[ChecklistItem]:
    return _set_all(db, deployment_id, True)


def reset_all(db: Session, deployment_id: uuid.UUID) -> list[ChecklistItem]:
    return _set_all(db, deployment_id, False)


def get_progress(db: Session, deployment_id: uuid.UUID) -> dict[str, int]:
    items = list_items(db, deployment_id)
    total = len(items)
    completed = sum(1 for item in items if item.is_completed)
    return {
        "total": total,
        "completed": completed,
        "percentage": round(completed / total * 100) if total else 0,
    }


def seed_default_templates(db: Session) -> dict[str, object]:
    existing = db.execute(select(ChecklistTemplate.template_id)).scalars().all()
    if existing:
        return {"message": "Checklist templates already exist", "count": len(existing)}

    for sort_order, (key, label) in enumerate(DEFAULT_CHECKLIST, start=1):
        db.add(ChecklistTemplate(key=key, label=label, sort_order=sort_order, is_active=True))
    db.commit()
    logger.info("Seeded %d default checklist templates", len(DEFAULT_CHECKLIST))
    return {"message": "Default checklist templates created", "count": len(DEFAULT_CHECKLIST)}


def reorder_templates(db: Session, orders: Iterable[tuple[uuid.UUID, int]]) -> list[ChecklistTemplate]:
    for template_id, sort_order in orders:
        template = db.get(ChecklistTemplate, template_id)
        if template is None or template.deleted_at is not None:
            db.rollback()
            raise NotFoundError(f"Checklist template not found: {template_id}")
        if sort_order < 0:
            db.rollback()
            raise ValidationFailure("sort_order must be >= 0")
        template.sort_order = sort_order
    db.commit()
    stmt = (
        select(ChecklistTemplate)
        .where(ChecklistTemplate.deleted_at.is_(None))
        .order_by(ChecklistTemplate.sort_order, ChecklistTemplate.created_at)
    )
    return list(db.execute(stmt).scalars().all())
