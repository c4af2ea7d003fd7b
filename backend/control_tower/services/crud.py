"""Module: crud.

Plain pass-through persistence for entities without workflow logic. Each
mutation commits before returning so it can run under the interceptor.
"""

from __future__ import annotations

import uuid
from typing import Any, Mapping, TypeVar

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session

from control_tower.core.errors import NotFoundError, ValidationFailure
from control_tower.db.base import utcnow

ModelT = TypeVar("ModelT")

_PROTECTED_FIELDS = {"created_at", "updated_at", "deleted_at", "version_id"}


def _pk_column(model: type):
    return inspect(model).primary_key[0]


def _label(model: type) -> str:
    return model.__name__


def _check_fields(model: type, values: Mapping[str, Any]) -> None:
    columns = set(inspect(model).columns.keys())
    unknown = [name for name in values if name not in columns or name in _PROTECTED_FIELDS]
    if unknown:
        raise ValidationFailure(f"Unknown or read-only fields for {_label(model)}: {', '.join(sorted(unknown))}")


def list_entities(db: Session, model: type[ModelT], *, include_deleted: bool = False, order_by=None) -> list[ModelT]:
    stmt = select(model)
    if not include_deleted and hasattr(model, "deleted_at"):
        stmt = stmt.where(model.deleted_at.is_(None))
    if order_by is not None:
        stmt = stmt.order_by(order_by)
    return list(db.execute(stmt).scalars().all())


def get_entity(db: Session, model: type[ModelT], entity_id: uuid.UUID, *, include_deleted: bool = False) -> ModelT:
    entity = db.get(model, entity_id)
    if entity is None or (not include_deleted and getattr(entity, "deleted_at", None) is not None):
        raise NotFoundError(f"{_label(model)} not found")
    return entity


def create_entity(db: Session, model: type[ModelT], values: Mapping[str, Any]) -> ModelT:
    _check_fields(model, values)
    entity = model(**values)
    db.add(entity)
    db.commit()
    db.refresh(entity)
    return entity


def update_entity(db: Session, model: type[ModelT], entity_id: uuid.UUID, values: Mapping[str, Any]) -> ModelT:
    _check_fields(model, values)
    if _pk_column(model).key in values:
        raise ValidationFailure("Primary key cannot be changed")
    entity = get_entity(db, model, entity_id)
    for name, value in values.items():
        setattr(entity, name, value)
    db.commit()
    db.refresh(entity)
    return entity


# Tombstones the row; it stays restorable and keeps its audit trail.
def soft_delete_entity(db: Session, model: type[ModelT], entity_id: uuid.UUID) -> ModelT:
    entity = get_entity(db, model, entity_id)
    entity.deleted_at = utcnow()
    db.commit()
    db.refresh(entity)
    return entity


def restore_entity(db: Session, model: type[ModelT], entity_id: uuid.UUID) -> ModelT:
    entity = get_entity(db, model, entity_id, include_deleted=True)
    if entity.deleted_at is None:
        raise ValidationFailure(f"{_label(model)} is not deleted")
    entity.deleted_at = None
    db.commit()
    db.refresh(entity)
    return entity
