"""Module: deployments.

Deployment lifecycle: creation, field edits and the status machine.

Any status can move to any other status. What is enforced is the pairing
between ``status`` and ``status_history``: both are written by the same
versioned UPDATE, so the last history entry's ``toStatus`` always equals the
current status. A concurrent writer makes the UPDATE match zero rows
(``StaleDataError``); the read-modify-write is then retried from a fresh read.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from typing import Any, Callable, Mapping

from sqlalchemy import String, cast, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from control_tower.core.config import settings
from control_tower.core.errors import ConcurrentUpdateError, ValidationFailure
from control_tower.core.events import DEPLOYMENT_CREATED, DEPLOYMENT_STATUS_CHANGED, EventBus, event_bus
from control_tower.db.base import utcnow
from control_tower.db.models.audit_log import AuditAction
from control_tower.db.models.deployment import (
    Deployment,
    DeploymentStatus,
    DeploymentType,
    Environment,
    SubServiceStatus,
)
from control_tower.db.models.product import Product
from control_tower.services import crud, lookups
from control_tower.services.audit_recorder import ActorContext
from control_tower.services.checklists import (
    TemplateProvider,
    active_template_labels,
    instantiate_checklist,
    resolve_checklist_labels,
)
from control_tower.services.interceptor import MutationInterceptor, MutationKind, ReadCapture

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "deployment"

SUB_SERVICE_FIELDS = (
    "equipment_sa_status",
    "equipment_se_status",
    "mapping_status",
    "construction_status",
)

EDITABLE_FIELDS = {
    "deployment_type",
    "environment",
    "owner",
    "next_delivery_date",
    "feature_name",
    "release_items",
    "notes",
    "notification_emails",
    "client_ids",
    *SUB_SERVICE_FIELDS,
}


def coerce_status(value: DeploymentStatus | str) -> DeploymentStatus:
    try:
        return DeploymentStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in DeploymentStatus)
        raise ValidationFailure(f"Invalid deployment status '{value}' (expected one of: {allowed})")


def _coerce_enum(enum_cls, field: str, value: Any) -> str | None:
    if value is None:
        return None
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailure(f"Invalid {field} '{value}' (expected one of: {allowed})")


def _clean_values(values: Mapping[str, Any], product_is_adapter: bool) -> dict[str, Any]:
    unknown = set(values) - EDITABLE_FIELDS
    if unknown:
        raise ValidationFailure(f"Fields cannot be set directly: {', '.join(sorted(unknown))}")

    cleaned = dict(values)
    if "deployment_type" in cleaned:
        cleaned["deployment_type"] = _coerce_enum(DeploymentType, "deployment_type", cleaned["deployment_type"])
        if cleaned["deployment_type"] is None:
            raise ValidationFailure("deployment_type cannot be empty")
    if "environment" in cleaned:
        cleaned["environment"] = _coerce_enum(Environment, "environment", cleaned["environment"])

    for field in SUB_SERVICE_FIELDS:
        if field not in cleaned:
            continue
        value = _coerce_enum(SubServiceStatus, field, cleaned[field]) or SubServiceStatus.NOT_STARTED.value
        if not product_is_adapter and value != SubServiceStatus.NOT_STARTED.value:
            raise ValidationFailure(f"{field} applies only to adapter products")
        cleaned[field] = value

    if "notification_emails" in cleaned:
        cleaned["notification_emails"] = [email.strip() for email in cleaned["notification_emails"] or [] if email.strip()]
    return cleaned


def _apply_clients(db: Session, deployment: Deployment, client_ids: list[uuid.UUID]) -> None:
    if not client_ids:
        raise ValidationFailure("At least one client is required")
    clients = lookups.get_clients(db, client_ids)
    deployment.client_ids = [str(client.client_id) for client in clients]
    deployment.client_names = [client.name for client in clients]
    deployment.client_id = clients[0].client_id
    deployment.client_name = clients[0].name


def _commit_versioned(
    db: Session,
    deployment_id: uuid.UUID,
    apply: Callable[[Deployment], None],
    retries: int | None = None,
    on_read: Callable[[Deployment], None] | None = None,
) -> Deployment:
    """Read, apply and commit with the version guard, retrying on conflicts.

    *on_read* sees each freshly loaded row before *apply* changes it.
    """
    attempts = max(1, retries if retries is not None else settings.status_update_retries)
    for attempt in range(1, attempts + 1):
        deployment = lookups.get_deployment(db, deployment_id)
        if on_read is not None:
            on_read(deployment)
        try:
            apply(deployment)
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.info("Concurrent update on deployment %s (attempt %d/%d)", deployment_id, attempt, attempts)
            continue
        except Exception:
            db.rollback()
            raise
        return deployment
    raise ConcurrentUpdateError(f"Deployment {deployment_id} was modified concurrently; retry the request")


def deployment_to_dict(deployment: Deployment) -> dict[str, Any]:
    return {
        "id": str(deployment.deployment_id),
        "product_id": str(deployment.product_id),
        "product_name": deployment.product_name,
        "client_id": str(deployment.client_id),
        "client_name": deployment.client_name,
        "client_ids": list(deployment.client_ids or []),
        "client_names": list(deployment.client_names or []),
        "status": deployment.status,
        "deployment_type": deployment.deployment_type,
        "environment": deployment.environment,
        "owner": deployment.owner,
        "next_delivery_date": deployment.next_delivery_date.isoformat() if deployment.next_delivery_date else None,
        "feature_name": deployment.feature_name,
        "release_items": deployment.release_items,
        "notes": deployment.notes,
        "equipment_sa_status": deployment.equipment_sa_status,
        "equipment_se_status": deployment.equipment_se_status,
        "mapping_status": deployment.mapping_status,
        "construction_status": deployment.construction_status,
        "status_history": list(deployment.status_history or []),
        "blocked_comments": list(deployment.blocked_comments or []),
        "notification_emails": list(deployment.notification_emails or []),
        "created_at": deployment.created_at.isoformat() if deployment.created_at else None,
        "updated_at": deployment.updated_at.isoformat() if deployment.updated_at else None,
        "deleted_at": deployment.deleted_at.isoformat() if deployment.deleted_at else None,
    }


def _product_summary(db: Session, product_id: uuid.UUID) -> dict[str, Any] | None:
    product = db.get(Product, product_id)
    if product is None:
        return None
    return {
        "id": str(product.product_id),
        "name": product.name,
        "notification_emails": list(product.notification_emails or []),
    }


def create_deployment(
    db: Session,
    *,
    product_id: uuid.UUID,
    client_ids: list[uuid.UUID],
    values: Mapping[str, Any] | None = None,
    actor: ActorContext | None = None,
    interceptor: MutationInterceptor | None = None,
    bus: EventBus | None = None,
    template_provider: TemplateProvider = active_template_labels,
) -> Deployment:
    """Create a deployment in ``Not Started`` with its checklist copied in.

    The checklist labels are resolved before anything is written, so a
    template lookup failure only ever downgrades to the default list.
    """
    interceptor = interceptor or MutationInterceptor()
    bus = bus or event_bus

    product = lookups.get_product(db, product_id)
    values = _clean_values(dict(values or {}), product.is_adapter)
    values.pop("client_ids", None)
    labels = resolve_checklist_labels(db, template_provider)

    def _create() -> Deployment:
        deployment = Deployment(
            product_id=product.product_id,
            product_name=product.name,
            status=DeploymentStatus.NOT_STARTED.value,
            status_history=[],
            blocked_comments=[],
            **values,
        )
        _apply_clients(db, deployment, client_ids)
        db.add(deployment)
        db.flush()
        instantiate_checklist(db, deployment.deployment_id, labels)
        db.commit()
        db.refresh(deployment)
        return deployment

    deployment = interceptor.intercept(db, RESOURCE_TYPE, MutationKind.CREATE, _create, actor=actor)
    logger.info("Created deployment %s with %d checklist items", deployment.deployment_id, len(labels))
    bus.publish(
        DEPLOYMENT_CREATED,
        {"deployment": deployment_to_dict(deployment), "product": _product_summary(db, deployment.product_id)},
    )
    return deployment


def update_deployment(
    db: Session,
    deployment_id: uuid.UUID,
    values: Mapping[str, Any],
    *,
    actor: ActorContext | None = None,
    interceptor: MutationInterceptor | None = None,
) -> Deployment:
    """Edit plain fields. Status goes through ``transition_status`` instead."""
    interceptor = interceptor or MutationInterceptor()
    deployment = lookups.get_deployment(db, deployment_id)
    product = lookups.get_product(db, deployment.product_id)
    cleaned = _clean_values(values, product.is_adapter)
    client_ids = cleaned.pop("client_ids", None)

    def _apply(target: Deployment) -> None:
        for name, value in cleaned.items():
            setattr(target, name, value)
        if client_ids is not None:
            _apply_clients(db, target, client_ids)

    reads = ReadCapture()
    return interceptor.intercept(
        db,
        RESOURCE_TYPE,
        MutationKind.UPDATE,
        lambda: _commit_versioned(db, deployment_id, _apply, retries=1, on_read=reads.capture),
        entity_id=deployment_id,
        actor=actor,
        reads=reads,
    )


def transition_status(
    db: Session,
    deployment_id: uuid.UUID,
    new_status: DeploymentStatus | str,
    *,
    author: str | None = None,
    note: str | None = None,
    actor: ActorContext | None = None,
    interceptor: MutationInterceptor | None = None,
    bus: EventBus | None = None,
    retries: int | None = None,
) -> Deployment:
    """Move a deployment to *new_status* and append the matching history entry.

    Emits ``deployment.statusChanged`` after the commit.
    """
    target = coerce_status(new_status)
    author = author or settings.default_author
    interceptor = interceptor or MutationInterceptor()
    bus = bus or event_bus
    transition: dict[str, str] = {}

    def _apply(deployment: Deployment) -> None:
        from_status = deployment.status
        entry = {
            "id": str(uuid.uuid4()),
            "type": "status_change",
            "fromStatus": from_status,
            "toStatus": target.value,
            "author": author,
            "timestamp": utcnow().isoformat(),
            "text": note or f"Status changed from {from_status} to {target.value}",
        }
        deployment.status = target.value
        deployment.status_history = [*(deployment.status_history or []), entry]
        transition["from"] = from_status

    reads = ReadCapture()
    deployment = interceptor.intercept(
        db,
        RESOURCE_TYPE,
        MutationKind.UPDATE,
        lambda: _commit_versioned(db, deployment_id, _apply, retries=retries, on_read=reads.capture),
        entity_id=deployment_id,
        actor=actor,
        action=AuditAction.STATUS_CHANGE.value,
        reads=reads,
    )

    logger.info(
        "Deployment %s status %s -> %s by %s",
        deployment_id, transition["from"], target.value, author,
    )
    bus.publish(
        DEPLOYMENT_STATUS_CHANGED,
        {
            "deployment": deployment_to_dict(deployment),
            "product": _product_summary(db, deployment.product_id),
            "fromStatus": transition["from"],
            "toStatus": target.value,
            "author": author,
        },
    )
    return deployment


def add_blocked_comment(
    db: Session,
    deployment_id: uuid.UUID,
    text: str,
    author: str | None = None,
    parent_id: str | None = None,
) -> Deployment:
    """Append a comment to the blocked-reason thread; replies set *parent_id*."""
    text = (text or "").strip()
    if not text:
        raise ValidationFailure("Comment text is required")
    author = author or settings.default_author

    def _apply(deployment: Deployment) -> None:
        thread = list(deployment.blocked_comments or [])
        if parent_id and not any(comment.get("id") == parent_id for comment in thread):
            raise ValidationFailure(f"Parent comment not found: {parent_id}")
        thread.append(
            {
                "id": str(uuid.uuid4()),
                "text": text,
                "author": author,
                "timestamp": utcnow().isoformat(),
                "parentId": parent_id or None,
            }
        )
        deployment.blocked_comments = thread

    return _commit_versioned(db, deployment_id, _apply)


def delete_deployment(
    db: Session,
    deployment_id: uuid.UUID,
    *,
    actor: ActorContext | None = None,
    interceptor: MutationInterceptor | None = None,
) -> Deployment:
    interceptor = interceptor or MutationInterceptor()
    return interceptor.intercept(
        db,
        RESOURCE_TYPE,
        MutationKind.DELETE,
        lambda: crud.soft_delete_entity(db, Deployment, deployment_id),
        entity_id=deployment_id,
        actor=actor,
    )


def restore_deployment(
    db: Session,
    deployment_id: uuid.UUID,
    *,
    actor: ActorContext | None = None,
    interceptor: MutationInterceptor | None = None,
) -> Deployment:
    interceptor = interceptor or MutationInterceptor()
    return interceptor.intercept(
        db,
        RESOURCE_TYPE,
        MutationKind.UPDATE,
        lambda: crud.restore_entity(db, Deployment, deployment_id),
        entity_id=deployment_id,
        actor=actor,
        action=AuditAction.RESTORE.value,
    )


def _live_deployments():
    return select(Deployment).where(Deployment.deleted_at.is_(None))


def _has_client(client_id: uuid.UUID):
    # client_ids is a JSON list of UUID strings; match the quoted element.
    return cast(Deployment.client_ids, String).contains(f'"{client_id}"', autoescape=True)


def list_deployments(
    db: Session,
    *,
    status: str | None = None,
    product_id: uuid.UUID | None = None,
    client_id: uuid.UUID | None = None,
) -> list[Deployment]:
    stmt = _live_deployments()
    if status:
        stmt = stmt.where(Deployment.status == coerce_status(status).value)
    if product_id:
        stmt = stmt.where(Deployment.product_id == product_id)
    if client_id:
        stmt = stmt.where(_has_client(client_id))
    stmt = stmt.order_by(Deployment.created_at.desc())
    return list(db.execute(stmt).scalars().all())


def get_overdue(db: Session, today: date | None = None) -> list[Deployment]:
    today = today or date.today()
    stmt = (
        _live_deployments()
        .where(
            Deployment.next_delivery_date < today,
            Deployment.status != DeploymentStatus.RELEASED.value,
        )
        .order_by(Deployment.next_delivery_date)
    )
    return list(db.execute(stmt).scalars().all())


def get_upcoming(db: Session, days: int = 7, today: date | None = None) -> list[Deployment]:
    today = today or date.today()
    stmt = (
        _live_deployments()
        .where(
            Deployment.next_delivery_date.between(today, today + timedelta(days=days)),
            Deployment.status != DeploymentStatus.RELEASED.value,
        )
        .order_by(Deployment.next_delivery_date)
    )
    return list(db.execute(stmt).scalars().all())
