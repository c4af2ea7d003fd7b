"""Module: approvals.

Release approvals for deployments.

An approval is resolved exactly once. Resolution is a compare-and-set UPDATE
(``... WHERE status = 'pending'``), so of two concurrent reviewers only one
wins and the other gets ``InvalidStateTransitionError``.

Approving also releases the deployment. The approval is committed first; if
the deployment transition then fails, the approval stays approved and the
caller receives ``ApprovalSideEffectError`` describing the gap.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from control_tower.core.errors import (
    ApprovalSideEffectError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailure,
)
from control_tower.core.events import APPROVAL_COMPLETED, EventBus, event_bus
from control_tower.db.base import utcnow
from control_tower.db.models.approval import Approval, ApprovalStatus
from control_tower.db.models.audit_log import AuditAction
from control_tower.db.models.deployment import DeploymentStatus
from control_tower.services import deployments, lookups
from control_tower.services.audit_recorder import ActorContext
from control_tower.services.interceptor import MutationInterceptor, MutationKind

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "approval"


def _iso(value):
    return value.isoformat() if value else None


def approval_to_dict(approval: Approval) -> dict[str, Any]:
    return {
        "id": str(approval.approval_id),
        "deployment_id": str(approval.deployment_id),
        "deployment_name": approval.deployment_name,
        "product_id": str(approval.product_id) if approval.product_id else None,
        "product_name": approval.product_name,
        "client_id": str(approval.client_id) if approval.client_id else None,
        "client_name": approval.client_name,
        "requested_by": approval.requested_by,
        "requested_by_name": approval.requested_by_name,
        "requested_at": _iso(approval.requested_at),
        "status": approval.status,
        "reviewed_by": approval.reviewed_by,
        "reviewed_by_name": approval.reviewed_by_name,
        "reviewed_at": _iso(approval.reviewed_at),
        "comments": approval.comments,
        "rejection_reason": approval.rejection_reason,
        "created_at": _iso(approval.created_at),
        "updated_at": _iso(approval.updated_at),
    }


def get_approval(db: Session, approval_id: uuid.UUID) -> Approval:
    approval = db.get(Approval, approval_id)
    if not approval:
        raise NotFoundError("Approval not found")
    return approval


def list_approvals(db: Session, status: str | None = None) -> list[Approval]:
    stmt = select(Approval)
    if status:
        try:
            stmt = stmt.where(Approval.status == ApprovalStatus(status).value)
        except ValueError:
            raise ValidationFailure(f"Invalid approval status '{status}'")
    return list(db.execute(stmt.order_by(Approval.requested_at.desc())).scalars().all())


def list_pending(db: Session) -> list[Approval]:
    return list_approvals(db, ApprovalStatus.PENDING.value)


def list_by_deployment(db: Session, deployment_id: uuid.UUID) -> list[Approval]:
    stmt = (
        select(Approval)
        .where(Approval.deployment_id == deployment_id)
        .order_by(Approval.requested_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def request_approval(
    db: Session,
    deployment_id: uuid.UUID,
    requester: ActorContext,
    *,
    interceptor: MutationInterceptor | None = None,
) -> Approval:
    if not requester.user_id:
        raise ValidationFailure("Requester id is required")
    interceptor = interceptor or MutationInterceptor()
    deployment = lookups.get_deployment(db, deployment_id)

    def _create() -> Approval:
        approval = Approval(
            deployment_id=deployment.deployment_id,
            deployment_name=f"{deployment.product_name} - {deployment.client_name}",
            product_id=deployment.product_id,
            product_name=deployment.product_name,
            client_id=deployment.client_id,
            client_name=deployment.client_name,
            requested_by=requester.user_id,
            requested_by_name=requester.display_name,
            requested_at=utcnow(),
            status=ApprovalStatus.PENDING.value,
        )
        db.add(approval)
        db.commit()
        db.refresh(approval)
        return approval

    approval = interceptor.intercept(db, RESOURCE_TYPE, MutationKind.CREATE, _create, actor=requester)
    logger.info("Approval %s requested for deployment %s", approval.approval_id, deployment_id)
    return approval


def _resolve(
    db: Session,
    approval_id: uuid.UUID,
    outcome: ApprovalStatus,
    reviewer: ActorContext,
    *,
    action: AuditAction,
    interceptor: MutationInterceptor,
    comments: str | None = None,
    rejection_reason: str | None = None,
) -> Approval:
    def _apply() -> Approval:
        now = utcnow()
        result = db.execute(
            update(Approval)
            .where(
                Approval.approval_id == approval_id,
                Approval.status == ApprovalStatus.PENDING.value,
            )
            .values(
                status=outcome.value,
                reviewed_by=reviewer.user_id,
                reviewed_by_name=reviewer.display_name,
                reviewed_at=now,
                comments=comments,
                rejection_reason=rejection_reason,
                updated_at=now,
            )
        )
        if result.rowcount == 0:
            db.rollback()
            get_approval(db, approval_id)
            raise InvalidStateTransitionError("Approval already processed")
        db.commit()
        approval = get_approval(db, approval_id)
        db.refresh(approval)
        return approval

    return interceptor.intercept(
        db,
        RESOURCE_TYPE,
        MutationKind.UPDATE,
        _apply,
        entity_id=approval_id,
        actor=reviewer,
        action=action.value,
    )


def approve(
    db: Session,
    approval_id: uuid.UUID,
    reviewer: ActorContext,
    comments: str | None = None,
    *,
    interceptor: MutationInterceptor | None = None,
    bus: EventBus | None = None,
) -> Approval:
    interceptor = interceptor or MutationInterceptor()
    bus = bus or event_bus

    approval = _resolve(
        db,
        approval_id,
        ApprovalStatus.APPROVED,
        reviewer,
        action=AuditAction.APPROVE,
        interceptor=interceptor,
        comments=comments,
    )

    try:
        deployments.transition_status(
            db,
            approval.deployment_id,
            DeploymentStatus.RELEASED,
            author=reviewer.display_name,
            note=f"Released by approval {approval.approval_id}",
            actor=reviewer,
            interceptor=interceptor,
            bus=bus,
        )
    except Exception as exc:
        logger.error(
            "Approval %s is approved but deployment %s was not released: %s",
            approval.approval_id, approval.deployment_id, exc,
        )
        raise ApprovalSideEffectError(
            f"Approval was recorded but the deployment could not be released: {exc}",
            approval_id=str(approval.approval_id),
            deployment_id=str(approval.deployment_id),
        ) from exc

    bus.publish(APPROVAL_COMPLETED, {"approval": approval_to_dict(approval), "result": ApprovalStatus.APPROVED.value})
    return approval


def reject(
    db: Session,
    approval_id: uuid.UUID,
    reviewer: ActorContext,
    reason: str,
    *,
    interceptor: MutationInterceptor | None = None,
    bus: EventBus | None = None,
) -> Approval:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailure("A rejection reason is required")
    interceptor = interceptor or MutationInterceptor()
    bus = bus or event_bus

    approval = _resolve(
        db,
        approval_id,
        ApprovalStatus.REJECTED,
        reviewer,
        action=AuditAction.REJECT,
        interceptor=interceptor,
        rejection_reason=reason,
    )
    bus.publish(APPROVAL_COMPLETED, {"approval": approval_to_dict(approval), "result": ApprovalStatus.REJECTED.value})
    return approval


def cancel(
    db: Session,
    approval_id: uuid.UUID,
    actor: ActorContext,
    *,
    interceptor: MutationInterceptor | None = None,
    bus: EventBus | None = None,
) -> Approval:
    interceptor = interceptor or MutationInterceptor()
    bus = bus or event_bus

    approval = _resolve(
        db,
        approval_id,
        ApprovalStatus.CANCELLED,
        actor,
        action=AuditAction.CANCEL,
        interceptor=interceptor,
    )
    bus.publish(APPROVAL_COMPLETED, {"approval": approval_to_dict(approval), "result": ApprovalStatus.CANCELLED.value})
    return approval
