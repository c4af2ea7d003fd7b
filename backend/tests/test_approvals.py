import uuid

import pytest

from control_tower.core.errors import (
    ApprovalSideEffectError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailure,
)
from control_tower.core.events import APPROVAL_COMPLETED
from control_tower.db.models.audit_log import AuditLog
from control_tower.services import approvals, checklists, deployments, lookups
from control_tower.services.audit_recorder import ActorContext


@pytest.fixture
def deployment(db, product, client_row, bus):
    return deployments.create_deployment(
        db, product_id=product.product_id, client_ids=[client_row.client_id], bus=bus
    )


@pytest.fixture
def pending(db, deployment, actor):
    return approvals.request_approval(db, deployment.deployment_id, actor)


def test_release_walkthrough(db, product, client_row, bus, actor, reviewer):
    deployment = deployments.create_deployment(
        db, product_id=product.product_id, client_ids=[client_row.client_id], bus=bus
    )
    assert len(checklists.list_items(db, deployment.deployment_id)) == 9

    blocked = deployments.transition_status(
        db, deployment.deployment_id, "Blocked", author="Alice", note="waiting on vendor", bus=bus
    )
    assert len(blocked.status_history) == 1

    approval = approvals.request_approval(db, deployment.deployment_id, actor)
    assert approval.status == "pending"
    assert approval.deployment_name == "P1 - C1"
    assert approval.requested_by == "u-alice"

    approved = approvals.approve(db, approval.approval_id, reviewer, "ship it", bus=bus)

    assert approved.status == "approved"
    assert approved.reviewed_by == "u-bob"
    assert approved.reviewed_by_name == "Bob"
    assert approved.reviewed_at is not None
    assert approved.comments == "ship it"

    released = lookups.get_deployment(db, deployment.deployment_id)
    assert released.status == "Released"
    assert len(released.status_history) == 2
    last = released.status_history[-1]
    assert (last["fromStatus"], last["toStatus"], last["author"]) == ("Blocked", "Released", "Bob")


def test_approve_publishes_completion(db, pending, reviewer, bus, events):
    approvals.approve(db, pending.approval_id, reviewer, bus=bus)

    completed = [payload for name, payload in events if name == APPROVAL_COMPLETED]
    assert len(completed) == 1
    assert completed[0]["result"] == "approved"
    assert completed[0]["approval"]["id"] == str(pending.approval_id)


def test_second_resolution_is_rejected_and_keeps_first(db, pending, reviewer, bus):
    first = approvals.reject(db, pending.approval_id, reviewer, "missing docs", bus=bus)
    first_reviewed_at = first.reviewed_at

    other = ActorContext(user_id="u-carol", user_name="Carol")
    with pytest.raises(InvalidStateTransitionError, match="Approval already processed"):
        approvals.reject(db, pending.approval_id, other, "also no", bus=bus)
    with pytest.raises(InvalidStateTransitionError):
        approvals.approve(db, pending.approval_id, other, bus=bus)

    stored = approvals.get_approval(db, pending.approval_id)
    assert stored.status == "rejected"
    assert stored.reviewed_by == "u-bob"
    assert stored.reviewed_at == first_reviewed_at
    assert stored.rejection_reason == "missing docs"


def test_rejected_approval_leaves_deployment_alone(db, deployment, pending, reviewer, bus):
    approvals.reject(db, pending.approval_id, reviewer, "not ready", bus=bus)
    assert lookups.get_deployment(db, deployment.deployment_id).status == "Not Started"


def test_reject_requires_reason(db, pending, reviewer, bus):
    with pytest.raises(ValidationFailure):
        approvals.reject(db, pending.approval_id, reviewer, "  ", bus=bus)
    assert approvals.get_approval(db, pending.approval_id).status == "pending"


def test_unknown_approval(db, reviewer, bus):
    with pytest.raises(NotFoundError, match="Approval not found"):
        approvals.approve(db, uuid.uuid4(), reviewer, bus=bus)
    with pytest.raises(NotFoundError):
        approvals.reject(db, uuid.uuid4(), reviewer, "no", bus=bus)


def test_request_requires_requester_and_live_deployment(db, deployment, bus):
    with pytest.raises(ValidationFailure):
        approvals.request_approval(db, deployment.deployment_id, ActorContext())
    with pytest.raises(NotFoundError):
        approvals.request_approval(db, uuid.uuid4(), ActorContext(user_id="u-1"))


def test_failed_release_surfaces_partial_failure(db, deployment, pending, reviewer, bus, events):
    deployments.delete_deployment(db, deployment.deployment_id)

    with pytest.raises(ApprovalSideEffectError) as excinfo:
        approvals.approve(db, pending.approval_id, reviewer, bus=bus)

    assert excinfo.value.approval_id == str(pending.approval_id)
    assert excinfo.value.deployment_id == str(deployment.deployment_id)
    assert approvals.get_approval(db, pending.approval_id).status == "approved"
    assert not [name for name, _ in events if name == APPROVAL_COMPLETED]


def test_cancel(db, pending, actor, bus):
    cancelled = approvals.cancel(db, pending.approval_id, actor, bus=bus)
    assert cancelled.status == "cancelled"
    with pytest.raises(InvalidStateTransitionError):
        approvals.cancel(db, pending.approval_id, actor, bus=bus)


def test_listing(db, deployment, pending, actor, reviewer, bus):
    second = approvals.request_approval(db, deployment.deployment_id, actor)
    approvals.reject(db, second.approval_id, reviewer, "later", bus=bus)

    assert [a.approval_id for a in approvals.list_pending(db)] == [pending.approval_id]
    assert len(approvals.list_by_deployment(db, deployment.deployment_id)) == 2
    assert [a.status for a in approvals.list_approvals(db, "rejected")] == ["rejected"]
    with pytest.raises(ValidationFailure):
        approvals.list_approvals(db, "maybe")


def test_resolution_is_audited(db, pending, reviewer, bus):
    approvals.reject(db, pending.approval_id, reviewer, "no", bus=bus)

    entry = db.query(AuditLog).filter(AuditLog.action == "reject").one()
    assert entry.resource_type == "approval"
    assert entry.resource_name == "P1 - C1"
    assert {"field": "status", "oldValue": "pending", "newValue": "rejected"} in entry.changes
