"""Module: interceptor.

Before/after audit interception for entity mutations.

Only resource types registered in ``AUDITED_RESOURCES`` participate; every
other mutation runs untouched. Auditing is best-effort: a failure to capture
prior state or to write the entry is logged and the mutation result is
returned as if nothing happened.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from control_tower.core.config import settings
from control_tower.db.models.approval import Approval
from control_tower.db.models.checklist_template import ChecklistTemplate
from control_tower.db.models.client import Client
from control_tower.db.models.deployment import Deployment
from control_tower.db.models.product import Product
from control_tower.services.audit_recorder import ActorContext, AuditRecorder
from control_tower.services.change_tracker import diff, snapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MutationKind(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class AuditedResource:
    model: type
    tracked_fields: tuple[str, ...]
    describe: Callable[[Any], str | None] = lambda entity: getattr(entity, "name", None)

    def primary_key(self, entity: Any) -> Any:
        column = inspect(self.model).primary_key[0]
        return getattr(entity, column.key)


class ReadCapture:
    """Prior state as last read by a mutation that re-reads before writing.

    Versioned writes retry from a fresh load; the interceptor diffs against
    the state the successful attempt started from, not its own first read.
    """

    def __init__(self) -> None:
        self._config: AuditedResource | None = None
        self.state: dict[str, Any] | None = None
        self.name: str | None = None

    def bind(self, config: AuditedResource) -> None:
        self._config = config

    def capture(self, entity: Any) -> None:
        if self._config is None:
            return
        self.state = snapshot(entity, self._config.tracked_fields)
        self.name = self._config.describe(entity)


def _describe_deployment(deployment: Deployment) -> str:
    return f"{deployment.product_name} - {deployment.client_name}"


AUDITED_RESOURCES: dict[str, AuditedResource] = {
    "product": AuditedResource(
        model=Product,
        tracked_fields=(
            "name", "description", "product_owner", "engineering_owner",
            "delivery_lead", "next_release_date", "is_adapter",
            "adapter_services", "notification_emails", "deleted_at",
        ),
    ),
    "client": AuditedResource(
        model=Client,
        tracked_fields=("name", "comments", "deleted_at"),
    ),
    "deployment": AuditedResource(
        model=Deployment,
        tracked_fields=(
            "status", "deployment_type", "environment", "owner",
            "next_delivery_date", "feature_name", "release_items", "notes",
            "client_ids", "equipment_sa_status", "equipment_se_status",
            "mapping_status", "construction_status", "notification_emails",
            "deleted_at",
        ),
        describe=_describe_deployment,
    ),
    "approval": AuditedResource(
        model=Approval,
        tracked_fields=("status", "reviewed_by_name", "comments", "rejection_reason"),
        describe=lambda approval: approval.deployment_name,
    ),
    "checklist_template": AuditedResource(
        model=ChecklistTemplate,
        tracked_fields=("key", "label", "description", "sort_order", "is_active", "deleted_at"),
        describe=lambda template: template.label,
    ),
}


class MutationInterceptor:
    def __init__(
        self,
        recorder: AuditRecorder | None = None,
        resources: dict[str, AuditedResource] | None = None,
        enabled: bool | None = None,
        disabled_resources: Iterable[str] | None = None,
    ) -> None:
        self.recorder = recorder or AuditRecorder()
        self.resources = AUDITED_RESOURCES if resources is None else resources
        self.enabled = settings.audit_enabled if enabled is None else enabled
        if disabled_resources is None:
            disabled_resources = settings.audit_disabled_resources
        self.disabled_resources = frozenset(disabled_resources)

    def resource_config(self, resource_type: str) -> AuditedResource | None:
        if not self.enabled or resource_type in self.disabled_resources:
            return None
        return self.resources.get(resource_type)

    def intercept(
        self,
        db: Session,
        resource_type: str,
        kind: MutationKind | str,
        mutation: Callable[[], T],
        *,
        entity_id: Any = None,
        actor: ActorContext | None = None,
        action: str | None = None,
        metadata: dict[str, Any] | None = None,
        reads: ReadCapture | None = None,
    ) -> T:
        """Run *mutation* and audit it when *resource_type* is tracked.

        *mutation* must commit its own work before returning; the audit entry
        is written in a follow-up commit on the same session. Exceptions from
        the mutation propagate unchanged and produce no audit entry.

        When *reads* is given, the mutation reports each entity it loads and
        the last capture replaces the prior snapshot taken here.
        """
        kind = MutationKind(kind)
        config = self.resource_config(resource_type)
        if config is None:
            return mutation()

        prior: dict[str, Any] | None = None
        prior_name: str | None = None
        track = True
        if kind is not MutationKind.CREATE:
            prior, prior_name, track = self._capture_prior(db, resource_type, config, entity_id)

        if reads is not None:
            reads.bind(config)

        result = mutation()

        if reads is not None and reads.state is not None:
            prior, prior_name, track = reads.state, reads.name, True

        if track:
            self._record(
                db,
                resource_type,
                config,
                kind,
                result,
                prior=prior,
                prior_name=prior_name,
                entity_id=entity_id,
                actor=actor,
                action=action,
                metadata=metadata,
            )
        return result

    def _capture_prior(
        self,
        db: Session,
        resource_type: str,
        config: AuditedResource,
        entity_id: Any,
    ) -> tuple[dict[str, Any] | None, str | None, bool]:
        try:
            current = db.get(config.model, entity_id) if entity_id is not None else None
        except Exception:
            logger.warning(
                "Could not load prior state for %s %s; skipping audit",
                resource_type, entity_id, exc_info=True,
            )
            return None, None, False
        if current is None:
            logger.warning("No prior state for %s %s; skipping audit", resource_type, entity_id)
            return None, None, False
        return snapshot(current, config.tracked_fields), config.describe(current), True

    def _record(
        self,
        db: Session,
        resource_type: str,
        config: AuditedResource,
        kind: MutationKind,
        result: Any,
        *,
        prior: dict[str, Any] | None,
        prior_name: str | None,
        entity_id: Any,
        actor: ActorContext | None,
        action: str | None,
        metadata: dict[str, Any] | None,
    ) -> None:
        try:
            new_state = snapshot(result, config.tracked_fields) if result is not None else None
            resource_id = entity_id
            if resource_id is None and result is not None:
                resource_id = config.primary_key(result)
            resource_name = config.describe(result) if result is not None else prior_name
            self.recorder.record(
                db,
                action=action or kind.value,
                resource_type=resource_type,
                resource_id=resource_id,
                resource_name=resource_name,
                changes=diff(prior, new_state, config.tracked_fields),
                actor=actor,
                metadata=metadata,
            )
        except Exception:
            logger.warning(
                "Audit logging failed for %s %s (%s)",
                resource_type, entity_id, kind.value, exc_info=True,
            )
            db.rollback()
