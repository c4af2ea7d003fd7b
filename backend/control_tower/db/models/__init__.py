# backend/control_tower/db/models/__init__.py

from control_tower.db.models.product import Product
from control_tower.db.models.client import Client
from control_tower.db.models.deployment import Deployment, DeploymentStatus

from control_tower.db.models.checklist_template import ChecklistTemplate
from control_tower.db.models.checklist_item import ChecklistItem
from control_tower.db.models.approval import Approval, ApprovalStatus
from control_tower.db.models.audit_log import AuditAction, AuditLog
