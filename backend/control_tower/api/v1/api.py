"""Module: api."""

# backend/control_tower/api/v1/api.py
from fastapi import APIRouter

# Operational routes.
from control_tower.api.v1.routes.health import router as health_router

# Catalogue and deployment workflow routes consumed by the dashboard.
from control_tower.api.v1.routes.products import router as products_router
from control_tower.api.v1.routes.clients import router as clients_router
from control_tower.api.v1.routes.deployments import router as deployments_router
from control_tower.api.v1.routes.checklists import router as checklists_router
from control_tower.api.v1.routes.checklist_templates import router as checklist_templates_router
from control_tower.api.v1.routes.approvals import router as approvals_router
from control_tower.api.v1.routes.audit_logs import router as audit_logs_router


api_router = APIRouter()

# Register operational endpoints first for service-level concerns.
api_router.include_router(health_router, prefix="/health", tags=["health"])

# Register business/domain endpoints consumed by the application UI.
api_router.include_router(products_router, prefix="/products", tags=["products"])
api_router.include_router(clients_router, prefix="/clients", tags=["clients"])
api_router.include_router(deployments_router, prefix="/deployments", tags=["deployments"])
api_router.include_router(checklists_router, prefix="/checklists", tags=["checklists"])
api_router.include_router(checklist_templates_router, prefix="/checklist-templates", tags=["checklist-templates"])
api_router.include_router(approvals_router, prefix="/approvals", tags=["approvals"])
api_router.include_router(audit_logs_router, prefix="/audit-logs", tags=["audit-logs"])
