"""Module: main."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from control_tower.api.v1.api import api_router
from control_tower.core.config import settings
from control_tower.core.errors import ApprovalSideEffectError, DomainError
from control_tower.core.events import event_bus
from control_tower.core.logging import configure_logging
from control_tower.db.init_db import init_db
from control_tower.db.session import SessionLocal, engine
from control_tower.services.checklists import seed_default_templates
from control_tower.services.notifications import register_default_listeners

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db(engine)
    if settings.seed_checklist_templates:
        db = SessionLocal()
        try:
            seed_default_templates(db)
        finally:
            db.close()
    register_default_listeners(event_bus)
    logger.info("Control Tower API started")
    yield


app = FastAPI(title="Control Tower API", version="0.1.0", lifespan=lifespan)

app.include_router(api_router, prefix="/api/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors keep the {"detail": ...} shape used by HTTPException.
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    body = {"detail": exc.message}
    if isinstance(exc, ApprovalSideEffectError):
        body["approval_id"] = exc.approval_id
        body["deployment_id"] = exc.deployment_id
    return JSONResponse(status_code=exc.status_code, content=body)
