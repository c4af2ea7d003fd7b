"""Module: deps."""

import uuid
from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from control_tower.core.events import EventBus, event_bus
from control_tower.db.session import SessionLocal
from control_tower.services.audit_recorder import ActorContext
from control_tower.services.interceptor import MutationInterceptor

# Dependency provider: one DB session per request lifecycle.
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Actor identity is forwarded by the authenticating gateway in front of the API.
def get_actor(request: Request) -> ActorContext:
    headers = request.headers
    return ActorContext(
        user_id=headers.get("x-user-id") or None,
        user_name=headers.get("x-user-name") or None,
        user_email=headers.get("x-user-email") or None,
        ip_address=request.client.host if request.client else None,
        user_agent=headers.get("user-agent") or None,
        request_id=headers.get("x-request-id") or None,
    )


def get_event_bus() -> EventBus:
    return event_bus


def get_interceptor() -> MutationInterceptor:
    return MutationInterceptor()


def parse_uuid(value: str, field_name: str = "id") -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name} (must be UUID)")


def require_actor(actor: ActorContext = Depends(get_actor)) -> ActorContext:
    if not actor.user_id:
        raise HTTPException(status_code=400, detail="Missing X-User-Id header")
    return actor
