from __future__ import annotations

import os

# Settings are read at import time; point them at SQLite before anything loads.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_CHECKLIST_TEMPLATES", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from control_tower.api.v1.routes.deps import get_db, get_event_bus
from control_tower.core.events import (
    APPROVAL_COMPLETED,
    DEPLOYMENT_CREATED,
    DEPLOYMENT_STATUS_CHANGED,
    EventBus,
)
from control_tower.db.init_db import init_db
from control_tower.db.models.client import Client
from control_tower.db.models.product import Product
from control_tower.services import crud
from control_tower.services.audit_recorder import ActorContext


@pytest.fixture
def engine():
    sqlite_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(sqlite_engine)
    yield sqlite_engine
    sqlite_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def events(bus):
    """Every event published on ``bus``, as (name, payload) tuples."""
    received = []

    def _capture(event_name, payload):
        received.append((event_name, payload))

    for name in (DEPLOYMENT_CREATED, DEPLOYMENT_STATUS_CHANGED, APPROVAL_COMPLETED):
        bus.subscribe(name, _capture)
    return received


@pytest.fixture
def actor():
    return ActorContext(
        user_id="u-alice",
        user_name="Alice",
        user_email="alice@example.com",
        ip_address="10.0.0.1",
        user_agent="pytest",
        request_id="req-1",
    )


@pytest.fixture
def reviewer():
    return ActorContext(user_id="u-bob", user_name="Bob", user_email="bob@example.com")


@pytest.fixture
def product(db):
    return crud.create_entity(db, Product, {"name": "P1", "notification_emails": ["Ops@Example.com"]})


@pytest.fixture
def adapter_product(db):
    return crud.create_entity(db, Product, {"name": "Adapter", "is_adapter": True})


@pytest.fixture
def client_row(db):
    return crud.create_entity(db, Client, {"name": "C1"})


@pytest.fixture
def api(session_factory, bus):
    from control_tower.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_event_bus] = lambda: bus
    # No context manager: the lifespan would bind to the module-level engine.
    yield TestClient(app)
    app.dependency_overrides.clear()
