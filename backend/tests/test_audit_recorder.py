import uuid
from datetime import datetime, timedelta, timezone

import pytest

from control_tower.core.errors import NotFoundError, ValidationFailure
from control_tower.db.models.audit_log import AuditLog
from control_tower.services.audit_recorder import (
    MAX_PAGE_SIZE,
    ActorContext,
    AuditRecorder,
)


@pytest.fixture
def recorder():
    return AuditRecorder()


def _entry(db, *, user_id="u-1", user_name="Alice", resource_name="P1 - C1", occurred_at, action="update"):
    row = AuditLog(
        audit_id=uuid.uuid4(),
        user_id=user_id,
        user_name=user_name,
        action=action,
        resource_type="deployment",
        resource_id="d-1",
        resource_name=resource_name,
        meta={},
        occurred_at=occurred_at,
    )
    db.add(row)
    db.commit()
    return row


def test_record_persists_actor_and_metadata(db, recorder, actor):
    entry = recorder.record(
        db,
        action="create",
        resource_type="product",
        resource_id=uuid.UUID("00000000-0000-0000-0000-000000000001"),
        resource_name="P1",
        changes=[{"field": "name", "oldValue": None, "newValue": "P1"}],
        actor=actor,
        metadata={"source": "test"},
    )

    stored = recorder.get(db, entry.audit_id)
    assert stored.user_id == "u-alice"
    assert stored.user_email == "alice@example.com"
    assert stored.resource_id == "00000000-0000-0000-0000-000000000001"
    assert stored.changes[0]["newValue"] == "P1"
    assert stored.meta == {
        "ipAddress": "10.0.0.1",
        "userAgent": "pytest",
        "requestId": "req-1",
        "source": "test",
    }


def test_record_without_actor_is_anonymous(db, recorder):
    entry = recorder.record(db, action="delete", resource_type="client", resource_id="c-1")
    assert entry.user_id is None
    assert entry.changes is None
    assert entry.meta == {}


def test_record_rejects_unknown_action(db, recorder):
    with pytest.raises(ValidationFailure):
        recorder.record(db, action="explode", resource_type="product", resource_id="p-1")
    assert db.query(AuditLog).count() == 0


def test_get_unknown_entry_is_not_found(db, recorder):
    with pytest.raises(NotFoundError):
        recorder.get(db, uuid.uuid4())


def test_resource_trail_is_newest_first_with_stable_tie_break(db, recorder):
    same_instant = datetime(2026, 3, 1, 12, 0, 0)
    first = _entry(db, occurred_at=same_instant)
    second = _entry(db, occurred_at=same_instant)
    older = _entry(db, occurred_at=same_instant - timedelta(hours=1))

    trail = recorder.get_by_resource(db, "deployment", "d-1")
    assert [e.audit_id for e in trail] == [second.audit_id, first.audit_id, older.audit_id]


def test_search_by_actor_and_date_range(db, recorder):
    base = datetime(2026, 3, 10, 9, 0, 0)
    _entry(db, user_id="u-1", occurred_at=base - timedelta(days=5))
    inside_early = _entry(db, user_id="u-1", occurred_at=base)
    inside_late = _entry(db, user_id="u-1", occurred_at=base + timedelta(days=1))
    _entry(db, user_id="u-2", occurred_at=base)
    _entry(db, user_id="u-1", occurred_at=base + timedelta(days=5))

    result = recorder.search(
        db,
        user_id="u-1",
        start_date=base,
        end_date=base + timedelta(days=1),
    )

    assert [e.audit_id for e in result["data"]] == [inside_late.audit_id, inside_early.audit_id]
    assert result["pagination"] == {"page": 1, "limit": 50, "total": 2, "totalPages": 1}


def test_search_text_matches_resource_or_actor_name(db, recorder):
    now = datetime(2026, 3, 10, 9, 0, 0)
    _entry(db, resource_name="Billing - Acme", user_name="Carol", occurred_at=now)
    _entry(db, resource_name="Portal - Globex", user_name="Dave", occurred_at=now)
    _entry(db, resource_name="Portal - Initech", user_name="ACME bot", occurred_at=now)

    result = recorder.search(db, search="acme")
    assert {e.resource_name for e in result["data"]} == {"Billing - Acme", "Portal - Initech"}


def test_search_paginates_and_caps_limit(db, recorder):
    start = datetime(2026, 1, 1)
    for minute in range(5):
        _entry(db, occurred_at=start + timedelta(minutes=minute))

    page_two = recorder.search(db, page=2, limit=2)
    assert page_two["pagination"] == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}
    assert [e.occurred_at.minute for e in page_two["data"]] == [2, 1]

    capped = recorder.search(db, limit=10_000)
    assert capped["pagination"]["limit"] == MAX_PAGE_SIZE


def test_actor_display_name_falls_back():
    assert ActorContext(user_id="u", user_email="e@x").display_name == "e@x"
    assert ActorContext(user_id="u").display_name == "u"
    assert ActorContext().display_name is None


def test_search_date_bounds_with_utc_offset(db, recorder):
    entry = _entry(db, occurred_at=datetime(2026, 3, 10, 10, 0, 0))
    plus_five = timezone(timedelta(hours=5))

    # 12:00+05:00 is 07:00 UTC, before the entry.
    after = recorder.search(db, start_date=datetime(2026, 3, 10, 12, 0, 0, tzinfo=plus_five))
    assert [e.audit_id for e in after["data"]] == [entry.audit_id]

    # 14:00+05:00 is 09:00 UTC, also before the entry.
    before = recorder.search(db, end_date=datetime(2026, 3, 10, 14, 0, 0, tzinfo=plus_five))
    assert before["pagination"]["total"] == 0

    exact = recorder.search(
        db,
        start_date=datetime(2026, 3, 10, 10, 0, 0, tzinfo=timezone.utc),
        end_date=datetime(2026, 3, 10, 10, 0, 0, tzinfo=timezone.utc),
    )
    assert exact["pagination"]["total"] == 1


def test_search_text_is_literal_not_a_pattern(db, recorder):
    now = datetime(2026, 3, 10, 9, 0, 0)
    _entry(db, resource_name="Billing - Acme", user_name="Carol", occurred_at=now)
    discount = _entry(db, resource_name="Promo 100% off", user_name="Dave", occurred_at=now)
    underscored = _entry(db, resource_name="edge_case", user_name="Erin", occurred_at=now)

    assert [e.audit_id for e in recorder.search(db, search="%")["data"]] == [discount.audit_id]
    assert [e.audit_id for e in recorder.search(db, search="_")["data"]] == [underscored.audit_id]
    assert recorder.search(db, search="b%g")["pagination"]["total"] == 0
