"""Module: change_tracker.

Field-level change tracking for audited resources.

``snapshot`` captures the tracked fields of an entity as JSON-safe values and
``diff`` compares two snapshots. Both are pure: they never touch the session.
"""

from __future__ import annotations

import copy
import enum
import uuid
from datetime import date, datetime
from typing import Any, Iterable, Mapping


def normalize_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [normalize_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): normalize_value(item) for key, item in value.items()}
    return value


def snapshot(entity: Any, fields: Iterable[str]) -> dict[str, Any] | None:
    """Copy *fields* off *entity* (ORM object or mapping) as plain JSON values."""
    if entity is None:
        return None
    if isinstance(entity, Mapping):
        raw = {field: entity.get(field) for field in fields}
    else:
        raw = {field: getattr(entity, field, None) for field in fields}
    return copy.deepcopy(normalize_value(raw))


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, (str, list, dict)) and not value


def diff(
    prior: Mapping[str, Any] | None,
    new: Mapping[str, Any] | None,
    tracked_fields: Iterable[str],
) -> list[dict[str, Any]] | None:
    """Return ``[{field, oldValue, newValue}, ...]`` for changed tracked fields.

    A field is reported only when its value changed and at least one side is
    non-empty, which suppresses noise such as ``None -> ""``. Returns ``None``
    when no field qualifies.
    """
    prior = prior or {}
    new = new or {}
    changes = []
    for field in tracked_fields:
        old_value = normalize_value(prior.get(field))
        new_value = normalize_value(new.get(field))
        if old_value == new_value:
            continue
        if _is_empty(old_value) and _is_empty(new_value):
            continue
        changes.append({"field": field, "oldValue": old_value, "newValue": new_value})
    return changes or None
