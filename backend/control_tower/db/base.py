"""Module: base."""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase

# Shared SQLAlchemy declarative base that all ORM models inherit from.
# This gives each model access to common metadata for table creation/migrations.
class Base(DeclarativeBase):
    pass


# Naive UTC timestamp used for every DateTime column default.
def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
