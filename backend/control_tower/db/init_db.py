from sqlalchemy.engine import Engine

from control_tower.db.base import Base

# IMPORTANT: import models so they register with Base.metadata
import control_tower.db.models  # noqa: F401


def init_db(bind: Engine) -> None:
    Base.metadata.create_all(bind=bind)
