# backend/messenger/db/init_db.py
from messenger.db.base import Base
from messenger.db.session import engine

# models must be imported so the tables are registered on Base.metadata
from messenger import models  # noqa: F401


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
