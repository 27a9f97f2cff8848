import json
import os
import sys
import tempfile
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BASE_DIR))

# Must be set before messenger.core.config is imported.
_TMP_DIR = tempfile.mkdtemp(prefix="messenger-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/test.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET"] = "test-secret"

from fastapi.testclient import TestClient

from messenger.crud import conversations as conversations_crud
from messenger.crud import users as users_crud
from messenger.db.base import Base
from messenger.db.session import SessionLocal, engine
from messenger.main import app
from messenger.realtime.registry import ConnectionRegistry
from messenger.security.rate_limit import reset_rate_limits
from messenger import models  # noqa: F401


class FakeChannel:
    """Stands in for a WebSocket; records every outbound frame."""

    def __init__(self, name: str = "channel"):
        self.name = name
        self.sent = []
        self.closed = False

    async def send_text(self, data: str) -> None:
        if self.closed:
            raise RuntimeError(f"{self.name} is closed")
        self.sent.append(json.loads(data))

    def of_type(self, frame_type: str) -> list:
        return [f for f in self.sent if f["type"] == frame_type]

    def types(self) -> list:
        return [f["type"] for f in self.sent]

    def __repr__(self) -> str:
        return f"FakeChannel({self.name})"


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_rate_limits()
    yield


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def make_channel():
    return FakeChannel


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(username: str = None, email: str = None, password: str = None):
        counter["n"] += 1
        n = counter["n"]
        return users_crud.create_user(
            db,
            email=email or f"user{n}@example.com",
            username=username or f"User {n}",
            password=password,
            verified=True,
        )

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("Alice", "alice@example.com")


@pytest.fixture
def bob(make_user):
    return make_user("Bob", "bob@example.com")


@pytest.fixture
def conversation(db, alice, bob):
    conv, _ = conversations_crud.get_or_create(db, alice.id, bob.id)
    return conv


@pytest.fixture
def fetch():
    """Read a row through a new session, bypassing anything cached."""
    def _fetch(model, pk):
        with SessionLocal() as s:
            return s.get(model, pk)

    return _fetch
