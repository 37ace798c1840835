import os

# Must be set before config/db are imported
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_USE_REDIS", "false")
os.environ.setdefault("JWT_SECRET", "fanlink-test-secret-0123456789abcdef")

import asyncio
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from core.rate_limit import default_rate_limiter
from core.users import create_user
from db import SessionLocal, create_tables, drop_tables
from models import Role


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    default_rate_limiter.reset()
    yield
    default_rate_limiter.reset()


@pytest.fixture(scope="function")
def test_db():
    """Create all tables before each test and drop them after"""
    create_tables()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_tables()


@pytest.fixture
def users(test_db):
    """
    One fan (5 gems), one model, two workers assigned to nobody yet, an
    unrelated fan and an admin. Returns their ids.
    """
    fan = create_user(test_db, username="fan", email="fan@example.com", role=Role.FAN, gems=5)
    other_fan = create_user(test_db, username="fan2", email="fan2@example.com", role=Role.FAN)
    model = create_user(test_db, username="model", email="model@example.com", role=Role.MODEL)
    worker1 = create_user(test_db, username="worker1", email="worker1@example.com", role=Role.WORKER)
    worker2 = create_user(test_db, username="worker2", email="worker2@example.com", role=Role.WORKER)
    admin = create_user(test_db, username="admin", email="admin@example.com", role=Role.ADMIN)
    test_db.commit()
    return SimpleNamespace(
        fan=fan.id,
        other_fan=other_fan.id,
        model=model.id,
        worker1=worker1.id,
        worker2=worker2.id,
        admin=admin.id,
    )


@pytest.fixture
def token_for():
    def _token(user_id, role):
        return create_access_token(user_id, role)

    return _token


@pytest.fixture
def auth_headers(token_for):
    def _headers(user_id, role):
        return {"Authorization": f"Bearer {token_for(user_id, role)}"}

    return _headers


@pytest.fixture
def app(test_db):
    from main import create_app

    return create_app()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


class FakeChannel:
    """Stand-in for a WebSocket: records frames, optionally fails or stalls."""

    def __init__(self, *, fail: bool = False, delay: float = 0.0):
        self.sent = []
        self.fail = fail
        self.delay = delay

    async def send_json(self, data, mode="text"):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def frames(self, frame_type):
        return [f for f in self.sent if f.get("type") == frame_type]


@pytest.fixture
def make_channel():
    return FakeChannel
