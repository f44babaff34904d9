"""
Shared fixtures.

Environment is set before any ``unitask`` import: the app reads DATABASE_URL
and SECRET_KEY at import time. Tests run against a throwaway SQLite file and
an in-process stand-in for the Redis client.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="unitask-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/unitask.db"
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from fastapi.testclient import TestClient

from unitask.celery_app import celery_app
from unitask.database import Base, SessionLocal, engine
from unitask.main import app
from unitask.models import Task
from unitask.tasks import progress as progress_module

ADMIN = {
    "name": "Ana Admin",
    "email": "admin@unitask.io",
    "password": "AdminPass123!",
    "tenant_id": "tenant-a",
}


class FakeRedis:
    """The subset of redis.Redis used by TaskProgressStore."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(progress_module, "redis_client", fake)
    return fake


@pytest.fixture()
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_task(db_session):
    """Insert a task row; keyword arguments are Task column values."""
    def _make(**fields):
        fields.setdefault("tenant_id", ADMIN["tenant_id"])
        fields.setdefault("title", "Untitled")
        task = Task(**fields)
        db_session.add(task)
        db_session.commit()
        db_session.refresh(task)
        return task
    return _make


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def admin_client(client):
    """Client logged in as the first admin via the setup endpoint."""
    response = client.post("/api/admin/setup", json=ADMIN)
    assert response.status_code == 200, response.text
    return client


@pytest.fixture()
def eager_celery(monkeypatch):
    """Run Celery jobs inline and make revoke a no-op."""
    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = False
    revoked = []
    monkeypatch.setattr(celery_app.control, "revoke", lambda job_id, **kwargs: revoked.append(job_id))
    yield revoked
    celery_app.conf.task_always_eager = False
