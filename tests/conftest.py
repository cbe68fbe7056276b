import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "false")

from app.core.rate_limiter import rate_limiter  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.models import Booking, Notification, User, UserRole  # noqa: E402, F401
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.tasks import notifications as notification_tasks  # noqa: E402

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEFAULT_PASSWORD = "StrongPass123"


class RecordingTask:
    """Stands in for the Celery task so tests can inspect published notifications."""

    def __init__(self) -> None:
        self.calls: list[dict] = []

    def apply_async(self, kwargs=None, **options) -> None:
        self.calls.append(kwargs or {})

    def titles_for(self, user_id: str) -> list[str]:
        return [call["title"] for call in self.calls if call["user_id"] == user_id]


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()


@pytest.fixture(autouse=True)
def dispatched_notifications(monkeypatch) -> RecordingTask:
    recorder = RecordingTask()
    monkeypatch.setattr(notification_tasks, "deliver_notification_task", recorder)
    return recorder


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client() -> TestClient:
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def signup(client):
    """Create an account through the API; returns (access_token, user_id)."""

    def _signup(email: str, role: str = "player", name: str | None = None) -> tuple[str, str]:
        payload = {"email": email, "password": DEFAULT_PASSWORD, "role": role}
        if name:
            payload["name"] = name
        response = client.post("/api/auth/signup", json=payload)
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return data["accessToken"], data["user"]["id"]

    return _signup


@pytest.fixture()
def make_admin(client, signup):
    def _make_admin(email: str = "admin@example.com") -> str:
        _, user_id = signup(email, "player")
        db = TestingSessionLocal()
        try:
            user = db.get(User, user_id)
            user.role = UserRole.ADMIN.value
            db.commit()
        finally:
            db.close()
        response = client.post("/api/auth/signin", json={"email": email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 200, response.text
        return response.json()["data"]["accessToken"]

    return _make_admin
