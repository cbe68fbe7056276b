from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.db.base import Base
from app.db.models import Notification, User
from app.tasks import notifications as notification_tasks
from app.tasks.celery_app import celery_app
from app.tasks.notifications import deliver_notification_task


def _session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


def test_deliver_notification_writes_unread_record(monkeypatch):
    SessionFactory = _session_factory()
    seed = SessionFactory()
    seed.add(User(id="u1", email="u1@example.com", hashed_password="x"))
    seed.commit()
    seed.close()
    monkeypatch.setattr(notification_tasks, "SessionLocal", SessionFactory)

    notification_id = deliver_notification_task.run(
        user_id="u1",
        title="Booking accepted",
        body="Your booking request has been accepted.",
        notification_type="booking",
        data={"bookingId": "b1", "status": "accepted"},
        created_by="p1",
    )

    check = SessionFactory()
    stored = check.scalar(select(Notification).where(Notification.id == notification_id))
    assert stored is not None
    assert stored.user_id == "u1"
    assert stored.title == "Booking accepted"
    assert stored.type == "booking"
    assert stored.read is False
    assert stored.created_by == "p1"
    assert stored.data == {"bookingId": "b1", "status": "accepted"}
    assert stored.created_at is not None
    check.close()


def test_deliver_notification_swallows_write_errors(monkeypatch):
    SessionFactory = _session_factory()
    engine = SessionFactory.kw["bind"]
    Notification.__table__.drop(bind=engine)
    monkeypatch.setattr(notification_tasks, "SessionLocal", SessionFactory)

    result = deliver_notification_task.run(
        user_id="u1",
        title="Booking cancelled",
        body="A booking has been cancelled.",
        notification_type="booking",
    )

    assert result is None


def test_dispatch_notification_publishes_without_retry(monkeypatch):
    published = []

    class FakeTask:
        def apply_async(self, kwargs=None, **options):
            published.append((kwargs, options))

    monkeypatch.setattr(notification_tasks, "deliver_notification_task", FakeTask())

    notification_tasks.dispatch_notification(
        user_id="u1",
        title="Booking rejected",
        body="Your booking request was declined.",
        data={"bookingId": "b1"},
        created_by="p1",
    )

    kwargs, options = published[0]
    assert kwargs["notification_type"] == "booking"
    assert kwargs["title"] == "Booking rejected"
    assert options == {"retry": False}


def test_dispatch_notification_never_raises(monkeypatch):
    class DownBroker:
        def apply_async(self, **_):
            raise OSError("connection refused")

    monkeypatch.setattr(notification_tasks, "deliver_notification_task", DownBroker())

    notification_tasks.dispatch_notification(user_id="u1", title="t", body="b")


def test_broker_outage_fails_fast():
    assert celery_app.conf.broker_connection_timeout == settings.celery_broker_connection_timeout
    assert settings.celery_broker_connection_timeout < 1
    assert celery_app.conf.broker_connection_max_retries == 0
