"""Best-effort delivery of user notifications.

Publishing is at-most-once: nothing is retried, and neither a broker outage
nor a failed write ever reaches the code path that triggered the notification.
"""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from app.core.metrics import NOTIFICATION_FAILURES
from app.db.models import NotificationType
from app.db.session import SessionLocal
from app.services.notification_service import create_notification
from app.tasks.celery_app import celery_app

logger = logging.getLogger("app.notifications")


@celery_app.task(name="notifications.deliver")
def deliver_notification_task(
    user_id: str,
    title: str,
    body: str,
    notification_type: str,
    data: dict[str, Any] | None = None,
    created_by: str | None = None,
) -> str | None:
    db = SessionLocal()
    try:
        notification = create_notification(
            db=db,
            user_id=user_id,
            title=title,
            body=body,
            notification_type=NotificationType(notification_type),
            data=data,
            created_by=created_by,
        )
        return notification.id
    except SQLAlchemyError:
        db.rollback()
        NOTIFICATION_FAILURES.labels(stage="write").inc()
        logger.exception("notification_write_failed user_id=%s title=%s", user_id, title)
        return None
    finally:
        db.close()


def dispatch_notification(
    user_id: str,
    title: str,
    body: str,
    notification_type: NotificationType = NotificationType.BOOKING,
    data: dict[str, Any] | None = None,
    created_by: str | None = None,
) -> None:
    try:
        deliver_notification_task.apply_async(
            kwargs={
                "user_id": user_id,
                "title": title,
                "body": body,
                "notification_type": notification_type.value,
                "data": data,
                "created_by": created_by,
            },
            retry=False,
        )
    except Exception:
        NOTIFICATION_FAILURES.labels(stage="publish").inc()
        logger.exception("notification_publish_failed user_id=%s title=%s", user_id, title)
