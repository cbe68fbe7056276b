from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import Notification, NotificationType


def create_notification(
    db: Session,
    user_id: str,
    title: str,
    body: str,
    notification_type: NotificationType,
    data: dict[str, Any] | None = None,
    created_by: str | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        title=title,
        body=body,
        type=notification_type.value,
        data=data,
        created_by=created_by,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def list_notifications_for_user(
    db: Session,
    user_id: str,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.read.is_(False))
    query = query.order_by(Notification.created_at.desc(), Notification.id).limit(limit).offset(offset)
    return list(db.scalars(query).all())


def mark_notification_read(db: Session, notification_id: str, user_id: str) -> Notification:
    notification = db.get(Notification, notification_id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if notification.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    if not notification.read:
        notification.read = True
        db.commit()
        db.refresh(notification)
    return notification
