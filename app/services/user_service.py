import logging

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models import AccountStatus, NotificationType, User, UserRole
from app.schemas.user import ProfileUpdateRequest
from app.tasks.notifications import dispatch_notification

logger = logging.getLogger("app.users")

USER_NOT_FOUND_DETAIL = "User not found"
PHONE_TAKEN_DETAIL = "Phone number already exists"

# (title, body, action) sent to the user whose account status changed.
ACCOUNT_STATUS_NOTIFICATIONS: dict[AccountStatus, tuple[str, str, str]] = {
    AccountStatus.SUSPENDED: (
        "Account suspended",
        "Your account has been suspended. Please contact support.",
        "suspended",
    ),
    AccountStatus.BANNED: ("Account suspended", "Your account has been banned.", "suspended"),
    AccountStatus.ACTIVE: (
        "Account reactivated",
        "Your account has been reactivated. You can sign in again.",
        "activated",
    ),
}


def get_user_or_404(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND_DETAIL)
    return user


def list_users(
    db: Session,
    role_filter: UserRole | None = None,
    status_filter: AccountStatus | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[User], int]:
    query = select(User)
    if role_filter:
        query = query.where(User.role == role_filter.value)
    if status_filter:
        query = query.where(User.status == status_filter.value)

    total = db.scalar(select(func.count()).select_from(query.subquery())) or 0
    users = db.scalars(query.order_by(User.created_at.desc()).limit(limit).offset((page - 1) * limit)).all()
    return list(users), total


def update_user_status(db: Session, user_id: str, admin_id: str, new_status: AccountStatus) -> User:
    """Set an account status and tell the account holder about blocks and reactivations.

    Blocked accounts lose API access on their next request, since every
    authenticated call reloads the user.
    """
    user = get_user_or_404(db, user_id)
    previous_status = user.status
    user.status = new_status.value
    db.commit()
    db.refresh(user)
    logger.info(
        "user_status_updated user_id=%s from=%s to=%s admin_id=%s",
        user.id,
        previous_status,
        user.status,
        admin_id,
    )

    notification = ACCOUNT_STATUS_NOTIFICATIONS.get(new_status)
    if notification and previous_status != new_status.value:
        title, body, action = notification
        dispatch_notification(
            user_id=user.id,
            title=title,
            body=body,
            notification_type=NotificationType.SYSTEM,
            data={"action": action, "status": new_status.value},
            created_by=admin_id,
        )
    return user


def update_profile(db: Session, user: User, payload: ProfileUpdateRequest) -> User:
    changes = payload.model_dump(exclude_unset=True)
    phone = changes.get("phone")
    if phone and phone != user.phone:
        taken = db.scalar(select(User.id).where(User.phone == phone, User.id != user.id))
        if taken:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=PHONE_TAKEN_DETAIL)

    for field, value in changes.items():
        setattr(user, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=PHONE_TAKEN_DETAIL) from None
    db.refresh(user)
    logger.info("user_profile_updated user_id=%s fields=%s", user.id, ",".join(sorted(changes)))
    return user
