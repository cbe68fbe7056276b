from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.api.pagination import LimitParam, OffsetParam
from app.db.models import User
from app.db.session import get_db
from app.schemas.common import ApiResponse
from app.schemas.notification import NotificationResponse
from app.services.notification_service import list_notifications_for_user, mark_notification_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=ApiResponse[list[NotificationResponse]], status_code=status.HTTP_200_OK)
def list_my_notifications(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[list[NotificationResponse]]:
    notifications = list_notifications_for_user(
        db=db,
        user_id=current_user.id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return ApiResponse[list[NotificationResponse]](
        data=[NotificationResponse.model_validate(item) for item in notifications],
    )


@router.put("/{notification_id}/read", response_model=ApiResponse[NotificationResponse], status_code=status.HTTP_200_OK)
def read_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[NotificationResponse]:
    notification = mark_notification_read(db=db, notification_id=notification_id, user_id=current_user.id)
    return ApiResponse[NotificationResponse](
        data=NotificationResponse.model_validate(notification),
        message="Notification marked as read",
    )
