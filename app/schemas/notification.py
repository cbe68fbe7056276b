from datetime import datetime
from typing import Any

from app.db.models import NotificationType
from app.schemas.common import CamelModel


class NotificationResponse(CamelModel):
    id: str
    user_id: str
    title: str
    body: str
    type: NotificationType
    read: bool
    created_at: datetime
    created_by: str | None
    data: dict[str, Any] | None
