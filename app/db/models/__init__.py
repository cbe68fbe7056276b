from app.db.models.booking import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    BookingType,
)
from app.db.models.notification import Notification, NotificationType
from app.db.models.user import AccountStatus, User, UserRole

__all__ = [
    "User",
    "UserRole",
    "AccountStatus",
    "Booking",
    "BookingStatus",
    "BookingType",
    "ALLOWED_TRANSITIONS",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Notification",
    "NotificationType",
]
