from datetime import datetime

from pydantic import EmailStr, Field

from app.db.models.user import AccountStatus, UserRole
from app.schemas.common import CamelModel, Pagination

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"


class UserResponse(CamelModel):
    id: str
    email: EmailStr
    phone: str | None
    name: str | None
    role: UserRole
    status: AccountStatus
    created_at: datetime
    updated_at: datetime


class ProfileUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)


class UserStatusUpdateRequest(CamelModel):
    status: AccountStatus


class AdminUserListResponse(CamelModel):
    users: list[UserResponse]
    pagination: Pagination
