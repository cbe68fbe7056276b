from pydantic import EmailStr, Field

from app.db.models.user import UserRole
from app.schemas.common import CamelModel
from app.schemas.user import PHONE_PATTERN, UserResponse


class SignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    role: UserRole = UserRole.PLAYER
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=120)


class SigninRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenResponse):
    user: UserResponse
