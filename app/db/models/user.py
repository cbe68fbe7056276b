from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, new_id, utcnow


class UserRole(str, Enum):
    PLAYER = "player"
    AGENT = "agent"
    ACADEMY = "academy"
    PARENT = "parent"
    CLINIC = "clinic"
    ADMIN = "admin"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"
    BANNED = "banned"


BLOCKED_ACCOUNT_STATUSES = frozenset({AccountStatus.SUSPENDED.value, AccountStatus.BANNED.value})


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.PLAYER.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AccountStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def is_active(self) -> bool:
        return self.status not in BLOCKED_ACCOUNT_STATUSES

    def has_role(self, role: UserRole) -> bool:
        return self.role == role.value
