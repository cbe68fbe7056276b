from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, new_id, utcnow


class BookingType(str, Enum):
    ACADEMY = "academy"
    CLINIC = "clinic"


class BookingStatus(str, Enum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses a provider may move a booking to, keyed by current status.
ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.REQUESTED: frozenset({BookingStatus.ACCEPTED, BookingStatus.REJECTED}),
    BookingStatus.ACCEPTED: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})
ACTIVE_STATUSES = frozenset({BookingStatus.REQUESTED, BookingStatus.ACCEPTED})

_ACTIVE_SLOT_PREDICATE = text("status IN ('requested', 'accepted') AND \"time\" IS NOT NULL")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "uq_bookings_active_slot",
            "provider_id",
            "date",
            "time",
            unique=True,
            sqlite_where=_ACTIVE_SLOT_PREDICATE,
            postgresql_where=_ACTIVE_SLOT_PREDICATE,
        ),
        Index("ix_bookings_user_created", "user_id", "created_at"),
        Index("ix_bookings_provider_created", "provider_id", "created_at"),
        CheckConstraint("price > 0", name="ck_bookings_price_positive"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    provider_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    booking_type: Mapped[str] = mapped_column(String(20), nullable=False)
    service_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    program_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    time: Mapped[str | None] = mapped_column(String(16), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=BookingStatus.REQUESTED.value)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    requester = relationship("User", foreign_keys=[user_id])

    @property
    def current_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.current_status in TERMINAL_STATUSES

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.current_status]

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.user_id, self.provider_id)

    def counterparty_of(self, user_id: str) -> str:
        return self.provider_id if user_id == self.user_id else self.user_id
