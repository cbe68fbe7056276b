from datetime import date as calendar_date
from datetime import datetime

from pydantic import Field, field_validator

from app.db.models import BookingStatus, BookingType
from app.schemas.common import CamelModel, Pagination

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class BookingCreateRequest(CamelModel):
    provider_id: str = Field(min_length=1, max_length=32)
    booking_type: BookingType
    service_id: str | None = Field(default=None, max_length=64)
    program_id: str | None = Field(default=None, max_length=64)
    date: str = Field(pattern=DATE_PATTERN)
    time: str | None = Field(default=None, min_length=1, max_length=16)
    price: float = Field(gt=0)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("date")
    @classmethod
    def date_must_exist(cls, value: str) -> str:
        calendar_date.fromisoformat(value)
        return value

    @field_validator("time")
    @classmethod
    def strip_time(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("time must not be blank")
        return value


class BookingStatusUpdateRequest(CamelModel):
    status: BookingStatus


class BookingResponse(CamelModel):
    id: str
    user_id: str
    provider_id: str
    booking_type: BookingType
    service_id: str | None
    program_id: str | None
    date: str
    time: str | None
    status: BookingStatus
    price: float
    notes: str | None
    created_at: datetime
    updated_at: datetime


class AdminBookingResponse(BookingResponse):
    customer_name: str


class AdminBookingListResponse(CamelModel):
    bookings: list[AdminBookingResponse]
    pagination: Pagination
