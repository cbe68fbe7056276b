import logging
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.metrics import BOOKING_TRANSITIONS
from app.db.base import utcnow
from app.db.models import ACTIVE_STATUSES, Booking, BookingStatus, BookingType, NotificationType, User
from app.schemas.booking import BookingCreateRequest
from app.tasks.notifications import dispatch_notification

logger = logging.getLogger("app.bookings")

BOOKING_NOT_FOUND_DETAIL = "Booking not found"
PROVIDER_NOT_FOUND_DETAIL = "Provider not found"
SLOT_ALREADY_BOOKED_DETAIL = "Time slot already booked"
LOCK_CONFLICT_DETAIL = "Booking for this provider is in progress. Retry the request."
CONCURRENT_UPDATE_DETAIL = "Booking was modified concurrently. Retry the request."
TERMINAL_UPDATE_DETAIL = "Cannot update cancelled or completed booking"
TERMINAL_CANCEL_DETAIL = "Booking is already cancelled or completed"
UNKNOWN_CUSTOMER_NAME = "Unknown Player"
PG_LOCK_NOT_AVAILABLE_SQLSTATE = "55P03"

STATUS_NOTIFICATIONS: dict[BookingStatus, tuple[str, str]] = {
    BookingStatus.ACCEPTED: ("Booking accepted", "Your booking request has been accepted."),
    BookingStatus.REJECTED: ("Booking rejected", "Your booking request was declined."),
    BookingStatus.COMPLETED: ("Booking completed", "Your booking has been marked as completed."),
}
CANCEL_NOTIFICATION = ("Booking cancelled", "A booking has been cancelled.")


def _is_postgresql_session(db: Session) -> bool:
    bind = db.get_bind()
    return bind is not None and bind.dialect.name == "postgresql"


def _is_pg_lock_not_available(exc: OperationalError) -> bool:
    original_error = getattr(exc, "orig", None)
    if original_error is None:
        return False

    sqlstate = getattr(original_error, "sqlstate", None)
    if sqlstate is None:
        sqlstate = getattr(original_error, "pgcode", None)

    return sqlstate == PG_LOCK_NOT_AVAILABLE_SQLSTATE


def _slot_is_taken(db: Session, provider_id: str, date: str, time: str) -> bool:
    existing = db.scalar(
        select(Booking.id)
        .where(
            Booking.provider_id == provider_id,
            Booking.date == date,
            Booking.time == time,
            Booking.status.in_([s.value for s in ACTIVE_STATUSES]),
        )
        .limit(1)
    )
    return existing is not None


def create_booking(db: Session, requester_id: str, payload: BookingCreateRequest) -> Booking:
    """Persist a new ``requested`` booking after provider and slot checks.

    The slot check is backed by a partial unique index on active bookings, so a
    creator that loses a race gets the same 409 as one that lost the check.
    On PostgreSQL the provider row is also locked ``NOWAIT`` to serialise
    creators for one provider.
    """
    try:
        provider_query = select(User).where(User.id == payload.provider_id)
        if _is_postgresql_session(db):
            provider_query = provider_query.with_for_update(nowait=True)

        provider = db.scalar(provider_query)
        if not provider:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PROVIDER_NOT_FOUND_DETAIL)

        if provider.role != payload.booking_type.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Provider must be of type {payload.booking_type.value}",
            )

        if payload.time and _slot_is_taken(db, provider.id, payload.date, payload.time):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SLOT_ALREADY_BOOKED_DETAIL)

        now = utcnow()
        booking = Booking(
            user_id=requester_id,
            provider_id=provider.id,
            booking_type=payload.booking_type.value,
            service_id=payload.service_id,
            program_id=payload.program_id,
            date=payload.date,
            time=payload.time,
            status=BookingStatus.REQUESTED.value,
            price=Decimal(str(payload.price)),
            notes=payload.notes,
            created_at=now,
            updated_at=now,
        )
        db.add(booking)
        db.commit()
    except OperationalError as exc:
        db.rollback()
        if _is_pg_lock_not_available(exc):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=LOCK_CONFLICT_DETAIL) from None
        raise
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SLOT_ALREADY_BOOKED_DETAIL) from None

    db.refresh(booking)
    BOOKING_TRANSITIONS.labels(status=BookingStatus.REQUESTED.value).inc()
    logger.info(
        "booking_created booking_id=%s user_id=%s provider_id=%s date=%s time=%s",
        booking.id,
        booking.user_id,
        booking.provider_id,
        booking.date,
        booking.time,
    )
    return booking


def list_requester_bookings(
    db: Session,
    user_id: str,
    status_filter: BookingStatus | None = None,
    type_filter: BookingType | None = None,
) -> list[Booking]:
    query = select(Booking).where(Booking.user_id == user_id)
    if status_filter:
        query = query.where(Booking.status == status_filter.value)
    if type_filter:
        query = query.where(Booking.booking_type == type_filter.value)
    return list(db.scalars(query.order_by(Booking.created_at.desc())).all())


def list_provider_bookings(
    db: Session,
    provider_id: str,
    status_filter: BookingStatus | None = None,
) -> list[Booking]:
    query = select(Booking).where(Booking.provider_id == provider_id)
    if status_filter:
        query = query.where(Booking.status == status_filter.value)
    return list(db.scalars(query.order_by(Booking.created_at.desc())).all())


def get_booking_or_404(db: Session, booking_id: str) -> Booking:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=BOOKING_NOT_FOUND_DETAIL)
    return booking


def get_booking_for_party(db: Session, booking_id: str, user_id: str) -> Booking:
    booking = get_booking_or_404(db, booking_id)
    if not booking.is_party(user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return booking


def _compare_and_set_status(db: Session, booking: Booking, new_status: BookingStatus) -> Booking:
    expected_status = booking.status
    result = db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == expected_status)
        .values(status=new_status.value, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONCURRENT_UPDATE_DETAIL)

    db.commit()
    db.refresh(booking)
    BOOKING_TRANSITIONS.labels(status=new_status.value).inc()
    return booking


def update_booking_status(
    db: Session,
    booking_id: str,
    caller_id: str,
    new_status: BookingStatus,
) -> Booking:
    booking = get_booking_or_404(db, booking_id)
    if booking.provider_id != caller_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only provider can update booking status",
        )

    if booking.is_terminal:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=TERMINAL_UPDATE_DETAIL)

    if not booking.can_transition_to(new_status):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot change booking status from {booking.status} to {new_status.value}",
        )

    previous_status = booking.status
    booking = _compare_and_set_status(db, booking, new_status)
    logger.info(
        "booking_status_updated booking_id=%s from=%s to=%s",
        booking.id,
        previous_status,
        booking.status,
    )

    title, body = STATUS_NOTIFICATIONS[new_status]
    dispatch_notification(
        user_id=booking.user_id,
        title=title,
        body=body,
        notification_type=NotificationType.BOOKING,
        data={"bookingId": booking.id, "status": new_status.value},
        created_by=caller_id,
    )
    return booking


def cancel_booking(db: Session, booking_id: str, caller_id: str) -> Booking:
    booking = get_booking_or_404(db, booking_id)
    if not booking.is_party(caller_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    if booking.is_terminal:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=TERMINAL_CANCEL_DETAIL)

    notify_user_id = booking.counterparty_of(caller_id)
    booking = _compare_and_set_status(db, booking, BookingStatus.CANCELLED)
    logger.info("booking_cancelled booking_id=%s cancelled_by=%s", booking.id, caller_id)

    title, body = CANCEL_NOTIFICATION
    dispatch_notification(
        user_id=notify_user_id,
        title=title,
        body=body,
        notification_type=NotificationType.BOOKING,
        data={"bookingId": booking.id, "status": BookingStatus.CANCELLED.value},
        created_by=caller_id,
    )
    return booking


def customer_name_for(user: User | None) -> str:
    if user is not None and user.name:
        return user.name
    return UNKNOWN_CUSTOMER_NAME


def list_all_bookings(
    db: Session,
    status_filter: BookingStatus | None = None,
    type_filter: BookingType | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[tuple[Booking, str]], int]:
    query = select(Booking, User).outerjoin(User, Booking.user_id == User.id)
    if status_filter:
        query = query.where(Booking.status == status_filter.value)
    if type_filter:
        query = query.where(Booking.booking_type == type_filter.value)

    total = db.scalar(select(func.count()).select_from(query.subquery())) or 0
    rows = db.execute(
        query.order_by(Booking.created_at.desc()).limit(limit).offset((page - 1) * limit)
    ).all()
    return [(booking, customer_name_for(requester)) for booking, requester in rows], total
