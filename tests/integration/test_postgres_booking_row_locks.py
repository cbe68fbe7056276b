import os

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from app.db.base import Base
from app.db.models import Booking, BookingStatus, User, UserRole
from app.schemas.booking import BookingCreateRequest
from app.services.booking_service import LOCK_CONFLICT_DETAIL, SLOT_ALREADY_BOOKED_DETAIL, create_booking

TEST_POSTGRES_DATABASE_URL = os.getenv("TEST_POSTGRES_DATABASE_URL")


@pytest.fixture(scope="module")
def postgres_session_factory():
    if not TEST_POSTGRES_DATABASE_URL:
        pytest.skip("TEST_POSTGRES_DATABASE_URL is not set")

    engine = create_engine(TEST_POSTGRES_DATABASE_URL, pool_pre_ping=True)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    try:
        yield SessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.mark.postgres
def test_postgres_provider_lock_conflict_then_success(postgres_session_factory):
    seed_session = postgres_session_factory()
    provider = User(email="pg-lock-clinic@example.com", hashed_password="x", role=UserRole.CLINIC.value)
    requester = User(email="pg-lock-player@example.com", hashed_password="x", role=UserRole.PLAYER.value)
    seed_session.add_all([provider, requester])
    seed_session.commit()
    provider_id = provider.id
    requester_id = requester.id
    seed_session.close()

    payload = BookingCreateRequest(
        provider_id=provider_id,
        booking_type="clinic",
        date="2025-03-01",
        time="10:00",
        price=80,
    )

    lock_holder = postgres_session_factory()
    try:
        locked_provider = lock_holder.scalar(select(User).where(User.id == provider_id).with_for_update())
        assert locked_provider is not None

        contender = postgres_session_factory()
        try:
            with pytest.raises(HTTPException) as exc_info:
                create_booking(contender, requester_id, payload)
            assert exc_info.value.status_code == 409
            assert exc_info.value.detail == LOCK_CONFLICT_DETAIL
        finally:
            contender.close()
    finally:
        lock_holder.rollback()
        lock_holder.close()

    success_session = postgres_session_factory()
    booking = create_booking(success_session, requester_id, payload)
    success_session.close()

    assert booking.status == BookingStatus.REQUESTED.value

    duplicate_session = postgres_session_factory()
    try:
        with pytest.raises(HTTPException) as exc_info:
            create_booking(duplicate_session, requester_id, payload)
        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == SLOT_ALREADY_BOOKED_DETAIL
    finally:
        duplicate_session.close()

    check_session = postgres_session_factory()
    total_bookings = check_session.scalar(select(func.count()).select_from(Booking))
    check_session.close()

    assert total_bookings == 1
