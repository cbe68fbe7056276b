from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from app.db.base import Base
from app.db.models import Booking, BookingStatus, User, UserRole
from app.schemas.booking import BookingCreateRequest
from app.services.booking_service import cancel_booking, create_booking, update_booking_status


def _race_database(tmp_path):
    db_file = tmp_path / "race.db"
    engine = create_engine(f"sqlite+pysqlite:///{db_file}", connect_args={"check_same_thread": False})
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)

    seed_session = SessionLocal()
    provider = User(email="race-academy@example.com", hashed_password="x", role=UserRole.ACADEMY.value)
    requester = User(email="race-player@example.com", hashed_password="x", role=UserRole.PLAYER.value)
    seed_session.add_all([provider, requester])
    seed_session.commit()
    ids = provider.id, requester.id
    seed_session.close()
    return SessionLocal, ids


def _slot_payload(provider_id: str) -> BookingCreateRequest:
    return BookingCreateRequest(
        provider_id=provider_id,
        booking_type="academy",
        date="2025-03-01",
        time="4:00 PM",
        price=150,
    )


@pytest.mark.concurrent
def test_two_parallel_booking_attempts_for_one_slot_only_one_succeeds(tmp_path):
    SessionLocal, (provider_id, requester_id) = _race_database(tmp_path)

    def attempt() -> str:
        session = SessionLocal()
        try:
            create_booking(session, requester_id, _slot_payload(provider_id))
            return "created"
        except HTTPException as exc:
            if exc.status_code == 409:
                return "conflict"
            raise
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: attempt(), range(2)))

    assert sorted(results) == ["conflict", "created"]

    check = SessionLocal()
    total_bookings = check.scalar(select(func.count()).select_from(Booking))
    check.close()

    assert total_bookings == 1


@pytest.mark.concurrent
def test_parallel_accept_and_cancel_apply_exactly_one_change(tmp_path):
    SessionLocal, (provider_id, requester_id) = _race_database(tmp_path)
    seed_session = SessionLocal()
    booking_id = create_booking(seed_session, requester_id, _slot_payload(provider_id)).id
    seed_session.close()

    def accept() -> Booking:
        session = SessionLocal()
        try:
            return update_booking_status(session, booking_id, provider_id, BookingStatus.ACCEPTED)
        finally:
            session.close()

    def cancel() -> Booking:
        session = SessionLocal()
        try:
            return cancel_booking(session, booking_id, requester_id)
        finally:
            session.close()

    outcomes = []
    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(accept), pool.submit(cancel)]
        for future in futures:
            try:
                future.result()
                outcomes.append("applied")
            except HTTPException as exc:
                outcomes.append(exc.status_code)

    check = SessionLocal()
    final_status = check.get(Booking, booking_id).status
    check.close()

    if outcomes == ["applied", "applied"]:
        # accept landed first and cancelling an accepted booking is legal
        assert final_status == BookingStatus.CANCELLED.value
    else:
        assert outcomes.count("applied") == 1
        assert {o for o in outcomes if o != "applied"} <= {400, 409}
        assert final_status in {BookingStatus.ACCEPTED.value, BookingStatus.CANCELLED.value}
