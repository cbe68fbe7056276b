from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.db.models import BookingStatus, BookingType, User
from app.db.session import get_db
from app.schemas.booking import BookingCreateRequest, BookingResponse, BookingStatusUpdateRequest
from app.schemas.common import ApiResponse
from app.services import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _envelope(booking, message: str) -> ApiResponse[BookingResponse]:
    return ApiResponse[BookingResponse](data=BookingResponse.model_validate(booking), message=message)


@router.post("", response_model=ApiResponse[BookingResponse], status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[BookingResponse]:
    booking = booking_service.create_booking(db=db, requester_id=current_user.id, payload=payload)
    return _envelope(booking, "Booking created successfully")


@router.get("", response_model=ApiResponse[list[BookingResponse]], status_code=status.HTTP_200_OK)
def list_my_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    type_filter: BookingType | None = Query(default=None, alias="type"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[list[BookingResponse]]:
    bookings = booking_service.list_requester_bookings(
        db=db,
        user_id=current_user.id,
        status_filter=status_filter,
        type_filter=type_filter,
    )
    return ApiResponse[list[BookingResponse]](
        data=[BookingResponse.model_validate(booking) for booking in bookings],
        message="Bookings retrieved successfully",
    )


@router.get("/provider", response_model=ApiResponse[list[BookingResponse]], status_code=status.HTTP_200_OK)
def list_provider_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[list[BookingResponse]]:
    bookings = booking_service.list_provider_bookings(
        db=db,
        provider_id=current_user.id,
        status_filter=status_filter,
    )
    return ApiResponse[list[BookingResponse]](
        data=[BookingResponse.model_validate(booking) for booking in bookings],
        message="Provider bookings retrieved successfully",
    )


@router.get("/{booking_id}", response_model=ApiResponse[BookingResponse], status_code=status.HTTP_200_OK)
def get_booking_by_id(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[BookingResponse]:
    booking = booking_service.get_booking_for_party(db=db, booking_id=booking_id, user_id=current_user.id)
    return _envelope(booking, "Booking retrieved successfully")


@router.put("/{booking_id}/status", response_model=ApiResponse[BookingResponse], status_code=status.HTTP_200_OK)
def update_booking_status(
    booking_id: str,
    payload: BookingStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[BookingResponse]:
    booking = booking_service.update_booking_status(
        db=db,
        booking_id=booking_id,
        caller_id=current_user.id,
        new_status=payload.status,
    )
    return _envelope(booking, "Booking status updated successfully")


@router.put("/{booking_id}/cancel", response_model=ApiResponse[BookingResponse], status_code=status.HTTP_200_OK)
def cancel_booking(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[BookingResponse]:
    booking = booking_service.cancel_booking(db=db, booking_id=booking_id, caller_id=current_user.id)
    return _envelope(booking, "Booking cancelled successfully")
