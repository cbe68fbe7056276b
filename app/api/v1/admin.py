from math import ceil

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import require_roles
from app.api.pagination import LimitParam, PageParam
from app.db.models import AccountStatus, BookingStatus, BookingType, User, UserRole
from app.db.session import get_db
from app.schemas.booking import AdminBookingListResponse, AdminBookingResponse, BookingResponse
from app.schemas.common import ApiResponse, Pagination
from app.schemas.user import AdminUserListResponse, UserResponse, UserStatusUpdateRequest
from app.services import booking_service, user_service

router = APIRouter(prefix="/admin", tags=["admin"])


def _admin_booking(booking, customer_name: str) -> AdminBookingResponse:
    base = BookingResponse.model_validate(booking)
    return AdminBookingResponse(**base.model_dump(), customer_name=customer_name)


@router.get("/bookings", response_model=ApiResponse[AdminBookingListResponse], status_code=status.HTTP_200_OK)
def list_all_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    type_filter: BookingType | None = Query(default=None, alias="type"),
    page: PageParam = 1,
    limit: LimitParam = 20,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ApiResponse[AdminBookingListResponse]:
    rows, total = booking_service.list_all_bookings(
        db=db,
        status_filter=status_filter,
        type_filter=type_filter,
        page=page,
        limit=limit,
    )
    return ApiResponse[AdminBookingListResponse](
        data=AdminBookingListResponse(
            bookings=[_admin_booking(booking, customer_name) for booking, customer_name in rows],
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=ceil(total / limit)),
        ),
        message="Bookings retrieved successfully",
    )


@router.get("/bookings/{booking_id}", response_model=ApiResponse[AdminBookingResponse], status_code=status.HTTP_200_OK)
def get_booking(
    booking_id: str,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ApiResponse[AdminBookingResponse]:
    booking = booking_service.get_booking_or_404(db=db, booking_id=booking_id)
    return ApiResponse[AdminBookingResponse](
        data=_admin_booking(booking, booking_service.customer_name_for(booking.requester)),
        message="Booking retrieved successfully",
    )


@router.get("/users", response_model=ApiResponse[AdminUserListResponse], status_code=status.HTTP_200_OK)
def list_users(
    role_filter: UserRole | None = Query(default=None, alias="role"),
    status_filter: AccountStatus | None = Query(default=None, alias="status"),
    page: PageParam = 1,
    limit: LimitParam = 20,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ApiResponse[AdminUserListResponse]:
    users, total = user_service.list_users(
        db=db,
        role_filter=role_filter,
        status_filter=status_filter,
        page=page,
        limit=limit,
    )
    return ApiResponse[AdminUserListResponse](
        data=AdminUserListResponse(
            users=[UserResponse.model_validate(user) for user in users],
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=ceil(total / limit)),
        ),
        message="Users retrieved successfully",
    )


@router.get("/users/{user_id}", response_model=ApiResponse[UserResponse], status_code=status.HTTP_200_OK)
def get_user(
    user_id: str,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ApiResponse[UserResponse]:
    user = user_service.get_user_or_404(db=db, user_id=user_id)
    return ApiResponse[UserResponse](
        data=UserResponse.model_validate(user),
        message="User retrieved successfully",
    )


@router.put("/users/{user_id}/status", response_model=ApiResponse[UserResponse], status_code=status.HTTP_200_OK)
def update_user_status(
    user_id: str,
    payload: UserStatusUpdateRequest,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ApiResponse[UserResponse]:
    user = user_service.update_user_status(
        db=db,
        user_id=user_id,
        admin_id=admin.id,
        new_status=payload.status,
    )
    return ApiResponse[UserResponse](
        data=UserResponse.model_validate(user),
        message="User status updated successfully",
    )
