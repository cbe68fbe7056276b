from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.db.models.user import User
from app.db.session import get_db
from app.schemas.common import ApiResponse
from app.schemas.user import ProfileUpdateRequest, UserResponse
from app.services.user_service import update_profile

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[UserResponse], status_code=status.HTTP_200_OK)
def get_me(current_user: User = Depends(get_current_user)) -> ApiResponse[UserResponse]:
    return ApiResponse[UserResponse](data=UserResponse.model_validate(current_user))


@router.put("/profile", response_model=ApiResponse[UserResponse], status_code=status.HTTP_200_OK)
def update_my_profile(
    payload: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[UserResponse]:
    user = update_profile(db=db, user=current_user, payload=payload)
    return ApiResponse[UserResponse](
        data=UserResponse.model_validate(user),
        message="Profile updated successfully",
    )
