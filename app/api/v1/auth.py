from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.core.config import settings
from app.core.rate_limiter import enforce_rate_limit
from app.db.models.user import User
from app.db.session import get_db
from app.schemas.auth import AuthResponse, RefreshRequest, SigninRequest, SignupRequest, TokenResponse
from app.schemas.common import ApiResponse
from app.schemas.user import UserResponse
from app.services.auth_service import refresh_tokens, signin_user, signup_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=ApiResponse[AuthResponse], status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ApiResponse[AuthResponse]:
    enforce_rate_limit("signup", request, settings.auth_register_max_attempts)
    return ApiResponse[AuthResponse](data=signup_user(payload=payload, db=db), message="User created successfully")


@router.post("/signin", response_model=ApiResponse[AuthResponse], status_code=status.HTTP_200_OK)
def signin(
    payload: SigninRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ApiResponse[AuthResponse]:
    enforce_rate_limit("signin", request, settings.auth_login_max_attempts)
    return ApiResponse[AuthResponse](data=signin_user(payload=payload, db=db), message="Login successful")


@router.post("/refresh", response_model=ApiResponse[TokenResponse], status_code=status.HTTP_200_OK)
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)) -> ApiResponse[TokenResponse]:
    return ApiResponse[TokenResponse](data=refresh_tokens(payload=payload, db=db), message="Token refreshed successfully")


@router.get("/me", response_model=ApiResponse[UserResponse], status_code=status.HTTP_200_OK)
def me(current_user: User = Depends(get_current_user)) -> ApiResponse[UserResponse]:
    return ApiResponse[UserResponse](data=UserResponse.model_validate(current_user))
