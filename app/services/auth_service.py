import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from app.db.models.user import User, UserRole
from app.schemas.auth import AuthResponse, RefreshRequest, SigninRequest, SignupRequest, TokenResponse
from app.schemas.user import UserResponse
from app.services.user_service import PHONE_TAKEN_DETAIL

logger = logging.getLogger("app.auth")

INVALID_CREDENTIALS_DETAIL = "Invalid credentials"
ACCOUNT_BLOCKED_DETAIL = "Account is suspended or banned"


def issue_tokens(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(subject=user.id, extra_claims={"role": user.role}),
        refresh_token=create_refresh_token(subject=user.id),
    )


def _auth_response(user: User) -> AuthResponse:
    tokens = issue_tokens(user)
    return AuthResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserResponse.model_validate(user),
    )


def signup_user(payload: SignupRequest, db: Session) -> AuthResponse:
    if payload.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admin accounts cannot be created via signup",
        )

    email = payload.email.lower()
    if db.scalar(select(User.id).where(User.email == email)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
    if payload.phone and db.scalar(select(User.id).where(User.phone == payload.phone)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=PHONE_TAKEN_DETAIL)

    user = User(
        email=email,
        phone=payload.phone,
        name=payload.name,
        hashed_password=get_password_hash(payload.password),
        role=payload.role.value,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists") from None
    db.refresh(user)
    logger.info("user_signed_up user_id=%s role=%s", user.id, user.role)
    return _auth_response(user)


def signin_user(payload: SigninRequest, db: Session) -> AuthResponse:
    user = db.scalar(select(User).where(User.email == payload.email.lower()))
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS_DETAIL)
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACCOUNT_BLOCKED_DETAIL)
    return _auth_response(user)


def refresh_tokens(payload: RefreshRequest, db: Session) -> TokenResponse:
    unauthorized_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid refresh token",
    )
    try:
        claims = decode_token(payload.refresh_token, expected_type=REFRESH_TOKEN_TYPE)
    except ValueError:
        raise unauthorized_exc from None

    user = db.get(User, claims["sub"])
    if not user or not user.is_active:
        raise unauthorized_exc
    return issue_tokens(user)
