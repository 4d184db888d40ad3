"""
Authentication Router

Handles user authentication endpoints:
- Registration (email/password, display name, role)
- Login (email/password → JWT tokens)
- Token refresh (refresh token → new token pair)
- Get current user (from JWT token)

Security:
=========
- Passwords are hashed with bcrypt before storage
- Plain text passwords are never logged or stored
- Access tokens are short-lived, refresh tokens longer-lived
- Tokens carry the user's role as the "role" claim
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select

from bookshelf.config import get_settings
from bookshelf.dependencies import ActiveUser, DbSession
from bookshelf.models import User
from bookshelf.schemas.user import (
    RefreshTokenRequest,
    TokenResponse,
    UserCreate,
    UserResponse,
)
from bookshelf.services.rate_limiter import limiter
from bookshelf.services.security import (
    create_token_pair,
    hash_password,
    verify_password,
    verify_token_type,
)

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        401: {"description": "Unauthorized"},
        409: {"description": "Email already registered"},
    },
)


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
@limiter.limit("5/minute")
def register(
    request: Request,
    user_data: UserCreate,
    db: DbSession,
) -> UserResponse:
    """
    Register a new reader or author.

    **Password Requirements:**
    - Minimum 8 characters
    - At least 1 uppercase letter, 1 lowercase letter and 1 number
    """
    existing = db.execute(
        select(User).where(User.email == user_data.email)
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        email=user_data.email,
        hashed_password=hash_password(user_data.password),
        display_name=user_data.display_name,
        role=user_data.role.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"New {user.role} registered: {user.email}")
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with email and password",
)
@limiter.limit("10/minute")
def login(
    request: Request,
    db: DbSession,
    form_data: OAuth2PasswordRequestForm = Depends(),
) -> TokenResponse:
    """
    Authenticate and receive a JWT token pair.

    **Note:** Use the email address in the 'username' field (OAuth2 standard).
    """
    email = form_data.username
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    if user is None or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Login failed for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        logger.warning(f"Login failed: inactive account {email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    logger.info(f"User logged in: {user.email}")
    return TokenResponse(**create_token_pair(user.id, user.role))


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token",
)
@limiter.limit("10/minute")
def refresh(
    request: Request,
    body: RefreshTokenRequest,
    db: DbSession,
) -> TokenResponse:
    """
    Exchange a refresh token for a new token pair.

    The role claim is re-read from the user record, so a role change takes
    effect on the next refresh.
    """
    payload = verify_token_type(body.refresh_token, "refresh")
    user_id = payload.get("sub") if payload else None
    user = db.get(User, user_id) if user_id else None

    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenResponse(**create_token_pair(user.id, user.role))


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
def get_me(current_user: ActiveUser) -> UserResponse:
    return UserResponse.model_validate(current_user)
