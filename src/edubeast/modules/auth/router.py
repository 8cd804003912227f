"""Authentication router."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from edubeast.core.auth import CurrentUser, get_current_user
from edubeast.core.database import get_db
from edubeast.core.rate_limit import client_ip, enforce_rate_limit
from edubeast.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from edubeast.modules.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    TokenResponse,
    UserResponse,
)
from edubeast.modules.users.models import User
from edubeast.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_LOGIN = (10, 60)


def _invalid_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "INVALID_CREDENTIALS",
            "message": "Invalid email or password.",
        },
    )


def _access_token_for(user: User) -> str:
    return create_access_token(
        subject=str(user.id),
        extra_claims={
            "email": user.email,
            "role": user.role.value,
            "name": user.full_name,
        },
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate user and return JWT tokens.

    Approved applicants log in with the temporary password from their
    approval email; ``must_change_password`` tells the client to send them
    to the change-password screen.

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        Access token, refresh token, and user info

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account inactive
        HTTPException 429: Too many attempts
    """
    await enforce_rate_limit(f"auth:login:{client_ip(request)}", *RATE_LIMIT_LOGIN)

    user = await UserRepository.get_by_email(db, credentials.email)

    if not user:
        logger.warning("Login attempt for unknown email")
        raise _invalid_credentials()

    if not verify_password(credentials.password, user.password_hash):
        logger.warning(f"Invalid password for user: {user.id}")
        raise _invalid_credentials()

    if not user.is_active:
        logger.warning(f"Login attempt for inactive account: {user.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ACCOUNT_INACTIVE",
                "message": "Your account has been deactivated.",
            },
        )

    await UserRepository.record_login(db, user)
    await db.commit()

    logger.info(f"User logged in: {user.id} (role: {user.role.value})")

    return LoginResponse(
        access_token=_access_token_for(user),
        refresh_token=create_refresh_token(subject=str(user.id)),
        token_type="bearer",
        must_change_password=user.must_change_password,
        user=UserResponse.model_validate(user),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    data: RefreshRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """Exchange a refresh token for a new access token."""
    payload = decode_token(data.refresh_token, expected_type=REFRESH_TOKEN_TYPE)
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "INVALID_TOKEN",
            "message": "Refresh token is invalid or expired.",
        },
    )
    if payload is None:
        raise invalid

    try:
        user_id = UUID(payload.get("sub", ""))
    except ValueError as e:
        raise invalid from e

    user = await UserRepository.get_by_id(db, user_id)
    if user is None or not user.is_active:
        raise invalid

    return TokenResponse(access_token=_access_token_for(user))


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    data: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    """
    Change the caller's password and clear ``must_change_password``.

    Raises:
        HTTPException 401: Current password is wrong
        HTTPException 404: No account for the token subject
        HTTPException 422: New password same as current
    """
    user = await UserRepository.get_by_id(db, current_user.id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "USER_NOT_FOUND", "message": "Account not found."},
        )

    if not verify_password(data.current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "INVALID_CREDENTIALS",
                "message": "Current password is incorrect.",
            },
        )

    if data.new_password == data.current_password:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error": "VALIDATION_ERROR",
                "message": "New password must be different from the current password.",
            },
        )

    await UserRepository.set_password(db, user, hash_password(data.new_password))
    await db.commit()
