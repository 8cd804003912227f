"""
Authentication and Authorization

FastAPI dependencies that validate bearer JWTs and enforce roles.

SECURITY NOTE:
- ``dev-token-<role>`` bearer tokens are accepted ONLY when PYTHON_ENV=development
- Production environments MUST set PYTHON_ENV=production
"""

import logging
import os
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from edubeast.core.config import settings
from edubeast.core.security import decode_token

logger = logging.getLogger(__name__)

security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)

REVIEWER_ROLES = frozenset({"school_admin", "super_admin"})

_DEV_TOKEN_PREFIX = "dev-token-"
_DEV_ROLES = ("super_admin", "school_admin", "teacher", "student", "parent")


@dataclass
class CurrentUser:
    """
    The authenticated caller, populated from JWT claims.

    Attributes:
        id: User's unique identifier
        email: User's email address
        role: User's role (student, teacher, parent, school_admin, super_admin)
        name: Display name, if present in the token
    """

    id: UUID
    email: str
    role: str
    name: str | None = None

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, email={self.email}, role={self.role})"


def _is_dev_mode_safe() -> bool:
    """
    Check that development token bypass may be enabled.

    Both the settings and the raw PYTHON_ENV variable must agree that this
    is not a production or staging deployment.
    """
    env_var = os.getenv("PYTHON_ENV", "").lower()
    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var not in ("production", "staging")
    )

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


_DEVELOPMENT_MODE = _is_dev_mode_safe()


def _dev_user(role: str) -> CurrentUser:
    # Stable UUID per role so dev sessions survive restarts
    index = _DEV_ROLES.index(role) + 1
    return CurrentUser(
        id=UUID(int=index),
        email=f"{role.replace('_', '-')}@edubeast.dev",
        role=role,
        name=f"Development {role.replace('_', ' ').title()}",
    )


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _validate_jwt_token(token: str) -> CurrentUser:
    """
    Validate an access token and extract the caller.

    Args:
        token: JWT from the Authorization header

    Returns:
        CurrentUser built from the token claims

    Raises:
        HTTPException 401: If the token is invalid, expired or missing claims
    """
    if _DEVELOPMENT_MODE and token.startswith(_DEV_TOKEN_PREFIX):
        role = token.removeprefix(_DEV_TOKEN_PREFIX)
        if role in _DEV_ROLES:
            logger.debug(f"Development mode: using test token for role {role}")
            return _dev_user(role)

    payload = decode_token(token)
    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")

        return CurrentUser(
            id=UUID(user_id_str),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            name=payload.get("name"),
        )
    except ValueError as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    Dependency returning any authenticated user.

    Raises:
        HTTPException 401: If the token is missing, invalid or expired
    """
    return _validate_jwt_token(credentials.credentials)


async def get_current_reviewer(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """
    Dependency returning an authenticated reviewer (school_admin or super_admin).

    Usage:
        @router.post("/{application_id}/approve")
        async def approve(reviewer: CurrentUser = Depends(get_current_reviewer)):
            ...

    Raises:
        HTTPException 401: If the token is missing, invalid or expired
        HTTPException 403: If the user cannot review applications
    """
    if not user.is_reviewer:
        logger.warning(
            f"Access denied: User {user.id} ({user.email}) has role '{user.role}', "
            "reviewer role required"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "REVIEWER_ACCESS_REQUIRED",
                "message": "Reviewer access is required for this endpoint.",
            },
        )

    return user


__all__ = [
    "REVIEWER_ROLES",
    "CurrentUser",
    "get_current_reviewer",
    "get_current_user",
]
