"""Authentication schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from edubeast.modules.users.models import UserRole

MIN_PASSWORD_LENGTH = 8


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    """Refresh token exchange request."""

    refresh_token: str


class ChangePasswordRequest(BaseModel):
    """Password change, required on first login with a temporary password."""

    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)


class TokenResponse(BaseModel):
    """Token response schema."""

    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    """User response schema for login."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    role: UserRole
    tenant_id: UUID | None = None
    student_code: str | None = None
    must_change_password: bool


class LoginResponse(BaseModel):
    """Login response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    must_change_password: bool
    user: UserResponse
