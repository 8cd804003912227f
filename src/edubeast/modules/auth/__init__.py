"""Authentication module."""

from edubeast.modules.auth.router import router
from edubeast.modules.auth.schemas import LoginRequest, LoginResponse, TokenResponse

__all__ = ["router", "LoginRequest", "LoginResponse", "TokenResponse"]
