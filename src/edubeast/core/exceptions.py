"""
Service Errors

Base exception for business-rule failures raised by service layers.
Routers convert these to ``HTTPException(status_code, {"error", "message"})``.
"""

from fastapi import HTTPException


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ValidationFailedError(ServiceError):
    """A required field is missing or a value is not allowed."""

    def __init__(
        self,
        message: str,
        description: str | None = None,
        fields: list[str] | None = None,
    ):
        self.description = description
        self.fields = fields or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=422,
        )


class PersistenceFailureError(ServiceError):
    """The data store rejected a call. Nothing was changed; the caller may retry."""

    def __init__(self, message: str = "The request could not be saved. Please try again."):
        super().__init__(
            message=message,
            error_code="PERSISTENCE_FAILURE",
            status_code=503,
        )


class ActionInProgressError(ServiceError):
    """The same action is already running (e.g. a double-clicked button)."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(
            message="This action is already in progress. Please wait for it to finish.",
            error_code="ACTION_IN_PROGRESS",
            status_code=409,
        )


def to_http_exception(e: ServiceError) -> HTTPException:
    """Convert a service error to the API's structured error response."""
    detail = {"error": e.error_code, "message": e.message}
    if getattr(e, "description", None):
        detail["description"] = e.description
    if isinstance(e, ValidationFailedError) and e.fields:
        detail["fields"] = e.fields
    return HTTPException(status_code=e.status_code, detail=detail)


def internal_error() -> HTTPException:
    """Generic 500 for unexpected failures; the cause is logged, never returned."""
    return HTTPException(
        status_code=500,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )
