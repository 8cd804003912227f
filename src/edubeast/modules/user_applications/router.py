"""
User Applications Router

Public endpoints for prospective students, teachers and parents.
No authentication: applicants have no account yet.

Endpoints:
- POST /user-applications - Submit an application
- GET /user-applications/email-check - Is an email already pending or registered
- GET /user-applications/options - Role, class and subject option sets

Security:
- Per-IP rate limiting on submission and email checks
- Input validation via Pydantic schemas
- XSS prevention in email templates
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from edubeast.core.database import get_db
from edubeast.core.exceptions import ServiceError, internal_error, to_http_exception
from edubeast.core.rate_limit import client_ip, enforce_rate_limit
from edubeast.modules.user_applications import service
from edubeast.modules.user_applications.models import (
    CLASS_OPTIONS,
    SUBJECT_OPTIONS,
    ApplicantRole,
)
from edubeast.modules.user_applications.schemas import (
    ApplicationOptionsResponse,
    EmailCheckResponse,
    SubmitApplicationResponse,
    UserApplicationCreate,
)
from edubeast.modules.user_applications.service import DuplicateEmailError

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_SUBMIT = (5, 60)
RATE_LIMIT_EMAIL_CHECK = (20, 60)


@router.post(
    "",
    response_model=SubmitApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Application",
    description="""
Apply to join as a student, teacher or parent.

**Required fields:**
- All roles: `full_name`, `email`, `role`
- Teachers: `teacher.qualifications` and at least one `teacher.subjects` entry

Sections that do not match `role` are ignored, so a `teacher` section sent
with a `student` application is discarded.

**Duplicate Prevention:**
An email that is pending review or already belongs to an account is refused.
Rejected applicants may apply again.
""",
    responses={
        201: {"description": "Application submitted", "model": SubmitApplicationResponse},
        409: {
            "description": "Email already pending or registered",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "error": "DUPLICATE_EMAIL",
                            "message": "An application with this email already exists.",
                        }
                    }
                }
            },
        },
        422: {"description": "Validation error - missing or invalid fields"},
        429: {"description": "Too many submissions"},
    },
)
async def submit_application(
    request: Request,
    data: UserApplicationCreate,
    db: AsyncSession = Depends(get_db),
) -> SubmitApplicationResponse:
    """Submit an application to the pending queue."""
    await enforce_rate_limit(f"user_applications:submit:{client_ip(request)}", *RATE_LIMIT_SUBMIT)

    try:
        response = await service.submit_application(db, data)
        logger.info(f"Application submitted: id={response.id}, role={data.role.value}")
        return response

    except DuplicateEmailError as e:
        logger.warning(f"Duplicate application rejected: {e.message}")
        raise to_http_exception(e) from e
    except ServiceError as e:
        logger.error(f"Application service error: {e.message}")
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error submitting application: {e}")
        raise internal_error() from e


@router.get(
    "/email-check",
    response_model=EmailCheckResponse,
    summary="Check Email",
    description="Whether an email is already pending review or registered. "
    "Lets the form disable submission before the applicant fills it in.",
)
async def check_email(
    request: Request,
    email: EmailStr = Query(..., description="Email to check"),
    db: AsyncSession = Depends(get_db),
) -> EmailCheckResponse:
    await enforce_rate_limit(
        f"user_applications:email_check:{client_ip(request)}", *RATE_LIMIT_EMAIL_CHECK
    )

    normalized = email.strip().lower()
    try:
        submitted = await service.is_email_submitted(db, normalized)
    except Exception as e:
        logger.exception(f"Unexpected error checking email: {e}")
        raise internal_error() from e

    return EmailCheckResponse(email=normalized, submitted=submitted)


@router.get(
    "/options",
    response_model=ApplicationOptionsResponse,
    summary="List Application Options",
    description="Roles that can be applied for, and the fixed class and subject option sets.",
)
async def get_options() -> ApplicationOptionsResponse:
    return ApplicationOptionsResponse(
        roles=list(ApplicantRole),
        classes=CLASS_OPTIONS,
        subjects=SUBJECT_OPTIONS,
    )
