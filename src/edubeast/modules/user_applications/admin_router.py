"""
User Applications Reviewer Router

Endpoints for reviewers (school_admin or super_admin) to work the pending
queue and decide applications.

Endpoints:
- GET /admin/user-applications/pending - Pending applications, newest first
- GET /admin/user-applications/pending/grouped - Pending applications by role
- GET /admin/user-applications/approved - Users created by approval
- GET /admin/user-applications/stats - Dashboard counts
- GET /admin/user-applications/{id} - Application details
- POST /admin/user-applications/{id}/approve - Approve with assignments
- POST /admin/user-applications/{id}/reject - Reject with optional reason

Security:
- All endpoints require a valid JWT with a reviewer role
- Rate limiting on decision endpoints
- Audit logging for every decision
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from edubeast.core.auth import CurrentUser, get_current_reviewer
from edubeast.core.database import get_db
from edubeast.core.exceptions import ServiceError, internal_error, to_http_exception
from edubeast.core.rate_limit import enforce_rate_limit
from edubeast.modules.user_applications import service
from edubeast.modules.user_applications.models import ApplicantRole
from edubeast.modules.user_applications.schemas import (
    ApplicationResponse,
    ApprovedUserResponse,
    ApproveRequest,
    ApproveResponse,
    PendingByRoleResponse,
    RejectRequest,
    RejectResponse,
    ReviewStats,
)
from edubeast.modules.user_applications.service import (
    ApplicationNotFoundError,
    PreconditionNotMetError,
    StaleDecisionError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_APPROVE = (30, 60)
RATE_LIMIT_REJECT = (30, 60)


async def _check_reviewer_rate_limit(
    reviewer: CurrentUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for a reviewer action.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    await enforce_rate_limit(f"reviewer:{action}:{reviewer.id}", limit, window_seconds)


_DECISION_RESPONSES = {
    401: {"description": "Unauthorized - invalid or missing token"},
    403: {"description": "Forbidden - not a reviewer"},
    404: {"description": "Application not found"},
    409: {
        "description": "Already decided the other way, stale version, "
        "duplicate email, or decision already in progress",
    },
}


# ============================================
# Pending Queue
# ============================================


@router.get(
    "/pending",
    response_model=list[ApplicationResponse],
    summary="List Pending Applications",
    description="""
All pending applications, newest submission first. Not paginated.

**Filters:**
- `role`: only applications for this role
""",
)
async def list_pending(
    role: ApplicantRole | None = Query(None, description="Filter by requested role"),
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> list[ApplicationResponse]:
    try:
        applications = await service.list_pending(db, role)
    except Exception as e:
        logger.exception(f"Error listing pending applications: {e}")
        raise internal_error() from e

    logger.info(f"Reviewer {reviewer.id} listed {len(applications)} pending applications")
    return [ApplicationResponse.model_validate(app) for app in applications]


@router.get(
    "/pending/grouped",
    response_model=PendingByRoleResponse,
    summary="List Pending Applications by Role",
)
async def list_pending_grouped(
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> PendingByRoleResponse:
    try:
        grouped = await service.list_pending_grouped(db)
    except Exception as e:
        logger.exception(f"Error grouping pending applications: {e}")
        raise internal_error() from e

    return PendingByRoleResponse(
        **{
            role: [ApplicationResponse.model_validate(app) for app in apps]
            for role, apps in grouped.items()
        }
    )


@router.get(
    "/approved",
    response_model=list[ApprovedUserResponse],
    summary="List Approved Users",
    description="Users created by approving an application, oldest approval first, "
    "with their class, subject and linked-student assignments.",
)
async def list_approved(
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> list[ApprovedUserResponse]:
    try:
        users = await service.list_approved(db)
    except Exception as e:
        logger.exception(f"Error listing approved users: {e}")
        raise internal_error() from e

    return [ApprovedUserResponse.model_validate(user) for user in users]


@router.get(
    "/stats",
    response_model=ReviewStats,
    summary="Get Review Statistics",
)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ReviewStats:
    try:
        stats = await service.get_review_stats(db)
    except Exception as e:
        logger.exception(f"Error getting review stats: {e}")
        raise internal_error() from e

    return ReviewStats(**stats)


@router.get(
    "/{application_id}",
    response_model=ApplicationResponse,
    summary="Get Application Details",
    responses={404: {"description": "Application not found"}},
)
async def get_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ApplicationResponse:
    try:
        application = await service.get_application(db, application_id)
    except ApplicationNotFoundError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error getting application {application_id}: {e}")
        raise internal_error() from e

    return ApplicationResponse.model_validate(application)


# ============================================
# Decisions
# ============================================


@router.post(
    "/{application_id}/approve",
    response_model=ApproveResponse,
    summary="Approve Application",
    description="""
Approve a pending application and create the user account.

**Assignments:** the reviewer's selection is authoritative. Only kinds that
apply to the role are stored: classes and subjects for teachers, classes for
students, linked students for parents.

**Requirements:**
- Teachers need at least one class (422 `PRECONDITION_NOT_MET` otherwise)
- If `expected_version` is sent it must match the current version (409 `STALE_DECISION`)

**Effects:**
- Account created with a temporary password and `must_change_password`
- Students get a generated student ID
- Credentials emailed to the applicant

Approving an already approved application returns the existing account
with `already_decided: true`.
""",
    responses={
        200: {"description": "Application approved", "model": ApproveResponse},
        **_DECISION_RESPONSES,
        422: {"description": "Precondition not met or invalid assignment values"},
        429: {"description": "Too many decisions"},
    },
)
async def approve_application(
    application_id: UUID,
    data: ApproveRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ApproveResponse:
    await _check_reviewer_rate_limit(reviewer, "approve", *RATE_LIMIT_APPROVE)

    try:
        result = await service.approve_application(
            db,
            application_id,
            reviewer.id,
            data.assignments,
            expected_version=data.expected_version,
        )
    except PreconditionNotMetError as e:
        logger.warning(f"Approval precondition failed for {application_id}: {e.message}")
        raise to_http_exception(e) from e
    except StaleDecisionError as e:
        logger.warning(f"Stale approval of {application_id} by reviewer {reviewer.id}")
        raise to_http_exception(e) from e
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error approving application: {e}")
        raise internal_error() from e

    logger.info(
        f"Reviewer {reviewer.id} approved application {application_id}. "
        f"User: {result.user.id}, already_decided={result.already_decided}"
    )

    response = ApproveResponse(
        id=result.application.id,
        status=result.application.status,
        user=ApprovedUserResponse.model_validate(result.user),
        already_decided=result.already_decided,
    )
    if result.already_decided:
        response.message = "Application was already approved."
    return response


@router.post(
    "/{application_id}/reject",
    response_model=RejectResponse,
    summary="Reject Application",
    description="""
Reject a pending application.

`reason` is optional; when missing or blank the stored reason is
"Application does not meet requirements". The applicant is notified by email.

Rejecting an already rejected application returns the existing record
with `already_decided: true`.
""",
    responses={
        200: {"description": "Application rejected", "model": RejectResponse},
        **_DECISION_RESPONSES,
        429: {"description": "Too many decisions"},
    },
)
async def reject_application(
    application_id: UUID,
    data: RejectRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> RejectResponse:
    await _check_reviewer_rate_limit(reviewer, "reject", *RATE_LIMIT_REJECT)

    try:
        result = await service.reject_application(
            db,
            application_id,
            reviewer.id,
            data.reason,
            expected_version=data.expected_version,
        )
    except StaleDecisionError as e:
        logger.warning(f"Stale rejection of {application_id} by reviewer {reviewer.id}")
        raise to_http_exception(e) from e
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error rejecting application: {e}")
        raise internal_error() from e

    logger.info(f"Reviewer {reviewer.id} rejected application {application_id}")

    response = RejectResponse(
        id=result.application.id,
        status=result.application.status,
        reason=result.application.decision_reason or service.DEFAULT_REJECTION_REASON,
        already_decided=result.already_decided,
    )
    if result.already_decided:
        response.message = "Application was already rejected."
    return response
