"""
Onboarding Router

Six-step school setup wizard for an authenticated user.

Endpoints:
- GET /onboarding/options - Option sets and defaults
- POST /onboarding/sessions - Start or resume the caller's session
- GET /onboarding/sessions/{id} - Session state
- PATCH /onboarding/sessions/{id} - Update wizard fields
- POST /onboarding/sessions/{id}/features - Toggle one feature
- POST /onboarding/sessions/{id}/next - Next step (gated)
- POST /onboarding/sessions/{id}/back - Previous step
- POST /onboarding/sessions/{id}/complete - Provision the school
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from edubeast.core.auth import CurrentUser, get_current_user
from edubeast.core.database import get_db
from edubeast.core.exceptions import ServiceError, internal_error, to_http_exception
from edubeast.modules.onboarding import service
from edubeast.modules.onboarding.models import OnboardingSession
from edubeast.modules.onboarding.schemas import (
    CompleteOnboardingResponse,
    FeatureToggleRequest,
    OnboardingOptionsResponse,
    OnboardingSessionResponse,
    OnboardingSessionUpdate,
)
from edubeast.modules.tenants.schemas import TenantResponse

logger = logging.getLogger(__name__)

router = APIRouter()

_SESSION_RESPONSES = {
    404: {"description": "Session not found"},
    409: {"description": "Session already completed"},
}


async def _run(operation) -> OnboardingSessionResponse:
    """Await a session operation and map service errors to HTTP errors."""
    try:
        session: OnboardingSession = await operation
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected onboarding error: {e}")
        raise internal_error() from e
    return OnboardingSessionResponse.from_session(session)


@router.get(
    "/options",
    response_model=OnboardingOptionsResponse,
    summary="List Wizard Options",
)
async def get_options() -> OnboardingOptionsResponse:
    return OnboardingOptionsResponse()


@router.post(
    "/sessions",
    response_model=OnboardingSessionResponse,
    summary="Start Onboarding",
    description="Resume the caller's in-progress session, or start a new one with defaults. "
    "Users already linked to a school get 409 `ALREADY_ONBOARDED`.",
    responses={409: {"description": "Already linked to a school"}},
)
async def start_session(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> OnboardingSessionResponse:
    return await _run(service.start_session(db, current_user.id))


@router.get(
    "/sessions/{session_id}",
    response_model=OnboardingSessionResponse,
    summary="Get Onboarding Session",
    responses={404: {"description": "Session not found"}},
)
async def get_session(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> OnboardingSessionResponse:
    return await _run(service.get_session(db, session_id, current_user.id))


@router.patch(
    "/sessions/{session_id}",
    response_model=OnboardingSessionResponse,
    summary="Update Wizard Fields",
    description="""
Partial update. Only the fields sent are changed; `null` clears a field.

Changing `name` also updates `slug` and `meta_title` unless they were edited
by hand. Clearing `slug` or `meta_title` makes them follow `name` again.
""",
    responses=_SESSION_RESPONSES,
)
async def update_session(
    session_id: UUID,
    data: OnboardingSessionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> OnboardingSessionResponse:
    return await _run(service.update_session(db, session_id, current_user.id, data.changes()))


@router.post(
    "/sessions/{session_id}/features",
    response_model=OnboardingSessionResponse,
    summary="Toggle Feature",
    responses={**_SESSION_RESPONSES, 422: {"description": "Unknown feature key"}},
)
async def toggle_feature(
    session_id: UUID,
    data: FeatureToggleRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> OnboardingSessionResponse:
    return await _run(
        service.toggle_feature(db, session_id, current_user.id, data.key, data.enabled)
    )


@router.post(
    "/sessions/{session_id}/next",
    response_model=OnboardingSessionResponse,
    summary="Next Step",
    description="Move forward one step. Refused with 422 `VALIDATION_ERROR` and the "
    "list of missing `fields` when the current step is incomplete.",
    responses={**_SESSION_RESPONSES, 422: {"description": "Required fields missing"}},
)
async def next_step(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> OnboardingSessionResponse:
    return await _run(service.advance(db, session_id, current_user.id))


@router.post(
    "/sessions/{session_id}/back",
    response_model=OnboardingSessionResponse,
    summary="Previous Step",
    responses=_SESSION_RESPONSES,
)
async def previous_step(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> OnboardingSessionResponse:
    return await _run(service.go_back(db, session_id, current_user.id))


@router.post(
    "/sessions/{session_id}/complete",
    response_model=CompleteOnboardingResponse,
    summary="Complete Setup",
    description="""
Create the school from the session.

**Requirements:** the session is on the last step and every step's required
fields are filled.

**Effects (all or nothing):**
- Tenant created in `trial` status, with a unique slug (`-2`, `-3`, ... if taken)
- One feature row per known feature
- Caller linked to the new school

A confirmation email is sent to the school's contact email.
""",
    responses={
        **_SESSION_RESPONSES,
        422: {"description": "Steps incomplete"},
        500: {"description": "Setup failed; nothing was created"},
    },
)
async def complete(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> CompleteOnboardingResponse:
    try:
        result = await service.complete(db, session_id, current_user.id)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error completing onboarding: {e}")
        raise internal_error() from e

    logger.info(f"User {current_user.id} completed onboarding: tenant {result.tenant.id}")

    return CompleteOnboardingResponse(
        session=OnboardingSessionResponse.from_session(result.session),
        tenant=TenantResponse.model_validate(result.tenant),
    )
