"""
Onboarding Service Layer

Runs the school setup wizard against a persisted draft session and, on
completion, provisions the tenant.

1. Sessions:
   - start resumes the caller's in-progress session or creates one with defaults
   - sessions are only visible to their owner
   - a completed session is read-only

2. Editing and navigation go through ``OnboardingWizard`` so that slug and
   meta title derivation and step gates behave the same for every request.

3. Completion, in one transaction:
   - re-check every step gate
   - de-duplicate the slug (``-2``, ``-3``, ...)
   - create the tenant with branding and all feature rows
   - link the owner's account to the tenant
   - close the session
   On failure nothing is kept. The "school ready" email is sent after commit.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from edubeast.core.action_guard import action_guard
from edubeast.core.email import send_school_ready
from edubeast.core.exceptions import (
    PersistenceFailureError,
    ServiceError,
    ValidationFailedError,
)
from edubeast.modules.onboarding.models import OnboardingSession
from edubeast.modules.onboarding.repository import OnboardingRepository
from edubeast.modules.onboarding.wizard import (
    InvalidFeatureKeyError,
    OnboardingData,
    OnboardingWizard,
    StepValidationError,
)
from edubeast.modules.tenants.models import SLUG_MAX_LENGTH, Tenant
from edubeast.modules.tenants.repository import TenantRepository
from edubeast.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

STEP_VALIDATION_MESSAGE = "Please fill required fields"
STEP_VALIDATION_DESCRIPTION = "Complete all required fields before proceeding."


class OnboardingServiceError(ServiceError):
    """Base exception for onboarding service errors."""


class OnboardingSessionNotFoundError(OnboardingServiceError):
    """Raised when a session does not exist or belongs to someone else."""

    def __init__(self, session_id: UUID | None = None):
        message = (
            f"Onboarding session {session_id} not found"
            if session_id
            else "Onboarding session not found"
        )
        super().__init__(
            message=message,
            error_code="ONBOARDING_SESSION_NOT_FOUND",
            status_code=404,
        )


class AlreadyOnboardedError(OnboardingServiceError):
    """Raised when the caller already belongs to a school."""

    def __init__(self):
        super().__init__(
            message="Your account is already linked to a school.",
            error_code="ALREADY_ONBOARDED",
            status_code=409,
        )


class OnboardingAlreadyCompletedError(OnboardingServiceError):
    """Raised when a completed session is edited or completed again."""

    def __init__(self, session_id: UUID):
        super().__init__(
            message=f"Onboarding session {session_id} is already completed.",
            error_code="ONBOARDING_ALREADY_COMPLETED",
            status_code=409,
        )


class OnboardingFailedError(OnboardingServiceError):
    """Raised when provisioning the tenant fails. Nothing was created."""

    def __init__(self):
        self.description = "There was an error setting up your school. Please try again."
        super().__init__(
            message="Setup failed",
            error_code="ONBOARDING_FAILED",
            status_code=500,
        )


@dataclass
class CompletionResult:
    """Outcome of complete: the closed session and the new tenant."""

    session: OnboardingSession
    tenant: Tenant


def _step_validation_failed(e: StepValidationError) -> ValidationFailedError:
    return ValidationFailedError(
        message=STEP_VALIDATION_MESSAGE,
        description=STEP_VALIDATION_DESCRIPTION if e.missing else str(e),
        fields=e.missing,
    )


def _invalid_feature(e: InvalidFeatureKeyError) -> ValidationFailedError:
    return ValidationFailedError(message=str(e), fields=["features"])


def build_custom_css(data: OnboardingData) -> str:
    """CSS custom properties for the tenant's colors and font."""
    return (
        ":root {\n"
        f"  --primary: {data.primary_color};\n"
        f"  --secondary: {data.secondary_color};\n"
        f"  --accent: {data.accent_color};\n"
        f"  --font-family: '{data.font_family}';\n"
        "}"
    )


async def _save(db: AsyncSession, session: OnboardingSession, wizard: OnboardingWizard) -> None:
    session.apply_wizard(wizard)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to save onboarding session {session.id}: {e}", exc_info=True)
        raise PersistenceFailureError() from e
    await db.refresh(session)


async def _get_owned(db: AsyncSession, session_id: UUID, owner_id: UUID) -> OnboardingSession:
    session = await OnboardingRepository.get_by_id(db, session_id)
    if session is None or session.owner_id != owner_id:
        raise OnboardingSessionNotFoundError(session_id)
    return session


async def _get_editable(db: AsyncSession, session_id: UUID, owner_id: UUID) -> OnboardingSession:
    session = await _get_owned(db, session_id, owner_id)
    if session.is_completed:
        raise OnboardingAlreadyCompletedError(session_id)
    return session


# ============================================
# Sessions
# ============================================


async def start_session(db: AsyncSession, owner_id: UUID) -> OnboardingSession:
    """
    Resume the caller's in-progress session, or start one with default values.

    Raises:
        AlreadyOnboardedError: If the caller's account is already linked to a tenant
        PersistenceFailureError: If the session could not be stored
    """
    user = await UserRepository.get_by_id(db, owner_id)
    if user is not None and user.tenant_id is not None:
        raise AlreadyOnboardedError()

    existing = await OnboardingRepository.get_in_progress_for_owner(db, owner_id)
    if existing is not None:
        logger.info(f"Resuming onboarding session {existing.id} for user {owner_id}")
        return existing

    try:
        session = await OnboardingRepository.create(
            db,
            owner_id=owner_id,
            data=OnboardingData().to_dict(),
        )
        await db.commit()
    except IntegrityError:
        # Another request created it first
        await db.rollback()
        existing = await OnboardingRepository.get_in_progress_for_owner(db, owner_id)
        if existing is None:
            raise
        return existing
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to create onboarding session: {e}", exc_info=True)
        raise PersistenceFailureError() from e

    return session


async def get_session(db: AsyncSession, session_id: UUID, owner_id: UUID) -> OnboardingSession:
    return await _get_owned(db, session_id, owner_id)


async def update_session(
    db: AsyncSession,
    session_id: UUID,
    owner_id: UUID,
    changes: dict[str, Any],
) -> OnboardingSession:
    """
    Apply a partial update to the wizard data.

    Args:
        db: Database session
        session_id: Session to update
        owner_id: Caller; must own the session
        changes: Only the fields that were sent; ``None`` clears a field

    Raises:
        OnboardingSessionNotFoundError: Unknown session or not the owner
        OnboardingAlreadyCompletedError: Session already completed
        ValidationFailedError: Unknown feature key
    """
    session = await _get_editable(db, session_id, owner_id)
    wizard = session.to_wizard()

    try:
        wizard.apply_changes(changes)
    except InvalidFeatureKeyError as e:
        raise _invalid_feature(e) from e

    await _save(db, session, wizard)
    return session


async def toggle_feature(
    db: AsyncSession,
    session_id: UUID,
    owner_id: UUID,
    feature_key: str,
    enabled: bool,
) -> OnboardingSession:
    session = await _get_editable(db, session_id, owner_id)
    wizard = session.to_wizard()

    try:
        wizard.toggle_feature(feature_key, enabled)
    except InvalidFeatureKeyError as e:
        raise _invalid_feature(e) from e

    await _save(db, session, wizard)
    return session


async def advance(db: AsyncSession, session_id: UUID, owner_id: UUID) -> OnboardingSession:
    """
    Move to the next step.

    Raises:
        ValidationFailedError: The current step has missing required fields
    """
    session = await _get_editable(db, session_id, owner_id)
    wizard = session.to_wizard()

    try:
        wizard.next_step()
    except StepValidationError as e:
        logger.info(f"Onboarding session {session_id} blocked on step {e.step}: {e.missing}")
        raise _step_validation_failed(e) from e

    await _save(db, session, wizard)
    return session


async def go_back(db: AsyncSession, session_id: UUID, owner_id: UUID) -> OnboardingSession:
    session = await _get_editable(db, session_id, owner_id)
    wizard = session.to_wizard()
    wizard.previous_step()
    await _save(db, session, wizard)
    return session


# ============================================
# Completion
# ============================================


async def _unique_slug(db: AsyncSession, slug: str) -> str:
    candidate = slug
    suffix = 2
    while await TenantRepository.slug_exists(db, candidate):
        ending = f"-{suffix}"
        # The suffixed slug must still fit the column
        base = slug[: SLUG_MAX_LENGTH - len(ending)].rstrip("-")
        candidate = f"{base}{ending}"
        suffix += 1
    return candidate


async def complete(db: AsyncSession, session_id: UUID, owner_id: UUID) -> CompletionResult:
    """
    Provision the school described by the session.

    Args:
        db: Database session
        session_id: Session on its last step
        owner_id: Caller; must own the session and is linked to the new tenant

    Returns:
        CompletionResult with the closed session and the created tenant

    Raises:
        OnboardingSessionNotFoundError: Unknown session or not the owner
        OnboardingAlreadyCompletedError: Session already completed
        ValidationFailedError: Not on the last step, or a step gate fails
        ActionInProgressError: Completion already running for this session
        OnboardingFailedError: Provisioning failed and was rolled back
    """
    async with action_guard(f"onboarding:complete:{session_id}"):
        session = await _get_editable(db, session_id, owner_id)
        wizard = session.to_wizard()

        try:
            wizard.ensure_complete()
        except StepValidationError as e:
            raise _step_validation_failed(e) from e

        data = wizard.data

        try:
            slug = await _unique_slug(db, data.slug)
            if slug != data.slug:
                logger.info(f"Slug {data.slug!r} taken, using {slug!r}")

            tenant = await TenantRepository.create(
                db,
                name=data.name,
                slug=slug,
                address=data.address or None,
                contact_email=data.contact_email,
                contact_phone=data.contact_phone or None,
                timezone=data.timezone,
                country=data.country,
                theme=data.theme,
                primary_color=data.primary_color,
                secondary_color=data.secondary_color or None,
                accent_color=data.accent_color or None,
                font_family=data.font_family,
                meta_title=data.meta_title or data.name,
                meta_description=data.meta_description or None,
                feature_flags=wizard.feature_flags,
                brand_settings={
                    "welcome_message": data.welcome_message,
                    "activity_tracking": data.activity_tracking,
                    "custom_css": build_custom_css(data),
                },
                created_by=owner_id,
            )

            user = await UserRepository.get_by_id(db, owner_id)
            if user is None:
                logger.warning(f"No user row for {owner_id}; tenant {tenant.id} left unlinked")
            else:
                await UserRepository.link_tenant(db, user, tenant.id)

            session.apply_wizard(wizard)
            await OnboardingRepository.mark_completed(db, session, tenant.id)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Onboarding session {session_id} failed: {e}", exc_info=True)
            raise OnboardingFailedError() from e

    logger.info(f"Onboarding session {session_id} created tenant {tenant.id} ({tenant.slug})")

    # Notification failure does not undo provisioning
    email_sent = await send_school_ready(
        to_email=data.contact_email,
        school_name=tenant.name,
        slug=tenant.slug,
    )
    if not email_sent:
        logger.error(f"Failed to send school ready email for tenant {tenant.id}")

    return CompletionResult(session=session, tenant=tenant)
