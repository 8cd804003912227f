"""
User Applications Service Layer

Business logic for the application -> approval workflow.

1. Intake:
   - Refuse an email that is already pending review or already registered
   - Store the application as pending
   - Fixed confirmation message; no email is sent on submission

2. Pending queue:
   - Newest-first listing, optional role filter, grouping by role
   - Approved-user listing in approval order

3. Decisions:
   - approve: teacher precondition, account creation with temporary
     password and assignments, welcome email with credentials
   - reject: reason defaults to a fixed message, notification email
   - Repeating the same decision returns the existing record; the opposite
     decision on a decided application is refused
   - Optional expected_version plus the row's version column detect
     concurrent decisions (StaleDecisionError)
   - Concurrent calls for one application are refused while one is in flight

Security considerations:
- Temporary passwords are bcrypt-hashed before storage and only ever emailed
- Emails are compared case-insensitively
- Applicant emails are masked in logs
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from edubeast.core.action_guard import action_guard
from edubeast.core.email import send_account_approved, send_application_rejected
from edubeast.core.exceptions import PersistenceFailureError, ServiceError
from edubeast.core.security import hash_password
from edubeast.modules.user_applications import repository
from edubeast.modules.user_applications.helpers import (
    assignments_for_role,
    generate_student_code,
    generate_temp_password,
    user_role_for,
)
from edubeast.modules.user_applications.models import (
    ApplicantRole,
    ApplicationStatus,
    UserApplication,
)
from edubeast.modules.user_applications.schemas import (
    AssignmentSelection,
    SubmitApplicationResponse,
    UserApplicationCreate,
)
from edubeast.modules.users.models import User
from edubeast.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Application does not meet requirements"

STUDENT_CODE_ATTEMPTS = 5


class ApplicationServiceError(ServiceError):
    """Base exception for application service errors."""


class DuplicateEmailError(ApplicationServiceError):
    """Raised when the email is already pending review or registered."""

    def __init__(self, message: str = "An application with this email already exists."):
        super().__init__(
            message=message,
            error_code="DUPLICATE_EMAIL",
            status_code=409,
        )


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: UUID | None = None):
        message = (
            f"Application {application_id} not found" if application_id else "Application not found"
        )
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class ApplicationAlreadyDecidedError(ApplicationServiceError):
    """Raised when the opposite decision was already made on an application."""

    def __init__(self, current_status: str, action: str):
        self.current_status = current_status
        super().__init__(
            message=f"Cannot {action} application in status: {current_status}. "
            "A decision has already been made.",
            error_code="ALREADY_DECIDED",
            status_code=409,
        )


class PreconditionNotMetError(ApplicationServiceError):
    """Raised when a role-specific approval requirement is not satisfied."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="PRECONDITION_NOT_MET",
            status_code=422,
        )


class StaleDecisionError(ApplicationServiceError):
    """Raised when the application changed since the reviewer loaded it."""

    def __init__(self, application_id: UUID):
        super().__init__(
            message=f"Application {application_id} was changed by another reviewer. "
            "Reload it and try again.",
            error_code="STALE_DECISION",
            status_code=409,
        )


@dataclass
class ApprovalResult:
    """Outcome of approve: the decided application and the account created for it."""

    application: UserApplication
    user: User
    already_decided: bool = False


@dataclass
class RejectionResult:
    """Outcome of reject: the rejected application, which is the rejection record."""

    application: UserApplication
    already_decided: bool = False


def _mask_email(email: str) -> str:
    """Mask an email for logging, e.g. ``t***@example.com``."""
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


def _decision_lock(application_id: UUID) -> str:
    return f"user_applications:decide:{application_id}"


def _violates_user_email(e: IntegrityError) -> bool:
    """Whether the error is the unique index on ``users.email``."""
    message = str(e.orig)
    return "ix_users_email" in message or "users.email" in message


# ============================================
# Intake
# ============================================


async def is_email_submitted(db: AsyncSession, email: str) -> bool:
    """
    Check whether an email is already pending review or registered.

    Rejected applications do not count, so a rejected applicant may reapply.
    """
    if await repository.get_pending_by_email(db, email) is not None:
        return True
    return await UserRepository.email_exists(db, email)


async def _check_duplicate_email(db: AsyncSession, email: str) -> None:
    if await repository.get_pending_by_email(db, email) is not None:
        logger.warning(f"Duplicate pending application for {_mask_email(email)}")
        raise DuplicateEmailError()

    if await UserRepository.email_exists(db, email):
        logger.warning(f"Application for already registered email {_mask_email(email)}")
        raise DuplicateEmailError()


async def submit_application(
    db: AsyncSession,
    data: UserApplicationCreate,
) -> SubmitApplicationResponse:
    """
    Submit a new application.

    Args:
        db: Database session
        data: Validated application; sections for other roles are already discarded

    Returns:
        SubmitApplicationResponse with the application ID and confirmation message

    Raises:
        DuplicateEmailError: If the email is pending review or already registered
        ActionInProgressError: If the same email is being submitted concurrently
        PersistenceFailureError: If the application could not be stored
    """
    logger.info(f"Processing {data.role.value} application for {_mask_email(data.email)}")

    async with action_guard(f"user_applications:submit:{data.email}"):
        await _check_duplicate_email(db, data.email)

        try:
            application = await repository.create(db, data)
        except IntegrityError as e:
            # Partial unique index on pending emails lost a race
            await db.rollback()
            logger.warning(f"Concurrent duplicate submission for {_mask_email(data.email)}")
            raise DuplicateEmailError() from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to store application: {e}", exc_info=True)
            raise PersistenceFailureError() from e

    logger.info(f"Created application {application.id} ({application.role.value})")

    return SubmitApplicationResponse(
        id=application.id,
        status=application.status,
    )


# ============================================
# Pending Queue
# ============================================


async def get_application(db: AsyncSession, application_id: UUID) -> UserApplication:
    """
    Get one application.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
    """
    application = await repository.get_by_id(db, application_id)
    if not application:
        raise ApplicationNotFoundError(application_id)
    return application


async def list_pending(
    db: AsyncSession,
    role: ApplicantRole | None = None,
) -> list[UserApplication]:
    """List pending applications, newest first, optionally for one role."""
    return await repository.list_by_status(db, ApplicationStatus.PENDING, role)


async def list_pending_grouped(db: AsyncSession) -> dict[str, list[UserApplication]]:
    """
    List pending applications grouped by requested role.

    Returns:
        Dict keyed by role value with every role present; newest first within each group
    """
    grouped: dict[str, list[UserApplication]] = {role.value: [] for role in ApplicantRole}
    for application in await list_pending(db):
        grouped[application.role.value].append(application)
    return grouped


async def list_approved(db: AsyncSession) -> list[User]:
    """List users created by approval, in approval order."""
    return await UserRepository.list_approved(db)


async def get_review_stats(db: AsyncSession) -> dict:
    """Counts for the reviewer dashboard."""
    counts = await repository.get_status_counts(db)
    return {
        "pending_total": sum(counts["pending_by_role"].values()),
        **counts,
    }


# ============================================
# Decisions
# ============================================


def _check_expected_version(application: UserApplication, expected_version: int | None) -> None:
    if expected_version is not None and expected_version != application.version:
        logger.warning(
            f"Stale decision on application {application.id}: "
            f"expected version {expected_version}, found {application.version}"
        )
        raise StaleDecisionError(application.id)


async def _allocate_student_code(db: AsyncSession) -> str:
    for _ in range(STUDENT_CODE_ATTEMPTS):
        code = generate_student_code()
        if not await UserRepository.student_code_exists(db, code):
            return code
    raise PersistenceFailureError("Could not allocate a student ID. Please try again.")


async def approve_application(
    db: AsyncSession,
    application_id: UUID,
    reviewer_id: UUID,
    assignments: AssignmentSelection,
    expected_version: int | None = None,
) -> ApprovalResult:
    """
    Approve an application and create the user account.

    In one transaction:
    1. Create the user with a hashed temporary password (and a student ID for students)
    2. Attach the reviewer's assignments that apply to the role
    3. Move the application to APPROVED

    The credentials email is sent after commit and never fails the call.

    Args:
        db: Database session
        application_id: UUID of the application
        reviewer_id: UUID of the approving reviewer
        assignments: Reviewer's class/subject/linked-student selection
        expected_version: Application version the reviewer saw (optional)

    Returns:
        ApprovalResult; ``already_decided`` is True when the application was
        approved before and the existing account is returned unchanged

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        ApplicationAlreadyDecidedError: If the application was rejected
        StaleDecisionError: If the application changed since it was loaded
        PreconditionNotMetError: If a teacher has no class assignments
        DuplicateEmailError: If an account already exists for the email
        ActionInProgressError: If a decision on this application is in flight
        PersistenceFailureError: If the store rejected the write
    """
    logger.info(f"Reviewer {reviewer_id} approving application {application_id}")

    async with action_guard(_decision_lock(application_id)):
        application = await repository.get_by_id(db, application_id)

        if not application:
            logger.warning(f"Application not found: {application_id}")
            raise ApplicationNotFoundError(application_id)

        if application.status == ApplicationStatus.APPROVED:
            existing_user = await UserRepository.get_by_application_id(db, application_id)
            if existing_user is None:
                logger.error(f"Approved application {application_id} has no user account")
                raise ApplicationAlreadyDecidedError(application.status.value, "approve")
            logger.info(f"Application {application_id} already approved; returning existing user")
            return ApprovalResult(application=application, user=existing_user, already_decided=True)

        if application.status != ApplicationStatus.PENDING:
            logger.warning(f"Cannot approve application {application_id}: status={application.status}")
            raise ApplicationAlreadyDecidedError(application.status.value, "approve")

        _check_expected_version(application, expected_version)

        if application.role == ApplicantRole.TEACHER and not assignments.classes:
            logger.warning(f"Refused approval of teacher application {application_id}: no classes")
            raise PreconditionNotMetError(
                "Teachers must be assigned at least one class before approval."
            )

        if await UserRepository.email_exists(db, application.email):
            logger.warning(f"Account already exists for {_mask_email(application.email)}")
            raise DuplicateEmailError("A user with this email already exists.")

        email = application.email
        temp_password = generate_temp_password()
        approved_at = datetime.now(UTC)

        try:
            # ============================================
            # ATOMIC TRANSACTION: user + assignments + status
            # ============================================
            student_code = (
                await _allocate_student_code(db)
                if application.role == ApplicantRole.STUDENT
                else None
            )

            user = await UserRepository.create(
                db,
                email=email,
                password_hash=hash_password(temp_password),
                full_name=application.full_name,
                role=user_role_for(application.role),
                phone=application.phone,
                student_code=student_code,
                application_id=application.id,
                approved_by=reviewer_id,
                approved_at=approved_at,
                must_change_password=True,
                assignments=assignments_for_role(application.role, assignments),
            )

            application = await repository.update_application_decision(
                db,
                application_id,
                ApplicationStatus.APPROVED,
                reviewed_by=reviewer_id,
                reviewed_at=approved_at,
            )
        except repository.InvalidStatusTransitionError as e:
            await db.rollback()
            logger.error(f"Status transition error during approval: {e}")
            raise ApplicationAlreadyDecidedError(e.current_status.value, "approve") from e
        except IntegrityError as e:
            await db.rollback()
            if _violates_user_email(e):
                logger.warning(f"Account created concurrently for {_mask_email(email)}")
                raise DuplicateEmailError("A user with this email already exists.") from e
            logger.warning(f"Concurrent decision detected on application {application_id}: {e}")
            raise StaleDecisionError(application_id) from e
        except StaleDataError as e:
            await db.rollback()
            logger.warning(f"Concurrent decision detected on application {application_id}: {e}")
            raise StaleDecisionError(application_id) from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Approval of {application_id} failed: {e}", exc_info=True)
            raise PersistenceFailureError() from e

    logger.info(f"Application {application_id} approved. User ID: {user.id} ({user.role.value})")

    # Outside the transaction; the account exists either way
    try:
        sent = await send_account_approved(
            to_email=user.email,
            full_name=user.full_name,
            role=user.role.value,
            temp_password=temp_password,
            student_code=user.student_code,
        )
        if not sent:
            logger.error(f"Failed to send approval email for application {application_id}")
    except Exception as e:
        logger.error(f"Exception sending approval email: {e}", exc_info=True)

    return ApprovalResult(application=application, user=user)


async def reject_application(
    db: AsyncSession,
    application_id: UUID,
    reviewer_id: UUID,
    reason: str | None = None,
    expected_version: int | None = None,
) -> RejectionResult:
    """
    Reject an application.

    Args:
        db: Database session
        application_id: UUID of the application
        reviewer_id: UUID of the rejecting reviewer
        reason: Rejection reason; missing or blank uses DEFAULT_REJECTION_REASON
        expected_version: Application version the reviewer saw (optional)

    Returns:
        RejectionResult; ``already_decided`` is True when the application was
        rejected before and is returned unchanged

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        ApplicationAlreadyDecidedError: If the application was approved
        StaleDecisionError: If the application changed since it was loaded
        ActionInProgressError: If a decision on this application is in flight
        PersistenceFailureError: If the store rejected the write
    """
    logger.info(f"Reviewer {reviewer_id} rejecting application {application_id}")

    decision_reason = reason.strip() if reason and reason.strip() else DEFAULT_REJECTION_REASON

    async with action_guard(_decision_lock(application_id)):
        application = await repository.get_by_id(db, application_id)

        if not application:
            logger.warning(f"Application not found: {application_id}")
            raise ApplicationNotFoundError(application_id)

        if application.status == ApplicationStatus.REJECTED:
            logger.info(f"Application {application_id} already rejected; returning existing record")
            return RejectionResult(application=application, already_decided=True)

        if application.status != ApplicationStatus.PENDING:
            logger.warning(f"Cannot reject application {application_id}: status={application.status}")
            raise ApplicationAlreadyDecidedError(application.status.value, "reject")

        _check_expected_version(application, expected_version)

        try:
            application = await repository.update_application_decision(
                db,
                application_id,
                ApplicationStatus.REJECTED,
                decision_reason=decision_reason,
                reviewed_by=reviewer_id,
            )
        except repository.InvalidStatusTransitionError as e:
            await db.rollback()
            logger.error(f"Status transition error during rejection: {e}")
            raise ApplicationAlreadyDecidedError(e.current_status.value, "reject") from e
        except StaleDataError as e:
            await db.rollback()
            logger.warning(f"Concurrent decision detected on application {application_id}: {e}")
            raise StaleDecisionError(application_id) from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Rejection of {application_id} failed: {e}", exc_info=True)
            raise PersistenceFailureError() from e

    logger.info(f"Application {application_id} rejected")

    try:
        sent = await send_application_rejected(
            to_email=application.email,
            full_name=application.full_name,
            rejection_reason=decision_reason,
        )
        if not sent:
            logger.error(f"Failed to send rejection email for application {application_id}")
    except Exception as e:
        logger.error(f"Exception sending rejection email: {e}", exc_info=True)

    return RejectionResult(application=application)
