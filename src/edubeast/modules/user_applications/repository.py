"""
User Applications Repository

Database operations for user applications.

- Only data access, no business rules beyond the status state machine
- ``create`` and ``update_status`` commit; they close the service's transaction
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ApplicantRole, ApplicationStatus, UserApplication
from .schemas import UserApplicationCreate


async def create(db: AsyncSession, data: UserApplicationCreate) -> UserApplication:
    """Create a new pending application."""

    new_application = UserApplication(
        full_name=data.full_name,
        email=data.email,
        role=data.role,
        phone=data.phone,
        address=data.address,
        additional_info=data.additional_info,
        status=ApplicationStatus.PENDING,
    )

    if data.teacher is not None:
        new_application.qualifications = data.teacher.qualifications
        new_application.experience = data.teacher.experience
        new_application.subjects = [s.value for s in data.teacher.subjects]
        new_application.preferred_classes = [c.value for c in data.teacher.preferred_classes]
    else:
        new_application.subjects = []
        new_application.preferred_classes = []

    if data.parent is not None:
        new_application.parent_student_id = data.parent.student_id

    db.add(new_application)
    await db.commit()
    await db.refresh(new_application)

    return new_application


async def get_by_id(db: AsyncSession, id: UUID) -> UserApplication | None:
    """Get application by ID."""
    return await db.get(UserApplication, id)


async def get_pending_by_email(db: AsyncSession, email: str) -> UserApplication | None:
    """Get the pending application for an email (case-insensitive), if any."""
    result = await db.execute(
        select(UserApplication).where(
            func.lower(UserApplication.email) == email.lower(),
            UserApplication.status == ApplicationStatus.PENDING,
        )
    )
    return result.scalar_one_or_none()


async def list_by_status(
    db: AsyncSession,
    status: ApplicationStatus,
    role: ApplicantRole | None = None,
) -> list[UserApplication]:
    """
    List applications in a status, newest submission first.

    Args:
        db: Database session
        status: Status to filter by
        role: Optional role filter

    Returns:
        Applications ordered by submitted_at descending
    """
    query = select(UserApplication).where(UserApplication.status == status)
    if role is not None:
        query = query.where(UserApplication.role == role)
    query = query.order_by(UserApplication.submitted_at.desc(), UserApplication.id.desc())

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_pending_submitted_before(
    db: AsyncSession, cutoff: datetime
) -> list[UserApplication]:
    """Pending applications submitted before ``cutoff``, oldest first."""
    result = await db.execute(
        select(UserApplication)
        .where(
            UserApplication.status == ApplicationStatus.PENDING,
            UserApplication.submitted_at < cutoff,
        )
        .order_by(UserApplication.submitted_at.asc())
    )
    return list(result.scalars().all())


async def get_status_counts(db: AsyncSession) -> dict:
    """
    Count applications per (status, role).

    Returns:
        Dict with ``pending_by_role`` (role value -> count, every role present),
        ``approved`` and ``rejected`` totals
    """
    result = await db.execute(
        select(UserApplication.status, UserApplication.role, func.count()).group_by(
            UserApplication.status, UserApplication.role
        )
    )

    pending_by_role = {role.value: 0 for role in ApplicantRole}
    totals = {status: 0 for status in ApplicationStatus}
    for status, role, count in result.all():
        totals[status] += count
        if status == ApplicationStatus.PENDING:
            pending_by_role[role.value] = count

    return {
        "pending_by_role": pending_by_role,
        "approved": totals[ApplicationStatus.APPROVED],
        "rejected": totals[ApplicationStatus.REJECTED],
    }


# Pending is the only non-terminal state
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.PENDING: {
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.APPROVED: set(),
    ApplicationStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


async def update_status(
    db: AsyncSession,
    id: UUID,
    status: ApplicationStatus,
    **kwargs,
) -> UserApplication:
    """
    Update application status and optional fields, then commit.

    The commit also flushes anything the caller added to the session
    earlier (e.g. the approved user), so the decision is atomic.

    Args:
        db: Database session
        id: Application UUID
        status: New status to set
        **kwargs: Additional fields to update (e.g. decision_reason)

    Returns:
        Updated UserApplication

    Raises:
        ValueError: If application not found
        InvalidStatusTransitionError: If status transition is not allowed
        StaleDataError: If the row's version changed since it was loaded
    """
    application = await get_by_id(db, id)
    if not application:
        raise ValueError(f"Application {id} not found")

    current_status = application.status
    if status not in VALID_STATUS_TRANSITIONS.get(current_status, set()):
        raise InvalidStatusTransitionError(current_status, status)

    application.status = status
    for key, value in kwargs.items():
        if hasattr(application, key):
            setattr(application, key, value)

    await db.commit()
    await db.refresh(application)

    return application


async def update_application_decision(
    db: AsyncSession,
    application_id: UUID,
    status: ApplicationStatus,
    decision_reason: str | None = None,
    reviewed_by: UUID | None = None,
    reviewed_at: datetime | None = None,
) -> UserApplication:
    """
    Record an approve/reject decision.

    Args:
        db: Database session
        application_id: UUID of the application
        status: APPROVED or REJECTED
        decision_reason: Rejection reason (optional)
        reviewed_by: UUID of the reviewer
        reviewed_at: Decision time, defaults to now

    Returns:
        Updated UserApplication

    Raises:
        ValueError: If application not found
        InvalidStatusTransitionError: If the application is already decided
    """
    update_kwargs = {"reviewed_at": reviewed_at or datetime.now(UTC)}

    if decision_reason is not None:
        update_kwargs["decision_reason"] = decision_reason

    if reviewed_by is not None:
        update_kwargs["reviewed_by"] = reviewed_by

    return await update_status(db, application_id, status, **update_kwargs)
