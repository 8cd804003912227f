"""
Fixtures for user applications tests.

``workflow`` swaps the service's ``repository`` module and ``UserRepository``
for in-memory fakes so that submit -> list -> approve/reject scenarios run
end to end without a database.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from edubeast.modules.user_applications.models import (
    ApplicantRole,
    ApplicationStatus,
    Subject,
    UserApplication,
)
from edubeast.modules.user_applications.repository import (
    VALID_STATUS_TRANSITIONS,
    InvalidStatusTransitionError,
)
from edubeast.modules.user_applications.schemas import (
    ParentDetails,
    TeacherDetails,
    UserApplicationCreate,
)
from edubeast.modules.users.models import User, UserAssignment

SERVICE = "edubeast.modules.user_applications.service"


class FakeApplicationRepository:
    """In-memory stand-in for the ``user_applications.repository`` module."""

    InvalidStatusTransitionError = InvalidStatusTransitionError

    def __init__(self):
        self.applications: dict[UUID, UserApplication] = {}
        self._clock = datetime(2026, 1, 1, tzinfo=UTC)

    def _tick(self) -> datetime:
        self._clock += timedelta(minutes=1)
        return self._clock

    async def create(self, db, data: UserApplicationCreate) -> UserApplication:
        if await self.get_pending_by_email(db, data.email) is not None:
            raise IntegrityError("INSERT INTO user_applications", {}, Exception("duplicate"))

        application = UserApplication(
            id=uuid4(),
            full_name=data.full_name,
            email=data.email,
            role=data.role,
            phone=data.phone,
            address=data.address,
            additional_info=data.additional_info,
            qualifications=data.teacher.qualifications if data.teacher else None,
            experience=data.teacher.experience if data.teacher else None,
            subjects=[s.value for s in data.teacher.subjects] if data.teacher else [],
            preferred_classes=(
                [c.value for c in data.teacher.preferred_classes] if data.teacher else []
            ),
            parent_student_id=data.parent.student_id if data.parent else None,
            status=ApplicationStatus.PENDING,
            submitted_at=self._tick(),
            version=1,
        )
        self.applications[application.id] = application
        return application

    async def get_by_id(self, db, id: UUID) -> UserApplication | None:
        return self.applications.get(id)

    async def get_pending_by_email(self, db, email: str) -> UserApplication | None:
        for application in self.applications.values():
            if (
                application.status == ApplicationStatus.PENDING
                and application.email.lower() == email.lower()
            ):
                return application
        return None

    async def list_by_status(self, db, status, role=None) -> list[UserApplication]:
        matches = [
            a
            for a in self.applications.values()
            if a.status == status and (role is None or a.role == role)
        ]
        return sorted(matches, key=lambda a: a.submitted_at, reverse=True)

    async def get_pending_submitted_before(self, db, cutoff) -> list[UserApplication]:
        matches = [
            a
            for a in self.applications.values()
            if a.status == ApplicationStatus.PENDING and a.submitted_at < cutoff
        ]
        return sorted(matches, key=lambda a: a.submitted_at)

    async def get_status_counts(self, db) -> dict:
        pending_by_role = {role.value: 0 for role in ApplicantRole}
        approved = rejected = 0
        for a in self.applications.values():
            if a.status == ApplicationStatus.PENDING:
                pending_by_role[a.role.value] += 1
            elif a.status == ApplicationStatus.APPROVED:
                approved += 1
            else:
                rejected += 1
        return {"pending_by_role": pending_by_role, "approved": approved, "rejected": rejected}

    async def update_application_decision(
        self,
        db,
        application_id,
        status,
        decision_reason=None,
        reviewed_by=None,
        reviewed_at=None,
    ) -> UserApplication:
        application = self.applications[application_id]
        if status not in VALID_STATUS_TRANSITIONS[application.status]:
            raise InvalidStatusTransitionError(application.status, status)

        application.status = status
        application.reviewed_at = reviewed_at or self._tick()
        application.reviewed_by = reviewed_by
        if decision_reason is not None:
            application.decision_reason = decision_reason
        application.version += 1
        return application


class FakeUserRepository:
    """In-memory stand-in for ``UserRepository``."""

    def __init__(self):
        self.users: list[User] = []

    async def create(
        self,
        db,
        *,
        email,
        password_hash,
        full_name,
        role,
        phone=None,
        student_code=None,
        application_id=None,
        approved_by=None,
        approved_at=None,
        must_change_password=False,
        assignments=(),
    ) -> User:
        user = User(
            id=uuid4(),
            email=email.lower(),
            password_hash=password_hash,
            full_name=full_name,
            role=role,
            phone=phone,
            student_code=student_code,
            application_id=application_id,
            approved_by=approved_by,
            approved_at=approved_at,
            is_active=True,
            must_change_password=must_change_password,
            assignments=[
                UserAssignment(kind=kind, value=value, position=position)
                for position, (kind, value) in enumerate(assignments)
            ],
        )
        self.users.append(user)
        return user

    async def get_by_id(self, db, user_id) -> User | None:
        return next((u for u in self.users if u.id == user_id), None)

    async def email_exists(self, db, email: str) -> bool:
        return any(u.email == email.lower() for u in self.users)

    async def get_by_application_id(self, db, application_id) -> User | None:
        return next((u for u in self.users if u.application_id == application_id), None)

    async def student_code_exists(self, db, student_code: str) -> bool:
        return any(u.student_code == student_code for u in self.users)

    async def list_approved(self, db) -> list[User]:
        approved = [u for u in self.users if u.application_id is not None]
        return sorted(approved, key=lambda u: u.approved_at)


@dataclass
class Workflow:
    applications: FakeApplicationRepository
    users: FakeUserRepository
    approved_email: AsyncMock
    rejected_email: AsyncMock


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def reviewer_id():
    """Return a consistent reviewer UUID for testing."""
    return UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def workflow():
    """Patch the service onto in-memory repositories and mocked email senders."""
    applications = FakeApplicationRepository()
    users = FakeUserRepository()
    with (
        patch(f"{SERVICE}.repository", applications),
        patch(f"{SERVICE}.UserRepository", users),
        patch(f"{SERVICE}.hash_password", side_effect=lambda p: f"hashed:{p}"),
        patch(f"{SERVICE}.send_account_approved", new_callable=AsyncMock) as approved_email,
        patch(f"{SERVICE}.send_application_rejected", new_callable=AsyncMock) as rejected_email,
    ):
        approved_email.return_value = True
        rejected_email.return_value = True
        yield Workflow(applications, users, approved_email, rejected_email)


@pytest.fixture
def teacher_application_create():
    """Teacher application for t@example.com."""
    return UserApplicationCreate(
        full_name="Tariq Rahman",
        email="t@example.com",
        role=ApplicantRole.TEACHER,
        phone="+8801700000000",
        teacher=TeacherDetails(
            qualifications="MSc Physics",
            experience="5 years",
            subjects=[Subject.PHYSICS],
        ),
    )


@pytest.fixture
def student_application_create():
    """Student application."""
    return UserApplicationCreate(
        full_name="Sara Ahmed",
        email="sara@example.com",
        role=ApplicantRole.STUDENT,
    )


@pytest.fixture
def parent_application_create():
    """Parent application linked to a student ID."""
    return UserApplicationCreate(
        full_name="Parvin Akter",
        email="parvin@example.com",
        role=ApplicantRole.PARENT,
        parent=ParentDetails(student_id="STU260001"),
    )
