"""
User Applications Models

Applications from prospective students, teachers and parents.

An application is created ``pending`` and is immutable until a reviewer
decides it. Approval creates a ``User`` (see ``modules.users``); a rejected
row is kept as the rejection record with its reason.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from edubeast.core.database import Base
from edubeast.modules.shared import enum_values


class ApplicantRole(str, enum.Enum):
    """Roles an anonymous visitor may apply for."""

    STUDENT = "student"
    TEACHER = "teacher"
    PARENT = "parent"


class ApplicationStatus(str, enum.Enum):
    """Status of a user application."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ClassLevel(str, enum.Enum):
    """Grade levels offered for class assignment."""

    GRADE_1 = "Grade 1"
    GRADE_2 = "Grade 2"
    GRADE_3 = "Grade 3"
    GRADE_4 = "Grade 4"
    GRADE_5 = "Grade 5"
    GRADE_6 = "Grade 6"
    GRADE_7 = "Grade 7"
    GRADE_8 = "Grade 8"
    GRADE_9 = "Grade 9"
    GRADE_10 = "Grade 10"
    GRADE_11 = "Grade 11"
    GRADE_12 = "Grade 12"


class Subject(str, enum.Enum):
    """Subjects offered for teaching assignment."""

    MATHEMATICS = "Mathematics"
    PHYSICS = "Physics"
    CHEMISTRY = "Chemistry"
    BIOLOGY = "Biology"
    ENGLISH = "English"
    HISTORY = "History"
    GEOGRAPHY = "Geography"
    COMPUTER_SCIENCE = "Computer Science"
    ART = "Art"
    MUSIC = "Music"
    PHYSICAL_EDUCATION = "Physical Education"


CLASS_OPTIONS: list[str] = enum_values(ClassLevel)
SUBJECT_OPTIONS: list[str] = enum_values(Subject)


class UserApplication(Base):
    """
    Application to join as a student, teacher or parent.

    Platform-level table (no tenant_id). ``email`` is stored lower-cased.
    ``version`` is an optimistic lock: SQLAlchemy includes it in the UPDATE's
    WHERE clause and raises StaleDataError if another transaction moved it.
    """

    __tablename__ = "user_applications"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Identity
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[ApplicantRole] = mapped_column(
        Enum(ApplicantRole, name="applicant_role", values_callable=enum_values),
        nullable=False,
    )
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Teacher payload
    qualifications: Mapped[str | None] = mapped_column(Text, nullable=True)
    experience: Mapped[str | None] = mapped_column(Text, nullable=True)
    subjects: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    preferred_classes: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    # Parent payload
    parent_student_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    additional_info: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Status tracking
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="user_application_status", values_callable=enum_values),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    decision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_user_applications_status_submitted_at", "status", "submitted_at"),
        Index("ix_user_applications_email", "email"),
        # At most one pending application per email
        Index(
            "uq_user_applications_pending_email",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<UserApplication(id={self.id}, email={self.email}, "
            f"role={self.role}, status={self.status})>"
        )

    @property
    def is_decided(self) -> bool:
        return self.status in (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED)
