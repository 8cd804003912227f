"""
User Models

Authenticated accounts. Students, teachers and parents are created from an
approved application and carry the reviewer's assignments as simple
``(kind, value)`` tuples.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from edubeast.modules.shared import BaseModel, enum_values


class UserRole(str, Enum):
    """User roles in the system."""

    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


class AssignmentKind(str, Enum):
    """What an assignment tuple refers to."""

    CLASS = "class"
    SUBJECT = "subject"
    LINKED_STUDENT = "linked_student"


class User(BaseModel):
    """
    User account.

    For approved applicants ``application_id``, ``approved_by`` and
    ``approved_at`` record the decision; ``must_change_password`` stays set
    until the temporary password is replaced on first login.

    ``tenant_id`` is NULL until the user is linked to a school, either by
    completing onboarding or by other tooling.
    """

    __tablename__ = "users"

    # ON DELETE SET NULL: users outlive their school association
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Authentication fields
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    # Profile fields
    full_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    role: Mapped[UserRole] = mapped_column(
        ENUM(UserRole, name="user_role", create_type=True, values_callable=enum_values),
        nullable=False,
        default=UserRole.STUDENT,
    )
    student_code: Mapped[str | None] = mapped_column(
        String(20),
        unique=True,
        nullable=True,
    )

    # Account status
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    must_change_password: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Approval metadata
    application_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("user_applications.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    assignments: Mapped[list["UserAssignment"]] = relationship(
        "UserAssignment",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserAssignment.position",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_users_approved_at", "approved_at"),)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"

    def _assigned(self, kind: AssignmentKind) -> list[str]:
        return [a.value for a in self.assignments if a.kind == kind]

    @property
    def assigned_classes(self) -> list[str]:
        return self._assigned(AssignmentKind.CLASS)

    @property
    def assigned_subjects(self) -> list[str]:
        return self._assigned(AssignmentKind.SUBJECT)

    @property
    def linked_students(self) -> list[str]:
        return self._assigned(AssignmentKind.LINKED_STUDENT)

    @property
    def is_first_login(self) -> bool:
        return self.must_change_password


class UserAssignment(BaseModel):
    """One class, subject or linked-student entry attached to a user at approval."""

    __tablename__ = "user_assignments"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind: Mapped[AssignmentKind] = mapped_column(
        ENUM(AssignmentKind, name="assignment_kind", create_type=True, values_callable=enum_values),
        nullable=False,
    )
    value: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    # Preserves the reviewer's selection order
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    user: Mapped["User"] = relationship("User", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("user_id", "kind", "value", name="uq_user_assignments_user_kind_value"),
    )

    def __repr__(self) -> str:
        return f"<UserAssignment(user_id={self.user_id}, kind={self.kind.value}, value={self.value})>"
