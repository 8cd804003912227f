"""
User Applications Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from edubeast.modules.user_applications.models import (
    ApplicantRole,
    ApplicationStatus,
    ClassLevel,
    Subject,
)
from edubeast.modules.users.models import UserRole

SUBMISSION_CONFIRMATION = (
    "Your application has been submitted for review. "
    "You'll receive an email notification once approved."
)


def _dedupe(values: list) -> list:
    """Drop repeats while keeping first-seen order."""
    return list(dict.fromkeys(values))


# ============================================
# Intake Schemas
# ============================================


class TeacherDetails(BaseModel):
    """Teacher-only section of an application."""

    qualifications: str = Field(..., min_length=1, max_length=2000)
    experience: str | None = Field(None, max_length=2000)
    subjects: list[Subject] = Field(..., min_length=1)
    preferred_classes: list[ClassLevel] = Field(default_factory=list)

    @field_validator("qualifications")
    @classmethod
    def qualifications_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Qualifications are required for teacher applications")
        return v

    @field_validator("subjects", "preferred_classes")
    @classmethod
    def unique_selection(cls, v: list) -> list:
        return _dedupe(v)


class ParentDetails(BaseModel):
    """Parent-only section of an application."""

    student_id: str | None = Field(None, max_length=50)


class UserApplicationCreate(BaseModel):
    """
    Application submitted by an anonymous visitor.

    Sections that do not belong to ``role`` are discarded, so data entered
    for another role before switching never reaches storage.
    """

    full_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    role: ApplicantRole
    phone: str | None = Field(None, max_length=20)
    address: str | None = Field(None, max_length=500)
    additional_info: str | None = Field(None, max_length=2000)

    teacher: TeacherDetails | None = None
    parent: ParentDetails | None = None

    @field_validator("full_name")
    @classmethod
    def full_name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Full name is required")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def apply_role_sections(self) -> "UserApplicationCreate":
        if self.role == ApplicantRole.TEACHER:
            if self.teacher is None:
                raise ValueError(
                    "Teacher applications require qualifications and at least one subject"
                )
        else:
            self.teacher = None

        if self.role != ApplicantRole.PARENT:
            self.parent = None

        return self


class SubmitApplicationResponse(BaseModel):
    """Response after submitting an application."""

    id: UUID = Field(..., description="Application UUID")
    status: ApplicationStatus = Field(..., description="Always 'pending' on submission")
    message: str = Field(default=SUBMISSION_CONFIRMATION)


class EmailCheckResponse(BaseModel):
    """Whether an email is already pending review or registered."""

    email: str
    submitted: bool


class ApplicationOptionsResponse(BaseModel):
    """Fixed option sets for class and subject selection."""

    roles: list[ApplicantRole]
    classes: list[str]
    subjects: list[str]


# ============================================
# Reviewer Schemas
# ============================================


class ApplicationResponse(BaseModel):
    """Application as shown to reviewers."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str
    role: ApplicantRole
    phone: str | None = None
    address: str | None = None
    qualifications: str | None = None
    experience: str | None = None
    subjects: list[str] = Field(default_factory=list)
    preferred_classes: list[str] = Field(default_factory=list)
    parent_student_id: str | None = None
    additional_info: str | None = None
    status: ApplicationStatus
    submitted_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: UUID | None = None
    decision_reason: str | None = Field(None, description="Rejection reason, once rejected")
    version: int = Field(..., description="Pass back as expected_version when deciding")


class PendingByRoleResponse(BaseModel):
    """Pending applications grouped by requested role, newest first within each group."""

    student: list[ApplicationResponse] = Field(default_factory=list)
    teacher: list[ApplicationResponse] = Field(default_factory=list)
    parent: list[ApplicationResponse] = Field(default_factory=list)


class AssignmentSelection(BaseModel):
    """
    Reviewer's selection at approval time.

    Independent toggles over the fixed option sets. The selection is
    authoritative and is not compared with the applicant's own request.
    """

    classes: list[ClassLevel] = Field(default_factory=list)
    subjects: list[Subject] = Field(default_factory=list)
    linked_students: list[str] = Field(default_factory=list)

    @field_validator("classes", "subjects")
    @classmethod
    def unique_selection(cls, v: list) -> list:
        return _dedupe(v)

    @field_validator("linked_students")
    @classmethod
    def clean_linked_students(cls, v: list[str]) -> list[str]:
        return _dedupe([s.strip() for s in v if s and s.strip()])


class ApproveRequest(BaseModel):
    """Request body for approving an application."""

    assignments: AssignmentSelection = Field(default_factory=AssignmentSelection)
    expected_version: int | None = Field(
        None,
        ge=1,
        description="Version the reviewer saw; a mismatch is refused as stale",
    )


class RejectRequest(BaseModel):
    """Request body for rejecting an application. Blank reasons use the default."""

    reason: str | None = Field(
        None,
        max_length=1000,
        json_schema_extra={"example": "Application does not meet requirements"},
    )
    expected_version: int | None = Field(None, ge=1)


class ApprovedUserResponse(BaseModel):
    """A user created by approving an application."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str
    role: UserRole
    phone: str | None = None
    student_code: str | None = None
    application_id: UUID | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    assigned_classes: list[str] = Field(default_factory=list)
    assigned_subjects: list[str] = Field(default_factory=list)
    linked_students: list[str] = Field(default_factory=list)
    is_first_login: bool = True


class ApproveResponse(BaseModel):
    """Response after approving an application."""

    id: UUID = Field(..., description="Application UUID")
    status: ApplicationStatus
    user: ApprovedUserResponse
    already_decided: bool = Field(
        False, description="True when the application had already been approved"
    )
    message: str = "Application approved. Login credentials sent to the applicant."


class RejectResponse(BaseModel):
    """Response after rejecting an application."""

    id: UUID = Field(..., description="Application UUID")
    status: ApplicationStatus
    reason: str
    already_decided: bool = False
    message: str = "Application rejected."


class ReviewStats(BaseModel):
    """Counts for the reviewer dashboard."""

    pending_total: int = Field(..., ge=0)
    pending_by_role: dict[str, int]
    approved: int = Field(..., ge=0)
    rejected: int = Field(..., ge=0)
