"""
User Applications Shared Helpers

Credential generation and assignment mapping used by the approval service.
"""

import secrets
import string
from datetime import UTC, datetime

from edubeast.modules.user_applications.models import ApplicantRole
from edubeast.modules.user_applications.schemas import AssignmentSelection
from edubeast.modules.users.models import AssignmentKind, UserRole

_LOWER_ALPHANUMERIC = string.ascii_lowercase + string.digits
_UPPER_ALPHANUMERIC = string.ascii_uppercase + string.digits

# Assignment kinds kept on approval, per role
ROLE_ASSIGNMENT_KINDS: dict[ApplicantRole, frozenset[AssignmentKind]] = {
    ApplicantRole.TEACHER: frozenset({AssignmentKind.CLASS, AssignmentKind.SUBJECT}),
    ApplicantRole.STUDENT: frozenset({AssignmentKind.CLASS}),
    ApplicantRole.PARENT: frozenset({AssignmentKind.LINKED_STUDENT}),
}

_APPLICANT_TO_USER_ROLE: dict[ApplicantRole, UserRole] = {
    ApplicantRole.STUDENT: UserRole.STUDENT,
    ApplicantRole.TEACHER: UserRole.TEACHER,
    ApplicantRole.PARENT: UserRole.PARENT,
}


def generate_temp_password() -> str:
    """
    Generate a temporary password for a newly approved user.

    Returns:
        12 characters: 8 lowercase alphanumeric followed by 4 uppercase alphanumeric
    """
    head = "".join(secrets.choice(_LOWER_ALPHANUMERIC) for _ in range(8))
    tail = "".join(secrets.choice(_UPPER_ALPHANUMERIC) for _ in range(4))
    return head + tail


def generate_student_code(now: datetime | None = None) -> str:
    """
    Generate a student ID of the form ``STU{yy}{nnnn}``.

    Args:
        now: Reference time for the year part, defaults to the current UTC time

    Returns:
        e.g. ``"STU260427"``
    """
    now = now or datetime.now(UTC)
    return f"STU{now.strftime('%y')}{secrets.randbelow(10_000):04d}"


def user_role_for(role: ApplicantRole) -> UserRole:
    """Map an applicant role to the account role created on approval."""
    return _APPLICANT_TO_USER_ROLE[role]


def assignments_for_role(
    role: ApplicantRole,
    selection: AssignmentSelection,
) -> list[tuple[AssignmentKind, str]]:
    """
    Flatten a reviewer's selection into ordered ``(kind, value)`` tuples.

    Only the kinds that apply to ``role`` are kept: classes and subjects for
    teachers, classes for students, linked students for parents.

    Args:
        role: Role the applicant applied for
        selection: Reviewer's selection

    Returns:
        Tuples in selection order, classes before subjects
    """
    allowed = ROLE_ASSIGNMENT_KINDS[role]
    tuples: list[tuple[AssignmentKind, str]] = []

    if AssignmentKind.CLASS in allowed:
        tuples.extend((AssignmentKind.CLASS, c.value) for c in selection.classes)
    if AssignmentKind.SUBJECT in allowed:
        tuples.extend((AssignmentKind.SUBJECT, s.value) for s in selection.subjects)
    if AssignmentKind.LINKED_STUDENT in allowed:
        tuples.extend((AssignmentKind.LINKED_STUDENT, s) for s in selection.linked_students)

    return tuples
