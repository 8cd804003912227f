"""
Unit tests for user applications repository layer.

These tests focus on the state machine transitions and the writes that
commit on the service's behalf.
"""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from edubeast.modules.user_applications import repository
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


class TestStatusTransitions:
    """Tests for status transition state machine."""

    def test_pending_can_be_decided(self):
        """Pending moves to approved or rejected."""
        valid = VALID_STATUS_TRANSITIONS[ApplicationStatus.PENDING]
        assert valid == {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}

    def test_terminal_states_have_no_transitions(self):
        """Approved and rejected are final."""
        assert VALID_STATUS_TRANSITIONS[ApplicationStatus.APPROVED] == set()
        assert VALID_STATUS_TRANSITIONS[ApplicationStatus.REJECTED] == set()

    def test_all_statuses_are_in_transition_map(self):
        """Every status should be a key in the transition map."""
        for status in ApplicationStatus:
            assert status in VALID_STATUS_TRANSITIONS


class TestInvalidStatusTransitionError:
    """Tests for InvalidStatusTransitionError."""

    def test_error_message_contains_both_statuses(self):
        error = InvalidStatusTransitionError(ApplicationStatus.REJECTED, ApplicationStatus.APPROVED)

        assert "rejected" in str(error)
        assert "approved" in str(error)
        assert "Valid transitions: []" in str(error)

    def test_error_keeps_statuses(self):
        error = InvalidStatusTransitionError(ApplicationStatus.APPROVED, ApplicationStatus.REJECTED)

        assert error.current_status == ApplicationStatus.APPROVED
        assert error.new_status == ApplicationStatus.REJECTED
        assert isinstance(error, ValueError)


class TestCreate:
    """Tests for repository.create."""

    @pytest.mark.asyncio
    async def test_teacher_section_is_stored(self, mock_db):
        data = UserApplicationCreate(
            full_name="Tariq Rahman",
            email="t@example.com",
            role=ApplicantRole.TEACHER,
            teacher=TeacherDetails(qualifications="MSc Physics", subjects=[Subject.PHYSICS]),
        )

        application = await repository.create(mock_db, data)

        assert application.status == ApplicationStatus.PENDING
        assert application.qualifications == "MSc Physics"
        assert application.subjects == ["Physics"]
        assert application.preferred_classes == []
        assert application.parent_student_id is None
        mock_db.add.assert_called_once_with(application)
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_parent_section_is_stored(self, mock_db):
        data = UserApplicationCreate(
            full_name="Parvin Akter",
            email="parvin@example.com",
            role=ApplicantRole.PARENT,
            parent=ParentDetails(student_id="STU260001"),
        )

        application = await repository.create(mock_db, data)

        assert application.parent_student_id == "STU260001"
        assert application.qualifications is None
        assert application.subjects == []


class TestUpdateStatus:
    """Tests for repository.update_status."""

    @pytest.mark.asyncio
    async def test_missing_application(self, mock_db):
        mock_db.get.return_value = None

        with pytest.raises(ValueError, match="not found"):
            await repository.update_status(mock_db, uuid4(), ApplicationStatus.APPROVED)

    @pytest.mark.asyncio
    async def test_decided_application_is_refused(self, mock_db):
        application = MagicMock(spec=UserApplication)
        application.status = ApplicationStatus.REJECTED
        mock_db.get.return_value = application

        with pytest.raises(InvalidStatusTransitionError):
            await repository.update_status(mock_db, uuid4(), ApplicationStatus.APPROVED)

        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_decision_fields_are_set_and_committed(self, mock_db):
        application = UserApplication(
            full_name="Sara Ahmed",
            email="sara@example.com",
            role=ApplicantRole.STUDENT,
            status=ApplicationStatus.PENDING,
        )
        mock_db.get.return_value = application
        reviewer_id = uuid4()

        result = await repository.update_application_decision(
            mock_db,
            uuid4(),
            ApplicationStatus.REJECTED,
            decision_reason="Incomplete",
            reviewed_by=reviewer_id,
        )

        assert result.status == ApplicationStatus.REJECTED
        assert result.decision_reason == "Incomplete"
        assert result.reviewed_by == reviewer_id
        assert result.reviewed_at is not None
        mock_db.commit.assert_awaited_once()
