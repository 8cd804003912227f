"""
Unit tests for the onboarding service layer.

Repositories and the email sender are mocked; sessions are real
``OnboardingSession`` instances that are never flushed.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from edubeast.core import action_guard
from edubeast.core.exceptions import (
    ActionInProgressError,
    PersistenceFailureError,
    ValidationFailedError,
)
from edubeast.modules.onboarding import service
from edubeast.modules.onboarding.models import OnboardingSession, OnboardingStatus
from edubeast.modules.onboarding.service import (
    AlreadyOnboardedError,
    OnboardingAlreadyCompletedError,
    OnboardingFailedError,
    OnboardingSessionNotFoundError,
    build_custom_css,
)
from edubeast.modules.onboarding.wizard import OnboardingData, WizardStep
from edubeast.modules.tenants.models import SLUG_MAX_LENGTH

SERVICE = "edubeast.modules.onboarding.service"


def _session(owner_id, step=WizardStep.SCHOOL_INFO, **data) -> OnboardingSession:
    return OnboardingSession(
        id=uuid4(),
        owner_id=owner_id,
        current_step=int(step),
        data={**OnboardingData().to_dict(), **data},
        slug_touched=False,
        meta_title_touched=False,
        status=OnboardingStatus.IN_PROGRESS,
    )


def _mark_completed(db, session, tenant_id):
    session.status = OnboardingStatus.COMPLETED
    session.tenant_id = tenant_id
    return session


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def owner_id():
    return uuid4()


@pytest.fixture
def owner(owner_id):
    return SimpleNamespace(id=owner_id, tenant_id=None, email="owner@example.com")


@pytest.fixture
def repos(owner):
    """Patch every repository and the school ready email."""
    with (
        patch(f"{SERVICE}.OnboardingRepository") as onboarding_repo,
        patch(f"{SERVICE}.TenantRepository") as tenant_repo,
        patch(f"{SERVICE}.UserRepository") as user_repo,
        patch(f"{SERVICE}.send_school_ready", new_callable=AsyncMock) as school_ready,
    ):
        onboarding_repo.get_by_id = AsyncMock(return_value=None)
        onboarding_repo.get_in_progress_for_owner = AsyncMock(return_value=None)
        onboarding_repo.create = AsyncMock()
        onboarding_repo.mark_completed = AsyncMock(side_effect=_mark_completed)

        tenant_repo.slug_exists = AsyncMock(return_value=False)
        tenant_repo.create = AsyncMock(
            side_effect=lambda db, **kw: SimpleNamespace(id=uuid4(), **kw)
        )

        user_repo.get_by_id = AsyncMock(return_value=owner)
        user_repo.link_tenant = AsyncMock()

        school_ready.return_value = True
        yield SimpleNamespace(
            onboarding=onboarding_repo,
            tenants=tenant_repo,
            users=user_repo,
            school_ready=school_ready,
        )


@pytest.fixture
def ready_session(owner_id, repos):
    """A session on the last step with every gate satisfied."""
    session = _session(
        owner_id,
        WizardStep.ACTIVITY,
        name="Green Valley High School",
        slug="green-valley-high-school",
        meta_title="Green Valley High School",
        contact_email="office@greenvalley.edu",
    )
    repos.onboarding.get_by_id.return_value = session
    return session


class TestStartSession:
    """Tests for start_session."""

    @pytest.mark.asyncio
    async def test_creates_session_with_defaults(self, mock_db, repos, owner_id):
        created = _session(owner_id)
        repos.onboarding.create.return_value = created

        result = await service.start_session(mock_db, owner_id)

        assert result is created
        kwargs = repos.onboarding.create.await_args.kwargs
        assert kwargs["owner_id"] == owner_id
        assert kwargs["data"]["timezone"] == "Asia/Dhaka"
        assert kwargs["data"]["features"] == [
            "attendanceManagement",
            "feeManagement",
            "studentPortal",
            "teacherPortal",
        ]
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resumes_in_progress_session(self, mock_db, repos, owner_id):
        existing = _session(owner_id, WizardStep.BRANDING)
        repos.onboarding.get_in_progress_for_owner.return_value = existing

        result = await service.start_session(mock_db, owner_id)

        assert result is existing
        repos.onboarding.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_linked_user(self, mock_db, repos, owner, owner_id):
        owner.tenant_id = uuid4()

        with pytest.raises(AlreadyOnboardedError) as exc_info:
            await service.start_session(mock_db, owner_id)

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_concurrent_start_returns_winner(self, mock_db, repos, owner_id):
        winner = _session(owner_id)
        repos.onboarding.get_in_progress_for_owner.side_effect = [None, winner]
        repos.onboarding.create.side_effect = IntegrityError("INSERT", {}, Exception("dup"))

        result = await service.start_session(mock_db, owner_id)

        assert result is winner
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_failure(self, mock_db, repos, owner_id):
        repos.onboarding.create.side_effect = OperationalError("INSERT", {}, Exception("down"))

        with pytest.raises(PersistenceFailureError):
            await service.start_session(mock_db, owner_id)


class TestEditing:
    """Tests for update_session, toggle_feature, advance and go_back."""

    @pytest.mark.asyncio
    async def test_update_derives_slug(self, mock_db, repos, owner_id):
        session = _session(owner_id)
        repos.onboarding.get_by_id.return_value = session

        await service.update_session(
            mock_db, session.id, owner_id, {"name": "Green Valley High School"}
        )

        assert session.data["slug"] == "green-valley-high-school"
        assert session.data["meta_title"] == "Green Valley High School"
        assert session.slug_touched is False
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_manual_slug_sets_touched(self, mock_db, repos, owner_id):
        session = _session(owner_id)
        repos.onboarding.get_by_id.return_value = session

        await service.update_session(mock_db, session.id, owner_id, {"slug": "gvhs"})
        await service.update_session(mock_db, session.id, owner_id, {"name": "Other Name"})

        assert session.slug_touched is True
        assert session.data["slug"] == "gvhs"

    @pytest.mark.asyncio
    async def test_other_owner_sees_not_found(self, mock_db, repos, owner_id):
        session = _session(owner_id)
        repos.onboarding.get_by_id.return_value = session

        with pytest.raises(OnboardingSessionNotFoundError) as exc_info:
            await service.update_session(mock_db, session.id, uuid4(), {"name": "X"})

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_completed_session_is_read_only(self, mock_db, repos, owner_id):
        session = _session(owner_id, WizardStep.ACTIVITY)
        session.status = OnboardingStatus.COMPLETED
        repos.onboarding.get_by_id.return_value = session

        with pytest.raises(OnboardingAlreadyCompletedError):
            await service.toggle_feature(mock_db, session.id, owner_id, "reportCards", True)

        assert await service.get_session(mock_db, session.id, owner_id) is session

    @pytest.mark.asyncio
    async def test_toggle_feature(self, mock_db, repos, owner_id):
        session = _session(owner_id, WizardStep.MODULES)
        repos.onboarding.get_by_id.return_value = session

        await service.toggle_feature(mock_db, session.id, owner_id, "studentPortal", False)

        assert "studentPortal" not in session.data["features"]

    @pytest.mark.asyncio
    async def test_toggle_unknown_feature(self, mock_db, repos, owner_id):
        session = _session(owner_id, WizardStep.MODULES)
        repos.onboarding.get_by_id.return_value = session

        with pytest.raises(ValidationFailedError) as exc_info:
            await service.toggle_feature(mock_db, session.id, owner_id, "spaceProgram", True)

        assert exc_info.value.fields == ["features"]
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_advance_blocked(self, mock_db, repos, owner_id):
        session = _session(owner_id, name="Green Valley", slug="green-valley")
        repos.onboarding.get_by_id.return_value = session

        with pytest.raises(ValidationFailedError) as exc_info:
            await service.advance(mock_db, session.id, owner_id)

        assert exc_info.value.message == "Please fill required fields"
        assert exc_info.value.description == "Complete all required fields before proceeding."
        assert exc_info.value.fields == ["contact_email"]
        assert session.current_step == 1
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_advance(self, mock_db, repos, owner_id):
        session = _session(
            owner_id, name="Green Valley", slug="green-valley", contact_email="a@gv.edu"
        )
        repos.onboarding.get_by_id.return_value = session

        await service.advance(mock_db, session.id, owner_id)

        assert session.current_step == 2

    @pytest.mark.asyncio
    async def test_go_back(self, mock_db, repos, owner_id):
        session = _session(owner_id, WizardStep.SEO)
        repos.onboarding.get_by_id.return_value = session

        await service.go_back(mock_db, session.id, owner_id)

        assert session.current_step == 3

    @pytest.mark.asyncio
    async def test_save_failure(self, mock_db, repos, owner_id):
        session = _session(owner_id, WizardStep.SEO)
        repos.onboarding.get_by_id.return_value = session
        mock_db.commit.side_effect = OperationalError("UPDATE", {}, Exception("down"))

        with pytest.raises(PersistenceFailureError):
            await service.go_back(mock_db, session.id, owner_id)

        mock_db.rollback.assert_awaited_once()


class TestComplete:
    """Tests for complete."""

    @pytest.mark.asyncio
    async def test_provisions_tenant(self, mock_db, repos, owner, owner_id, ready_session):
        result = await service.complete(mock_db, ready_session.id, owner_id)

        kwargs = repos.tenants.create.await_args.kwargs
        assert kwargs["slug"] == "green-valley-high-school"
        assert kwargs["created_by"] == owner_id
        assert kwargs["address"] is None
        assert kwargs["feature_flags"]["studentPortal"] is True
        assert kwargs["feature_flags"]["onlineExams"] is False
        assert kwargs["brand_settings"]["welcome_message"] == (
            "Welcome to your school management system!"
        )
        assert "--primary: #3b82f6;" in kwargs["brand_settings"]["custom_css"]

        repos.users.link_tenant.assert_awaited_once_with(mock_db, owner, result.tenant.id)
        assert result.session.status == OnboardingStatus.COMPLETED
        assert result.session.tenant_id == result.tenant.id
        mock_db.commit.assert_awaited_once()
        repos.school_ready.assert_awaited_once_with(
            to_email="office@greenvalley.edu",
            school_name="Green Valley High School",
            slug="green-valley-high-school",
        )

    @pytest.mark.asyncio
    async def test_taken_slug_gets_suffix(self, mock_db, repos, owner_id, ready_session):
        taken = {"green-valley-high-school", "green-valley-high-school-2"}
        repos.tenants.slug_exists.side_effect = lambda db, slug: slug in taken

        result = await service.complete(mock_db, ready_session.id, owner_id)

        assert result.tenant.slug == "green-valley-high-school-3"

    @pytest.mark.asyncio
    async def test_suffix_keeps_full_length_slug_in_column(
        self, mock_db, repos, owner_id, ready_session
    ):
        full = "a" * SLUG_MAX_LENGTH
        ready_session.data = {**ready_session.data, "slug": full}
        repos.tenants.slug_exists.side_effect = lambda db, slug: slug == full

        result = await service.complete(mock_db, ready_session.id, owner_id)

        assert result.tenant.slug == "a" * (SLUG_MAX_LENGTH - 2) + "-2"
        assert len(result.tenant.slug) == SLUG_MAX_LENGTH

    @pytest.mark.asyncio
    async def test_empty_meta_title_falls_back_to_name(
        self, mock_db, repos, owner_id, ready_session
    ):
        ready_session.data = {**ready_session.data, "meta_title": ""}

        await service.complete(mock_db, ready_session.id, owner_id)

        assert repos.tenants.create.await_args.kwargs["meta_title"] == "Green Valley High School"

    @pytest.mark.asyncio
    async def test_not_on_last_step(self, mock_db, repos, owner_id, ready_session):
        ready_session.current_step = int(WizardStep.MODULES)

        with pytest.raises(ValidationFailedError) as exc_info:
            await service.complete(mock_db, ready_session.id, owner_id)

        assert exc_info.value.description == "Finish all steps before completing setup"
        repos.tenants.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_earlier_gate_rechecked(self, mock_db, repos, owner_id, ready_session):
        ready_session.data = {**ready_session.data, "features": []}

        with pytest.raises(ValidationFailedError) as exc_info:
            await service.complete(mock_db, ready_session.id, owner_id)

        assert exc_info.value.fields == ["features"]

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, mock_db, repos, owner_id, ready_session):
        repos.users.link_tenant.side_effect = OperationalError("UPDATE", {}, Exception("down"))

        with pytest.raises(OnboardingFailedError) as exc_info:
            await service.complete(mock_db, ready_session.id, owner_id)

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Setup failed"
        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_called()
        repos.school_ready.assert_not_called()

    @pytest.mark.asyncio
    async def test_completed_twice(self, mock_db, repos, owner_id, ready_session):
        await service.complete(mock_db, ready_session.id, owner_id)

        with pytest.raises(OnboardingAlreadyCompletedError):
            await service.complete(mock_db, ready_session.id, owner_id)

        assert repos.tenants.create.await_count == 1

    @pytest.mark.asyncio
    async def test_in_flight_completion_refused(self, mock_db, repos, owner_id, ready_session):
        action_guard._memory_locks.add(f"action_guard:onboarding:complete:{ready_session.id}")

        with pytest.raises(ActionInProgressError):
            await service.complete(mock_db, ready_session.id, owner_id)

    @pytest.mark.asyncio
    async def test_email_failure_keeps_tenant(self, mock_db, repos, owner_id, ready_session):
        repos.school_ready.return_value = False

        result = await service.complete(mock_db, ready_session.id, owner_id)

        assert result.session.status == OnboardingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_missing_user_row_leaves_tenant_unlinked(
        self, mock_db, repos, owner_id, ready_session
    ):
        repos.users.get_by_id.return_value = None

        result = await service.complete(mock_db, ready_session.id, owner_id)

        repos.users.link_tenant.assert_not_called()
        assert result.session.status == OnboardingStatus.COMPLETED


class TestBuildCustomCss:
    """Tests for build_custom_css."""

    def test_contains_colors_and_font(self):
        css = build_custom_css(OnboardingData(primary_color="#112233", font_family="Lato"))

        assert css.startswith(":root {")
        assert "--primary: #112233;" in css
        assert "--secondary: #10b981;" in css
        assert "--accent: #f59e0b;" in css
        assert "--font-family: 'Lato';" in css
