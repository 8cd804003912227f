"""
Unit tests for user applications background jobs.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from edubeast.core.config import settings
from edubeast.modules.user_applications import jobs
from edubeast.modules.user_applications.models import ApplicantRole

JOBS = "edubeast.modules.user_applications.jobs"


def _application(role: ApplicantRole) -> MagicMock:
    application = MagicMock()
    application.role = role
    return application


@pytest.fixture
def stale_applications():
    return [
        _application(ApplicantRole.TEACHER),
        _application(ApplicantRole.TEACHER),
        _application(ApplicantRole.PARENT),
    ]


@pytest.fixture
def patched_job(stale_applications):
    with (
        patch(f"{JOBS}.async_session_maker", MagicMock()),
        patch(f"{JOBS}.repository") as mock_repo,
        patch(f"{JOBS}.send_pending_applications_digest", new_callable=AsyncMock) as mock_send,
    ):
        mock_repo.get_pending_submitted_before = AsyncMock(return_value=stale_applications)
        mock_send.return_value = True
        yield mock_repo, mock_send


class TestSendPendingDigest:
    """Tests for send_pending_digest."""

    @pytest.mark.asyncio
    async def test_emails_every_recipient(self, patched_job):
        mock_repo, mock_send = patched_job

        with patch.object(settings, "reviewer_digest_recipients", "a@example.com, b@example.com"):
            results = await jobs.send_pending_digest()

        assert results == {
            "stale_pending": 3,
            "counts_by_role": {"teacher": 2, "parent": 1},
            "emails_sent": 2,
            "emails_failed": 0,
        }
        recipients = [c.kwargs["to_email"] for c in mock_send.await_args_list]
        assert recipients == ["a@example.com", "b@example.com"]

    @pytest.mark.asyncio
    async def test_failed_send_is_counted(self, patched_job):
        _, mock_send = patched_job
        mock_send.side_effect = [False, True]

        with patch.object(settings, "reviewer_digest_recipients", "a@example.com,b@example.com"):
            results = await jobs.send_pending_digest()

        assert results["emails_sent"] == 1
        assert results["emails_failed"] == 1

    @pytest.mark.asyncio
    async def test_no_recipients_sends_nothing(self, patched_job):
        _, mock_send = patched_job

        with patch.object(settings, "reviewer_digest_recipients", ""):
            results = await jobs.send_pending_digest()

        assert results["stale_pending"] == 3
        mock_send.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_stale(self, patched_job):
        mock_repo, mock_send = patched_job
        mock_repo.get_pending_submitted_before.return_value = []

        results = await jobs.send_pending_digest()

        assert results["stale_pending"] == 0
        mock_send.assert_not_called()


class TestRegisterJobs:
    """Tests for register_user_application_jobs."""

    def test_registers_digest(self):
        with patch(f"{JOBS}.register_job") as mock_register:
            jobs.register_user_application_jobs()

        kwargs = mock_register.call_args.kwargs
        assert kwargs["job_id"] == "pending_applications_digest"
        assert kwargs["func"] is jobs.send_pending_digest
