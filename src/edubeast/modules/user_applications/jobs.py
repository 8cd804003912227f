"""
User Applications Background Jobs

Scheduled tasks for the review queue:
1. Email reviewers a digest of applications pending longer than a threshold

Design Principles:
- Jobs are read-only against applications (safe to run multiple times)
- Jobs handle their own database sessions
- A failed email to one recipient does not stop the others

Schedule:
- The digest runs every PENDING_DIGEST_INTERVAL_HOURS (default 24)
- Jobs can also be triggered manually via the scheduler debug endpoint
"""

import logging
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from edubeast.core.config import settings
from edubeast.core.database import async_session_maker
from edubeast.core.email import send_pending_applications_digest
from edubeast.core.scheduler import register_job
from edubeast.modules.user_applications import repository

logger = logging.getLogger(__name__)

JOB_ID_PENDING_DIGEST = "pending_applications_digest"


async def send_pending_digest() -> dict[str, Any]:
    """
    Email reviewers a count of long-pending applications, by role.

    Returns:
        Dict with job results:
        {
            "stale_pending": int,
            "counts_by_role": {role: count},
            "emails_sent": int,
            "emails_failed": int,
        }
    """
    threshold_hours = settings.pending_digest_threshold_hours
    cutoff = datetime.now(UTC) - timedelta(hours=threshold_hours)
    recipients = settings.reviewer_digest_recipients_list

    results: dict[str, Any] = {
        "stale_pending": 0,
        "counts_by_role": {},
        "emails_sent": 0,
        "emails_failed": 0,
    }

    async with async_session_maker() as db:
        applications = await repository.get_pending_submitted_before(db, cutoff)

    if not applications:
        logger.info(f"Pending digest: no applications older than {threshold_hours} hours")
        return results

    counts = Counter(app.role.value for app in applications)
    results["stale_pending"] = len(applications)
    results["counts_by_role"] = dict(counts)

    if not recipients:
        logger.warning(
            f"Pending digest: {len(applications)} stale application(s) "
            "but REVIEWER_DIGEST_RECIPIENTS is empty"
        )
        return results

    for recipient in recipients:
        sent = await send_pending_applications_digest(
            to_email=recipient,
            counts_by_role=dict(counts),
            threshold_hours=threshold_hours,
        )
        if sent:
            results["emails_sent"] += 1
        else:
            results["emails_failed"] += 1

    logger.info(
        f"Pending digest completed. Stale: {results['stale_pending']}, "
        f"Sent: {results['emails_sent']}, Failed: {results['emails_failed']}"
    )
    return results


def register_user_application_jobs() -> None:
    """
    Register user application background jobs with the scheduler.

    Call during application startup, before the scheduler is started.
    """
    interval = settings.pending_digest_interval_hours
    register_job(
        job_id=JOB_ID_PENDING_DIGEST,
        func=send_pending_digest,
        trigger=IntervalTrigger(hours=interval),
    )
    logger.info(f"Registered job: {JOB_ID_PENDING_DIGEST} (interval: {interval} hours)")
