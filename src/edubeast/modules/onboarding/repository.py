"""
Onboarding Repository

Database operations for onboarding sessions.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edubeast.modules.onboarding.models import OnboardingSession, OnboardingStatus

logger = logging.getLogger(__name__)


class OnboardingRepository:
    """Repository for onboarding session database operations."""

    @staticmethod
    async def create(db: AsyncSession, *, owner_id: UUID, data: dict) -> OnboardingSession:
        """Create an in-progress session on step 1."""
        session = OnboardingSession(
            owner_id=owner_id,
            data=data,
            status=OnboardingStatus.IN_PROGRESS,
        )
        db.add(session)
        await db.flush()
        await db.refresh(session)

        logger.info(f"Created onboarding session {session.id} for user {owner_id}")
        return session

    @staticmethod
    async def get_by_id(db: AsyncSession, session_id: UUID) -> OnboardingSession | None:
        return await db.get(OnboardingSession, session_id)

    @staticmethod
    async def get_in_progress_for_owner(
        db: AsyncSession, owner_id: UUID
    ) -> OnboardingSession | None:
        result = await db.execute(
            select(OnboardingSession).where(
                OnboardingSession.owner_id == owner_id,
                OnboardingSession.status == OnboardingStatus.IN_PROGRESS,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_completed(
        db: AsyncSession, session: OnboardingSession, tenant_id: UUID
    ) -> OnboardingSession:
        """Close the session and link it to the tenant it created."""
        session.status = OnboardingStatus.COMPLETED
        session.tenant_id = tenant_id
        session.completed_at = datetime.now(UTC)
        await db.flush()
        return session
