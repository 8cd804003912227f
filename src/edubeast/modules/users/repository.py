"""
User Repository

Database operations for user accounts and their assignments.
Methods flush but never commit; the calling service owns the transaction.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from edubeast.modules.users.models import AssignmentKind, User, UserAssignment, UserRole

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        full_name: str,
        role: UserRole,
        phone: str | None = None,
        student_code: str | None = None,
        application_id: UUID | None = None,
        approved_by: UUID | None = None,
        approved_at: datetime | None = None,
        must_change_password: bool = False,
        assignments: Iterable[tuple[AssignmentKind, str]] = (),
    ) -> User:
        """
        Create a new user record together with its assignments.

        Args:
            db: Database session
            email: Email address (unique, stored lower-cased)
            password_hash: Bcrypt hash
            full_name: Display name
            role: User's role
            phone: Phone number (optional)
            student_code: Generated student ID (students only)
            application_id: Source application, for approved applicants
            approved_by: Reviewer who approved the application
            approved_at: Approval timestamp
            must_change_password: Whether the password must be changed on next login
            assignments: Ordered ``(kind, value)`` tuples

        Returns:
            Created User instance with assignments loaded
        """
        user = User(
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

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} - {user.email} ({user.role.value})")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        """Get a user by ID, or None."""
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Get a user by email address (case-insensitive), or None."""
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        """Check if an email address already belongs to a user."""
        user = await UserRepository.get_by_email(db, email)
        return user is not None

    @staticmethod
    async def get_by_application_id(db: AsyncSession, application_id: UUID) -> User | None:
        """Get the user created from an application, or None."""
        result = await db.execute(select(User).where(User.application_id == application_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def student_code_exists(db: AsyncSession, student_code: str) -> bool:
        """Check if a generated student ID is already taken."""
        result = await db.execute(select(User.id).where(User.student_code == student_code))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_approved(db: AsyncSession) -> list[User]:
        """
        List users created from approved applications.

        Returns:
            Users ordered by approval time, oldest first
        """
        query = (
            select(User)
            .where(User.application_id.is_not(None))
            .order_by(User.approved_at.asc(), User.created_at.asc())
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def link_tenant(db: AsyncSession, user: User, tenant_id: UUID) -> User:
        """Attach a user to a tenant."""
        user.tenant_id = tenant_id
        await db.flush()
        logger.info(f"Linked user {user.id} to tenant {tenant_id}")
        return user

    @staticmethod
    async def record_login(db: AsyncSession, user: User) -> None:
        """Stamp the user's last successful login."""
        user.last_login_at = datetime.now(UTC)
        await db.flush()

    @staticmethod
    async def set_password(db: AsyncSession, user: User, password_hash: str) -> None:
        """Replace the user's password and clear the first-login flag."""
        user.password_hash = password_hash
        user.must_change_password = False
        await db.flush()
        logger.info(f"Password changed for user {user.id}")
