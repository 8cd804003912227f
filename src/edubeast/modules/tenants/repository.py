"""
Tenant Repository

Database operations for school tenants and their feature flags.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edubeast.modules.tenants.models import FEATURE_KEYS, Tenant, TenantFeature, TenantStatus

logger = logging.getLogger(__name__)


class TenantRepository:
    """Repository for tenant database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        name: str,
        slug: str,
        contact_email: str,
        timezone: str,
        country: str,
        theme: str,
        primary_color: str,
        font_family: str,
        meta_title: str,
        feature_flags: dict[str, bool],
        address: str | None = None,
        contact_phone: str | None = None,
        secondary_color: str | None = None,
        accent_color: str | None = None,
        meta_description: str | None = None,
        brand_settings: dict | None = None,
        created_by: UUID | None = None,
    ) -> Tenant:
        """
        Create a tenant in trial status with one feature row per known key.

        Args:
            db: Database session
            name: School name
            slug: Unique URL slug (must already be de-duplicated)
            contact_email: School contact email
            timezone: IANA timezone
            country: 2-letter country code
            theme: Theme name
            primary_color: Hex color
            font_family: Font family
            meta_title: SEO title
            feature_flags: Selected features; keys not present are stored disabled
            address: Street address (optional)
            contact_phone: School phone (optional)
            secondary_color: Hex color (optional)
            accent_color: Hex color (optional)
            meta_description: SEO description (optional)
            brand_settings: Welcome message, activity tracking and custom CSS
            created_by: User who ran onboarding

        Returns:
            Created Tenant instance with features loaded
        """
        tenant = Tenant(
            name=name,
            slug=slug,
            address=address,
            contact_email=contact_email,
            contact_phone=contact_phone,
            timezone=timezone,
            country=country,
            theme=theme,
            primary_color=primary_color,
            secondary_color=secondary_color,
            accent_color=accent_color,
            font_family=font_family,
            brand_settings=brand_settings or {},
            meta_title=meta_title,
            meta_description=meta_description,
            status=TenantStatus.TRIAL,
            onboarding_completed=True,
            created_by=created_by,
            features=[
                TenantFeature(feature_key=key, is_enabled=bool(feature_flags.get(key, False)))
                for key in FEATURE_KEYS
            ],
        )

        db.add(tenant)
        await db.flush()
        await db.refresh(tenant)

        logger.info(f"Created tenant: {tenant.id} - {tenant.slug}")
        return tenant

    @staticmethod
    async def get_by_id(db: AsyncSession, tenant_id: UUID) -> Tenant | None:
        """Get a tenant by ID, or None."""
        result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def slug_exists(db: AsyncSession, slug: str) -> bool:
        """Check if a slug is already taken."""
        result = await db.execute(select(Tenant.id).where(Tenant.slug == slug))
        return result.scalar_one_or_none() is not None
