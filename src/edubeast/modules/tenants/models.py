"""
Tenant Models

Each tenant is one provisioned school with its own branding, locale and
feature flags. Tenants are created by the onboarding wizard.
"""

import uuid
from enum import Enum

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from edubeast.modules.shared import BaseModel, enum_values


class TenantStatus(str, Enum):
    """Status of a school tenant."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    TRIAL = "trial"


# (key, label, category); every tenant gets one tenant_features row per key
TENANT_FEATURES: tuple[tuple[str, str, str], ...] = (
    ("attendanceManagement", "Attendance Management", "core"),
    ("onlineExams", "Online Examinations", "core"),
    ("feeManagement", "Fee Management", "core"),
    ("parentPortal", "Parent Portal", "portal"),
    ("studentPortal", "Student Portal", "portal"),
    ("teacherPortal", "Teacher Portal", "portal"),
    ("messagingSystem", "Messaging System", "communication"),
    ("eventManagement", "Event Management", "advanced"),
    ("reportCards", "Report Cards", "advanced"),
    ("libraryManagement", "Library Management", "advanced"),
    ("inventoryManagement", "Inventory Management", "advanced"),
    ("transportManagement", "Transport Management", "advanced"),
)

FEATURE_KEYS: tuple[str, ...] = tuple(key for key, _, _ in TENANT_FEATURES)

SLUG_MAX_LENGTH = 100


class Tenant(BaseModel):
    """
    School tenant.

    ``slug`` is unique and never changes after creation. ``brand_settings``
    holds ``welcome_message``, ``activity_tracking`` and ``custom_css``.
    """

    __tablename__ = "tenants"

    # Identity
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(
        String(SLUG_MAX_LENGTH),
        unique=True,
        index=True,
        nullable=False,
    )

    # Contact information
    address: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    contact_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    contact_phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    # Locale
    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    country: Mapped[str] = mapped_column(
        String(2),
        nullable=False,
    )
    language: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="en",
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    # Branding
    theme: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    primary_color: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
    )
    secondary_color: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
    )
    accent_color: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
    )
    font_family: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    brand_settings: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )

    # SEO
    meta_title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    meta_description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Subscription
    status: Mapped[TenantStatus] = mapped_column(
        ENUM(TenantStatus, name="tenant_status", create_type=True, values_callable=enum_values),
        nullable=False,
        default=TenantStatus.TRIAL,
    )
    plan: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="basic",
    )
    onboarding_completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )

    # Relationships
    features: Mapped[list["TenantFeature"]] = relationship(
        "TenantFeature",
        back_populates="tenant",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug={self.slug}, status={self.status.value})>"

    @property
    def feature_flags(self) -> dict[str, bool]:
        return {feature.feature_key: feature.is_enabled for feature in self.features}

    def is_feature_enabled(self, feature_key: str) -> bool:
        return self.feature_flags.get(feature_key, False)


class TenantFeature(BaseModel):
    """Enabled/disabled flag for one feature key of a tenant."""

    __tablename__ = "tenant_features"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feature_key: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="features")

    __table_args__ = (
        UniqueConstraint("tenant_id", "feature_key", name="uq_tenant_features_tenant_key"),
    )
