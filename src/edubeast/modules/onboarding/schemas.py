"""
Onboarding Schemas

Request and response models for the school setup wizard.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from edubeast.modules.onboarding.models import OnboardingSession, OnboardingStatus
from edubeast.modules.onboarding.wizard import (
    COUNTRIES,
    FONT_FAMILIES,
    HEX_COLOR_PATTERN,
    THEMES,
    TIMEZONES,
    TOTAL_STEPS,
    OnboardingData,
)
from edubeast.modules.tenants.models import FEATURE_KEYS, SLUG_MAX_LENGTH, TENANT_FEATURES
from edubeast.modules.tenants.schemas import TenantResponse


def _check_option(value: str | None, options: tuple[str, ...], label: str) -> str | None:
    if value is not None and value not in options:
        raise ValueError(f"{label} must be one of: {', '.join(options)}")
    return value


# ============================================
# Requests
# ============================================


class OnboardingSessionUpdate(BaseModel):
    """
    Partial update of wizard fields.

    Only fields present in the request body are applied. ``null`` clears a
    field; clearing ``slug`` or ``meta_title`` lets it follow ``name`` again.
    """

    model_config = ConfigDict(extra="forbid")

    # Step 1: school info
    name: str | None = Field(None, max_length=200)
    slug: str | None = Field(None, max_length=SLUG_MAX_LENGTH)
    address: str | None = Field(None, max_length=500)
    contact_email: EmailStr | None = None
    contact_phone: str | None = Field(None, max_length=20)

    # Step 2: location
    timezone: str | None = None
    country: str | None = None

    # Step 3: branding
    theme: str | None = None
    primary_color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    secondary_color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    accent_color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    font_family: str | None = None

    # Step 4: SEO
    meta_title: str | None = Field(None, max_length=200)
    meta_description: str | None = Field(None, max_length=500)

    # Step 5: modules
    features: list[str] | None = None

    # Step 6: activity
    activity_tracking: bool | None = None
    welcome_message: str | None = Field(None, max_length=500)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        return _check_option(v, TIMEZONES, "timezone")

    @field_validator("country")
    @classmethod
    def validate_country(cls, v: str | None) -> str | None:
        return _check_option(v, COUNTRIES, "country")

    @field_validator("theme")
    @classmethod
    def validate_theme(cls, v: str | None) -> str | None:
        return _check_option(v, THEMES, "theme")

    @field_validator("font_family")
    @classmethod
    def validate_font_family(cls, v: str | None) -> str | None:
        return _check_option(v, FONT_FAMILIES, "font_family")

    @field_validator("features")
    @classmethod
    def validate_features(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        unknown = [key for key in v if key not in FEATURE_KEYS]
        if unknown:
            raise ValueError(f"Unknown features: {', '.join(unknown)}")
        return list(dict.fromkeys(v))

    @field_validator("contact_email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.strip().lower() if v else v

    def changes(self) -> dict[str, Any]:
        """Fields that were explicitly sent, including explicit nulls."""
        return self.model_dump(exclude_unset=True)


class FeatureToggleRequest(BaseModel):
    """Enable or disable one feature."""

    key: str = Field(..., description="Feature key, e.g. 'onlineExams'")
    enabled: bool


# ============================================
# Responses
# ============================================


class OnboardingSessionResponse(BaseModel):
    """Wizard state for rendering the current step."""

    id: UUID
    status: OnboardingStatus
    current_step: int
    total_steps: int = TOTAL_STEPS
    progress: int = Field(..., description="Percentage of steps reached")
    data: dict[str, Any]
    slug_touched: bool
    meta_title_touched: bool
    can_advance: bool
    missing_fields: list[str]
    tenant_id: UUID | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, session: OnboardingSession) -> "OnboardingSessionResponse":
        wizard = session.to_wizard()
        return cls(
            id=session.id,
            status=session.status,
            current_step=int(wizard.current_step),
            progress=wizard.progress,
            data=wizard.data.to_dict(),
            slug_touched=wizard.slug_touched,
            meta_title_touched=wizard.meta_title_touched,
            can_advance=wizard.can_advance(),
            missing_fields=wizard.missing_fields(wizard.current_step),
            tenant_id=session.tenant_id,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class FeatureOption(BaseModel):
    key: str
    label: str
    category: str


class OnboardingOptionsResponse(BaseModel):
    """Option sets and defaults for the wizard form."""

    timezones: list[str] = Field(default_factory=lambda: list(TIMEZONES))
    countries: list[str] = Field(default_factory=lambda: list(COUNTRIES))
    themes: list[str] = Field(default_factory=lambda: list(THEMES))
    fonts: list[str] = Field(default_factory=lambda: list(FONT_FAMILIES))
    features: list[FeatureOption] = Field(
        default_factory=lambda: [
            FeatureOption(key=key, label=label, category=category)
            for key, label, category in TENANT_FEATURES
        ]
    )
    defaults: dict[str, Any] = Field(default_factory=lambda: OnboardingData().to_dict())


class CompleteOnboardingResponse(BaseModel):
    """Result of finishing the wizard."""

    session: OnboardingSessionResponse
    tenant: TenantResponse
    message: str = "School setup complete! Welcome to your new school management system."
