"""
Tenant Schemas

Response models for provisioned schools.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from edubeast.modules.tenants.models import TenantStatus


class TenantResponse(BaseModel):
    """A provisioned school as seen by its users."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    name: str
    slug: str
    address: str | None = None
    contact_email: str
    contact_phone: str | None = None
    timezone: str
    country: str
    language: str
    currency: str
    theme: str
    primary_color: str
    secondary_color: str | None = None
    accent_color: str | None = None
    font_family: str
    brand_settings: dict = Field(default_factory=dict)
    meta_title: str
    meta_description: str | None = None
    status: TenantStatus
    plan: str
    onboarding_completed: bool
    features: dict[str, bool] = Field(
        default_factory=dict,
        validation_alias="feature_flags",
        description="Every known feature key mapped to enabled/disabled",
    )
    created_at: datetime
