"""
Onboarding Models

A persisted draft of the school setup wizard, so the wizard can be resumed
across requests. A user has at most one in-progress session.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, text
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from edubeast.modules.onboarding.wizard import (
    FIRST_STEP,
    TOTAL_STEPS,
    OnboardingData,
    OnboardingWizard,
)
from edubeast.modules.shared import BaseModel, enum_values


class OnboardingStatus(str, Enum):
    """Status of an onboarding session."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class OnboardingSession(BaseModel):
    """Wizard draft owned by one user; linked to the tenant it created on completion."""

    __tablename__ = "onboarding_sessions"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    current_step: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=int(FIRST_STEP),
    )
    data: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )
    slug_touched: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    meta_title_touched: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    status: Mapped[OnboardingStatus] = mapped_column(
        ENUM(
            OnboardingStatus,
            name="onboarding_status",
            create_type=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=OnboardingStatus.IN_PROGRESS,
    )
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            f"current_step BETWEEN {int(FIRST_STEP)} AND {TOTAL_STEPS}",
            name="ck_onboarding_sessions_current_step",
        ),
        Index(
            "uq_onboarding_sessions_owner_in_progress",
            "owner_id",
            unique=True,
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<OnboardingSession(id={self.id}, owner={self.owner_id}, "
            f"step={self.current_step}, status={self.status.value})>"
        )

    @property
    def is_completed(self) -> bool:
        return self.status == OnboardingStatus.COMPLETED

    def to_wizard(self) -> OnboardingWizard:
        return OnboardingWizard(
            data=OnboardingData.from_dict(self.data),
            current_step=self.current_step,
            slug_touched=self.slug_touched,
            meta_title_touched=self.meta_title_touched,
        )

    def apply_wizard(self, wizard: OnboardingWizard) -> None:
        """Copy wizard state back onto the row."""
        # New dict so the JSONB column is flagged as changed
        self.data = wizard.data.to_dict()
        self.current_step = int(wizard.current_step)
        self.slug_touched = wizard.slug_touched
        self.meta_title_touched = wizard.meta_title_touched
