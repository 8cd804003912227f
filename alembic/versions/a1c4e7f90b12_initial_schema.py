"""initial schema

Revision ID: a1c4e7f90b12
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration creates:
1. tenants and tenant_features (schools provisioned by onboarding)
2. user_applications (anonymous applications awaiting review)
3. users and user_assignments (accounts created on approval)
4. onboarding_sessions (persisted wizard drafts)

Enum types are created first with checkfirst so the migration can be
re-run against a partially initialized database.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1c4e7f90b12"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


tenant_status = postgresql.ENUM("active", "suspended", "trial", name="tenant_status", create_type=False)
applicant_role = postgresql.ENUM("student", "teacher", "parent", name="applicant_role", create_type=False)
user_application_status = postgresql.ENUM(
    "pending", "approved", "rejected", name="user_application_status", create_type=False
)
user_role = postgresql.ENUM(
    "super_admin",
    "school_admin",
    "teacher",
    "student",
    "parent",
    name="user_role",
    create_type=False,
)
assignment_kind = postgresql.ENUM(
    "class", "subject", "linked_student", name="assignment_kind", create_type=False
)
onboarding_status = postgresql.ENUM(
    "in_progress", "completed", name="onboarding_status", create_type=False
)

ENUM_TYPES = (
    tenant_status,
    applicant_role,
    user_application_status,
    user_role,
    assignment_kind,
    onboarding_status,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create all tables."""
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    # Tenants
    op.create_table(
        "tenants",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("contact_email", sa.String(length=255), nullable=False),
        sa.Column("contact_phone", sa.String(length=20), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("country", sa.String(length=2), nullable=False),
        sa.Column("language", sa.String(length=10), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("theme", sa.String(length=20), nullable=False),
        sa.Column("primary_color", sa.String(length=7), nullable=False),
        sa.Column("secondary_color", sa.String(length=7), nullable=True),
        sa.Column("accent_color", sa.String(length=7), nullable=True),
        sa.Column("font_family", sa.String(length=50), nullable=False),
        sa.Column("brand_settings", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("meta_title", sa.String(length=200), nullable=False),
        sa.Column("meta_description", sa.Text(), nullable=True),
        sa.Column("status", tenant_status, nullable=False),
        sa.Column("plan", sa.String(length=20), nullable=False),
        sa.Column("onboarding_completed", sa.Boolean(), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    op.create_table(
        "tenant_features",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("feature_key", sa.String(length=50), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "feature_key", name="uq_tenant_features_tenant_key"),
    )
    op.create_index("ix_tenant_features_tenant_id", "tenant_features", ["tenant_id"])

    # Applications
    op.create_table(
        "user_applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", applicant_role, nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("qualifications", sa.Text(), nullable=True),
        sa.Column("experience", sa.Text(), nullable=True),
        sa.Column("subjects", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("preferred_classes", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("parent_student_id", sa.String(length=50), nullable=True),
        sa.Column("additional_info", sa.Text(), nullable=True),
        sa.Column("status", user_application_status, nullable=False),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("decision_reason", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_user_applications_status_submitted_at",
        "user_applications",
        ["status", "submitted_at"],
    )
    op.create_index("ix_user_applications_email", "user_applications", ["email"])
    op.create_index(
        "uq_user_applications_pending_email",
        "user_applications",
        ["email"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # Users
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("student_code", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("must_change_password", sa.Boolean(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("approved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["application_id"], ["user_applications.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_code"),
        sa.UniqueConstraint("application_id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])
    op.create_index("ix_users_approved_at", "users", ["approved_at"])

    op.create_table(
        "user_assignments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", assignment_kind, nullable=False),
        sa.Column("value", sa.String(length=100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "kind", "value", name="uq_user_assignments_user_kind_value"),
    )
    op.create_index("ix_user_assignments_user_id", "user_assignments", ["user_id"])

    # Onboarding
    op.create_table(
        "onboarding_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("current_step", sa.Integer(), nullable=False),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("slug_touched", sa.Boolean(), nullable=False),
        sa.Column("meta_title_touched", sa.Boolean(), nullable=False),
        sa.Column("status", onboarding_status, nullable=False),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "current_step BETWEEN 1 AND 6", name="ck_onboarding_sessions_current_step"
        ),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_onboarding_sessions_owner_id", "onboarding_sessions", ["owner_id"])
    op.create_index(
        "uq_onboarding_sessions_owner_in_progress",
        "onboarding_sessions",
        ["owner_id"],
        unique=True,
        postgresql_where=sa.text("status = 'in_progress'"),
    )


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table("onboarding_sessions")
    op.drop_table("user_assignments")
    op.drop_table("users")
    op.drop_table("user_applications")
    op.drop_table("tenant_features")
    op.drop_table("tenants")

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
