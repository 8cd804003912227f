"""
Shared model base.

Every table gets a UUID primary key and created/updated timestamps.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from edubeast.core.database import Base


class BaseModel(Base):
    """Abstract base with ``id``, ``created_at`` and ``updated_at``."""

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


def enum_values(enum_cls: type) -> list[str]:
    """Persist enum values (not member names) in PostgreSQL ENUM types."""
    return [member.value for member in enum_cls]


__all__ = ["BaseModel", "enum_values"]
