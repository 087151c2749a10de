"""Declarative base and shared columns for persisted records."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all tables."""


class BaseModel(Base):
    """
    Abstract base for records partitioned by project.

    Every table carries a surrogate UUID key, audit timestamps and the
    ``project_id`` partition column used by all range queries.
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, comment="Surrogate key"
    )

    project_id: Mapped[str] = mapped_column(
        String(128), nullable=False, index=True, comment="Partition key"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, comment="Row creation time"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        comment="Row update time",
    )
