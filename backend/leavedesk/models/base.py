from __future__ import annotations

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def now_utc() -> datetime:
    """Timezone-aware current time; every stored timestamp goes through here."""
    return datetime.now(UTC)


def _timestamp_field(*, index: bool = False) -> datetime:
    return Field(
        default_factory=now_utc,
        index=index,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class UUIDBase(SQLModel):
    """Row keyed by a client-generated UUID."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, sa_type=sa.Uuid)


class TimestampMixin(SQLModel):
    """Adds an indexed ``created_at``, the listing sort key."""

    created_at: datetime = _timestamp_field(index=True)


class UpdatedAtMixin(SQLModel):
    """Adds ``updated_at``; writers set it explicitly on every change."""

    updated_at: datetime = _timestamp_field()
