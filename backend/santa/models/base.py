"""SQLAlchemy base classes and common mixins.

SQLite has no timezone-aware datetime type, so every timestamp column goes
through UTCDateTime: values are stored as naive UTC and come back as aware
UTC datetimes.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, TypeDecorator
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from santa.core.identifiers import new_identifier


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator[datetime]):
    """DateTime column that only accepts and returns aware UTC values."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(
        self, value: datetime | None, dialect: Dialect
    ) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            msg = "Naive datetimes are not allowed; pass an aware UTC datetime"
            raise ValueError(msg)
        return value.astimezone(UTC).replace(tzinfo=None)

    def process_result_value(
        self, value: datetime | None, dialect: Dialect
    ) -> datetime | None:
        if value is None:
            return None
        return value.replace(tzinfo=UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        datetime: UTCDateTime(),
    }


class IdentifierMixin:
    """Time-ordered UUID primary key, assigned at creation and never reused."""

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=new_identifier,
    )


class CreatedAtMixin:
    """Mixin that adds a created_at column.

    The value is set from Python rather than the database clock so services
    with an injected clock control it.
    """

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        nullable=False,
    )
