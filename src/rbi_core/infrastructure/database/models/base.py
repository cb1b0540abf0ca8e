# src/rbi_core/infrastructure/database/models/base.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Declarative Base and persistence mixins for the registry.

This module defines:
    - A project-wide SQLAlchemy Declarative Base with deterministic naming
      conventions (for stable Alembic diffs).
    - Mixins for audit timestamps (UTC) and the optimistic ``version`` column.
    - A safe, field-based ``__repr__``.

Notes:
    Persistence-only; no domain behavior lives on the ORM models. Mapping
    to and from domain entities is done by the repositories.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import MetaData
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime, Integer

__all__ = [
    "JSONBType",
    "REGISTRY_SCHEMA",
    "Base",
    "OptimisticLockingMixin",
    "ReprMixin",
    "TimestampMixin",
    "metadata",
    "now_utc",
]

#: PostgreSQL schema holding every registry table.
REGISTRY_SCHEMA = "rbi"

#: Deterministic naming conventions for Alembic-friendly diffs.
#: Ref: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTIONS: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTIONS)

JSONBType = JSONB


def now_utc() -> datetime:
    """Return the current UTC time with timezone info."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative Base for all ORM models."""

    metadata = metadata


class TimestampMixin:
    """Mixin providing ``created_at`` and ``updated_at`` timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now_utc,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now_utc,
        onupdate=now_utc,
        server_default=func.now(),
    )


class OptimisticLockingMixin:
    """Mixin providing an integer ``version`` column for optimistic locking."""

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default="1",
    )


class ReprMixin:
    """Mixin providing a concise, column-based ``__repr__`` implementation."""

    def __repr__(self) -> str:
        """Return a short debug representation of the model."""
        cls = type(self)
        attrs = []
        for column in cls.__table__.columns:  # type: ignore[attr-defined]
            value = getattr(self, column.key, None)
            if isinstance(value, (str, int, float, bool, uuid.UUID, date)):
                attrs.append(f"{column.key}={value!r}")
        return f"{cls.__name__}({', '.join(attrs)})"
