# src/rbi_core/infrastructure/database/models/geography.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Geographic reference ORM models.

Purpose:
    Persistence shape for the administrative-unit tree and the version
    label of the loaded reference data.

Layer:
    infrastructure / database / models
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from rbi_core.infrastructure.database.models.base import (
    REGISTRY_SCHEMA,
    Base,
    ReprMixin,
    now_utc,
)


class GeographicUnitModel(Base, ReprMixin):
    """Administrative unit (rbi.geographic_units)."""

    __tablename__ = "geographic_units"
    __table_args__ = (
        Index("ix_geographic_units_parent_code", "parent_code"),
        Index("ix_geographic_units_level", "level"),
        {"schema": REGISTRY_SCHEMA},
    )

    code: Mapped[str] = mapped_column(String(20), primary_key=True)
    level: Mapped[str] = mapped_column(String(16), nullable=False)
    parent_code: Mapped[str | None] = mapped_column(
        String(20),
        ForeignKey(f"{REGISTRY_SCHEMA}.geographic_units.code"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class ReferenceDataVersionModel(Base, ReprMixin):
    """Version label per reference dataset (rbi.reference_data_versions)."""

    __tablename__ = "reference_data_versions"
    __table_args__ = ({"schema": REGISTRY_SCHEMA},)

    dataset: Mapped[str] = mapped_column(String(64), primary_key=True)
    version: Mapped[str] = mapped_column(String(64), nullable=False)
    loaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now_utc,
    )
