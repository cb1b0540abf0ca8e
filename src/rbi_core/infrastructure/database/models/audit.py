# src/rbi_core/infrastructure/database/models/audit.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Audit log ORM model.

Purpose:
    Append-only persistence for audit records (rbi.audit_log).

Layer:
    infrastructure / database / models
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, Index, String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from rbi_core.infrastructure.database.models.base import (
    REGISTRY_SCHEMA,
    Base,
    JSONBType,
    ReprMixin,
)


class AuditLogModel(Base, ReprMixin):
    """Audit record (rbi.audit_log)."""

    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_resource_id", "resource_id"),
        Index("ix_audit_log_unit_code_timestamp", "unit_code", "timestamp"),
        {"schema": REGISTRY_SCHEMA},
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(16), nullable=False)
    resource_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    before: Mapped[dict[str, Any] | None] = mapped_column(JSONBType, nullable=True)
    after: Mapped[dict[str, Any] | None] = mapped_column(JSONBType, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    unit_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
