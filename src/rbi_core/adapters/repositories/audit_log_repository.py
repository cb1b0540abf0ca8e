# src/rbi_core/adapters/repositories/audit_log_repository.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Audit log repository (SQLAlchemy).

Append-only: the class exposes no update or delete path.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from rbi_core.adapters.repositories.base_repository import BaseRepository
from rbi_core.domain.entities.audit_record import AuditRecord
from rbi_core.domain.enums.access import AccessAction, ResourceType
from rbi_core.infrastructure.database.models.audit import AuditLogModel


class SqlAlchemyAuditLogRepository(BaseRepository[AuditLogModel]):
    """SQLAlchemy-backed audit log."""

    _MODEL_NAME = "audit_log"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session)

    async def append(self, record: AuditRecord) -> None:
        """Insert one audit record in the active transaction."""
        async with self._instrumented("append"):
            await self._session.execute(
                insert(AuditLogModel).values(
                    id=record.id,
                    actor_id=record.actor_id,
                    action=record.action.value,
                    resource_type=record.resource_type.value,
                    resource_id=record.resource_id,
                    before=record.before,
                    after=record.after,
                    timestamp=record.timestamp,
                    unit_code=record.unit_code,
                )
            )

    async def list_for_resource(self, resource_id: UUID) -> Sequence[AuditRecord]:
        """Return every record for a resource, oldest first."""
        async with self._instrumented("list_for_resource"):
            stmt = (
                select(AuditLogModel)
                .where(AuditLogModel.resource_id == resource_id)
                .order_by(AuditLogModel.timestamp.asc(), AuditLogModel.id.asc())
            )
            return [
                AuditRecord(
                    id=row.id,
                    actor_id=row.actor_id,
                    action=AccessAction(row.action),
                    resource_type=ResourceType(row.resource_type),
                    resource_id=row.resource_id,
                    before=row.before,
                    after=row.after,
                    timestamp=row.timestamp,
                    unit_code=row.unit_code,
                )
                for row in await self.fetch_all(stmt)
            ]
