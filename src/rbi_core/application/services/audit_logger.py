# src/rbi_core/application/services/audit_logger.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Audit logger.

Purpose:
    Write exactly one audit record per committed mutation, inside the same
    transaction as the mutation itself.

Layer:
    application/services

Notes:
    - Audit completeness is a correctness invariant. A failing append is not
      swallowed: it propagates, and the caller rolls back the whole
      mutation.
    - The clock and id factory are injectable for deterministic tests.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from rbi_core.domain.entities.audit_record import AuditRecord
from rbi_core.domain.entities.base import snapshot_value
from rbi_core.domain.enums.access import AccessAction, ResourceType
from rbi_core.domain.interfaces.repositories.audit_log_repository import AuditLogRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AuditLogger:
    """Append audit records through the active transaction's repository."""

    def __init__(
        self,
        repository: AuditLogRepository,
        *,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], UUID] = uuid.uuid4,
    ) -> None:
        """Initialize the logger.

        Args:
            repository: Audit log repository bound to the active UnitOfWork.
            clock: Returns the current UTC time.
            id_factory: Returns new audit record ids.
        """
        self._repository = repository
        self._clock = clock
        self._id_factory = id_factory

    async def record(
        self,
        actor_id: str,
        action: AccessAction,
        resource_type: ResourceType,
        resource_id: UUID,
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None,
        *,
        unit_code: str | None = None,
    ) -> AuditRecord:
        """Build and append one audit record.

        Args:
            actor_id: Actor that performed the mutation.
            action: Mutation action.
            resource_type: Kind of record mutated.
            resource_id: Id of the record mutated.
            before: Snapshot before the mutation (None for creates).
            after: Snapshot after the mutation.
            unit_code: Administrative unit of the record.

        Returns:
            AuditRecord: The appended record.

        Raises:
            StorageError: If the append fails. The caller must roll back.
        """
        record = AuditRecord(
            id=self._id_factory(),
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            before=snapshot_value(dict(before)) if before is not None else None,
            after=snapshot_value(dict(after)) if after is not None else None,
            timestamp=self._clock(),
            unit_code=unit_code,
        )
        await self._repository.append(record)
        logger.debug(
            "registry.audit.appended",
            extra={
                "audit_id": str(record.id),
                "action": action.value,
                "resource_type": resource_type.value,
                "resource_id": str(resource_id),
            },
        )
        return record


__all__ = ["AuditLogger"]
