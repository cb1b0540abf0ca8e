# src/rbi_core/domain/interfaces/repositories/audit_log_repository.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Audit log repository interface.

Purpose:
    Append-only storage for audit records.

Layer:
    domain/interfaces/repositories
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from rbi_core.domain.entities.audit_record import AuditRecord


class AuditLogRepository(Protocol):
    """Protocol for the append-only audit log."""

    async def append(self, record: AuditRecord) -> None:
        """Append a record inside the active transaction.

        Implementations must never update or delete existing entries.

        Raises:
            StorageError: If the record cannot be written.
        """
        raise NotImplementedError

    async def list_for_resource(self, resource_id: UUID) -> Sequence[AuditRecord]:
        """Return every record for a resource, oldest first."""
        raise NotImplementedError


__all__ = ["AuditLogRepository"]
