# src/rbi_core/domain/entities/audit_record.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""
Audit Record Entity

Purpose:
    Append-only trace of one committed mutation.

Layer: domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from rbi_core.domain.enums.access import AccessAction, ResourceType

from .base import BaseEntity


@dataclass(frozen=True, slots=True)
class AuditRecord(BaseEntity):
    """Audit trail entry.

    Args:
        id: Audit record identifier.
        actor_id: Identifier of the actor that performed the mutation.
        action: Mutation action.
        resource_type: Kind of record mutated.
        resource_id: Identifier of the mutated record.
        before: JSON snapshot prior to the mutation (None on create).
        after: JSON snapshot after the mutation.
        timestamp: UTC time the mutation was recorded.
        unit_code: Administrative unit of the record after the mutation.
    """

    id: UUID
    actor_id: str
    action: AccessAction
    resource_type: ResourceType
    resource_id: UUID
    before: dict[str, Any] | None
    after: dict[str, Any] | None
    timestamp: datetime
    unit_code: str | None = None

    def __post_init__(self) -> None:
        if not self.actor_id:
            raise ValueError("actor_id must be non-empty")
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=UTC))
