# src/rbi_core/application/schemas/dto/mutations.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Application DTOs for registry mutations and reads.

Purpose:
    Request/response shapes for the mutation coordinator and the read and
    reconciliation use cases. Transport-agnostic; an outer API layer maps
    them to its own wire format.

Layer:
    application/schemas/dto
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from rbi_core.domain.entities.audit_record import AuditRecord
from rbi_core.domain.entities.household import Household
from rbi_core.domain.entities.resident import Resident
from rbi_core.domain.enums.access import AccessAction, ResourceType
from rbi_core.domain.enums.mutation import MutationState
from rbi_core.domain.exceptions.base import DomainError
from rbi_core.domain.exceptions.registry import AuthorizationError, ConsistencyError
from rbi_core.domain.value_objects.actor import ActorIdentity


@dataclass(frozen=True, slots=True)
class MutationRequest:
    """A proposed write submitted by an authenticated actor.

    Attributes:
        actor: Authenticated actor.
        action: CREATE, UPDATE, DEACTIVATE or REACTIVATE.
        resource_type: Resident or household.
        resource_id: Target id; None for CREATE (a new id is assigned).
        changes: Raw ``{field: value}`` proposals.
        request_id: Optional correlation id for logs.
    """

    actor: ActorIdentity
    action: AccessAction
    resource_type: ResourceType
    resource_id: UUID | None = None
    changes: Mapping[str, Any] = field(default_factory=dict)
    request_id: str | None = None


@dataclass(frozen=True, slots=True)
class MutationRejection:
    """Why a request was rejected.

    Attributes:
        code: Stable error code of the underlying failure.
        message: Caller-safe message.
        reason: Deny reason for authorization failures, else None.
        details: Field-level detail for validation failures.
    """

    code: str
    message: str
    reason: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, exc: DomainError) -> MutationRejection:
        """Project a domain error into a rejection.

        Authorization failures keep only the reason code.
        """
        if isinstance(exc, AuthorizationError):
            return cls(code=exc.code, message=exc.message, reason=exc.reason)
        return cls(code=exc.code, message=exc.message, details=dict(exc.details))


@dataclass(frozen=True, slots=True)
class MutationOutcome:
    """Result of one mutation request.

    Attributes:
        state: Final state, ``COMMITTED`` or ``REJECTED``.
        trail: Every state reached, in order, ending with ``state``.
        resource_type: Kind of record targeted.
        resource_id: Id of the record (assigned id for creates).
        record: Stored record after commit; None when rejected.
        audit_record: The audit entry written; None when rejected.
        rejection: Rejection detail; None when committed.
    """

    state: MutationState
    trail: tuple[MutationState, ...]
    resource_type: ResourceType
    resource_id: UUID | None
    record: Resident | Household | None = None
    audit_record: AuditRecord | None = None
    rejection: MutationRejection | None = None

    @property
    def committed(self) -> bool:
        """Return True when the mutation was committed."""
        return self.state is MutationState.COMMITTED


@dataclass(frozen=True, slots=True)
class ResidentView:
    """Authorized read of a resident.

    Attributes:
        resident: Stored resident with derived fields refreshed for
            ``as_of`` (the refresh is not persisted).
        drift: Consistency error found for the stored cache, if any.
    """

    resident: Resident
    drift: ConsistencyError | None = None


@dataclass(frozen=True, slots=True)
class HouseholdView:
    """Authorized read of a household and its members."""

    household: Household
    members: tuple[Resident, ...]
    drift: ConsistencyError | None = None


@dataclass(frozen=True, slots=True)
class ResidentPage:
    """One page of residents in a local unit."""

    unit_code: str
    items: tuple[Resident, ...]
    limit: int
    offset: int

    @property
    def next_offset(self) -> int | None:
        """Offset of the next page, or None when this page was short."""
        if len(self.items) < self.limit:
            return None
        return self.offset + self.limit


@dataclass(frozen=True, slots=True)
class ReconciliationReport:
    """Outcome of a derived-field reconciliation pass over one unit."""

    unit_code: str
    residents_checked: int
    households_checked: int
    drifts: tuple[ConsistencyError, ...]

    @property
    def clean(self) -> bool:
        """Return True when no drift was found."""
        return not self.drifts


__all__ = [
    "HouseholdView",
    "MutationOutcome",
    "MutationRejection",
    "MutationRequest",
    "ReconciliationReport",
    "ResidentPage",
    "ResidentView",
]
