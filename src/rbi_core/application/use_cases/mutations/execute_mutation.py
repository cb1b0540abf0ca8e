# src/rbi_core/application/use_cases/mutations/execute_mutation.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Mutation coordinator.

Purpose:
    Run every resident/household write through one transaction:

        received -> authorized -> validated -> derived -> persisted
                 -> audited -> committed

    or stop at ``rejected`` with a full rollback.

Layer:
    application/use_cases

Notes:
    - Validation, authorization and not-found failures are returned as a
      rejected :class:`MutationOutcome`; nothing is written and no audit
      record exists.
    - ``StorageError`` (including optimistic version conflicts and audit
      append failures) is raised after rollback. The coordinator never
      retries.
    - Lock order is households first, then residents, for every flow.
    - Every locked household is re-derived from its member list in the same
      transaction. A household or member is re-persisted when its derived
      values or their evaluation date change, so every stored cache can be
      recomputed from current facts at its own ``derived_as_of``.
    - Exactly one audit record is written per committed request.
"""

from __future__ import annotations

import dataclasses
import logging
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from datetime import date, tzinfo
from typing import Any, cast
from uuid import UUID

from rbi_core.application.schemas.dto.changes import (
    HOUSEHOLD_REQUIRED_ON_CREATE,
    RESIDENT_REQUIRED_ON_CREATE,
    parse_household_changes,
    parse_resident_changes,
)
from rbi_core.application.schemas.dto.mutations import (
    MutationOutcome,
    MutationRejection,
    MutationRequest,
)
from rbi_core.application.services.access_guard import AccessGuard
from rbi_core.application.services.audit_logger import AuditLogger
from rbi_core.application.services.clock import (
    Clock,
    evaluation_date,
    registry_timezone,
    utc_now,
)
from rbi_core.application.uow import UnitOfWork
from rbi_core.domain.entities.household import Household, build_household_code
from rbi_core.domain.entities.resident import Resident
from rbi_core.domain.enums.access import AccessAction, ResourceType
from rbi_core.domain.enums.geography import GeographicLevel
from rbi_core.domain.enums.mutation import MutationState
from rbi_core.domain.exceptions.registry import (
    AuthorizationError,
    ConcurrentModificationError,
    ResourceNotFoundError,
    StorageError,
    ValidationError,
)
from rbi_core.domain.interfaces.repositories.audit_log_repository import AuditLogRepository
from rbi_core.domain.interfaces.repositories.households_repository import (
    HouseholdsRepository,
)
from rbi_core.domain.interfaces.repositories.residents_repository import ResidentsRepository
from rbi_core.domain.services.access_policy import (
    ResourceDescriptor,
    TenantAccessPolicyEvaluator,
)
from rbi_core.domain.services.attribute_derivation import AttributeDerivationEngine
from rbi_core.domain.services.geographic_hierarchy import (
    GeographicHierarchyResolver,
    declared_ancestors,
)
from rbi_core.infrastructure.observability.metrics import (
    get_mutation_latency_seconds,
    get_mutations_total,
)

logger = logging.getLogger(__name__)

_ANCESTOR_FIELDS: dict[GeographicLevel, str] = {
    GeographicLevel.REGION: "region_code",
    GeographicLevel.PROVINCE: "province_code",
    GeographicLevel.CITY: "city_code",
}


def _changed(existing: Any, proposed: Mapping[str, Any]) -> dict[str, Any]:
    """Return the subset of ``proposed`` that differs from ``existing``."""
    return {k: v for k, v in proposed.items() if getattr(existing, k) != v}


def _cache_changed(stored: Resident | Household, fresh: Resident | Household) -> bool:
    """Return True when a recomputed cache differs in values or evaluation date."""
    return stored.derived != fresh.derived or stored.derived_as_of != fresh.derived_as_of


def _build(factory: Callable[[], Any]) -> Any:
    """Run an entity constructor, mapping invariant failures to ValidationError."""
    try:
        return factory()
    except ValueError as exc:
        raise ValidationError("Record violates invariants", details={"record": str(exc)}) from exc


class _Trail:
    """Ordered record of the states a request reached."""

    def __init__(self) -> None:
        self.states: list[MutationState] = [MutationState.RECEIVED]

    def advance(self, state: MutationState) -> None:
        self.states.append(state)

    def freeze(self) -> tuple[MutationState, ...]:
        return tuple(self.states)


class MutationCoordinator:
    """Orchestrate authorization, validation, derivation, persistence and audit.

    Args:
        uow:
            UnitOfWork opened once per :meth:`execute` call.
        resolver:
            Process-wide geographic hierarchy resolver.
        engine:
            Attribute derivation engine. Defaults to the default policy.
        evaluator:
            Access policy evaluator. Defaults to one bound to ``resolver``.
        clock:
            Returns the current aware datetime. Used for audit timestamps and,
            converted to ``timezone``, for the evaluation date.
        timezone:
            Timezone whose calendar date is the evaluation date.
        id_factory:
            Returns new ids for created records and audit entries.
    """

    def __init__(
        self,
        *,
        uow: UnitOfWork,
        resolver: GeographicHierarchyResolver,
        engine: AttributeDerivationEngine | None = None,
        evaluator: TenantAccessPolicyEvaluator | None = None,
        clock: Clock = utc_now,
        timezone: tzinfo | None = None,
        id_factory: Callable[[], UUID] = uuid.uuid4,
    ) -> None:
        self._uow = uow
        self._resolver = resolver
        self._engine = engine or AttributeDerivationEngine()
        self._guard = AccessGuard(evaluator or TenantAccessPolicyEvaluator(resolver))
        self._clock = clock
        self._tz = timezone or registry_timezone()
        self._id_factory = id_factory

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def execute(self, request: MutationRequest) -> MutationOutcome:
        """Apply one mutation request atomically.

        Args:
            request: Mutation request.

        Returns:
            MutationOutcome: Committed outcome with the stored record and its
            audit entry, or a rejected outcome with the reason.

        Raises:
            StorageError: If persistence or the audit append fails. The
                transaction is rolled back before the error propagates.
        """
        trail = _Trail()
        labels = {"resource_type": request.resource_type.value, "action": request.action.value}
        log_extra = {**labels, "actor_id": request.actor.id, "request_id": request.request_id}
        started = time.perf_counter()
        logger.debug("registry.mutation.start", extra=log_extra)

        try:
            async with self._uow as tx:
                try:
                    record, resource_id, audit = await self._apply(tx, request, trail)
                except (ValidationError, AuthorizationError) as exc:
                    await tx.rollback()
                    trail.advance(MutationState.REJECTED)
                    rejection = MutationRejection.from_error(exc)
                    get_mutations_total().labels(**labels, outcome="rejected").inc()
                    logger.info(
                        "registry.mutation.rejected",
                        extra={**log_extra, "code": rejection.code, "reason": rejection.reason},
                    )
                    return MutationOutcome(
                        state=MutationState.REJECTED,
                        trail=trail.freeze(),
                        resource_type=request.resource_type,
                        resource_id=request.resource_id,
                        rejection=rejection,
                    )
                await tx.commit()
                trail.advance(MutationState.COMMITTED)
        except StorageError as exc:
            get_mutations_total().labels(**labels, outcome="failed").inc()
            logger.warning(
                "registry.mutation.failed",
                extra={**log_extra, "code": exc.code, "state": trail.states[-1].value},
            )
            raise
        finally:
            get_mutation_latency_seconds().labels(**labels).observe(
                time.perf_counter() - started
            )

        get_mutations_total().labels(**labels, outcome="committed").inc()
        logger.info(
            "registry.mutation.committed",
            extra={**log_extra, "resource_id": str(resource_id), "audit_id": str(audit.id)},
        )
        return MutationOutcome(
            state=MutationState.COMMITTED,
            trail=trail.freeze(),
            resource_type=request.resource_type,
            resource_id=resource_id,
            record=record,
            audit_record=audit,
        )

    def evaluation_date(self) -> date:
        """Return today's date in the registry timezone."""
        return evaluation_date(self._clock, self._tz)

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    async def _apply(
        self,
        tx: UnitOfWork,
        request: MutationRequest,
        trail: _Trail,
    ) -> tuple[Resident | Household, UUID, Any]:
        if request.resource_type is ResourceType.RESIDENT:
            if request.action is AccessAction.READ:
                raise ValidationError.for_field("action", "read is not a mutation")
            return await self._apply_resident(tx, request, trail)
        if request.action not in (AccessAction.CREATE, AccessAction.UPDATE):
            raise ValidationError.for_field(
                "action", f"{request.action.value} is not supported for households"
            )
        return await self._apply_household(tx, request, trail)

    # ------------------------------------------------------------------ #
    # Residents
    # ------------------------------------------------------------------ #

    async def _apply_resident(
        self,
        tx: UnitOfWork,
        request: MutationRequest,
        trail: _Trail,
    ) -> tuple[Resident, UUID, Any]:
        residents = cast(ResidentsRepository, tx.get_repository(ResidentsRepository))
        households = cast(HouseholdsRepository, tx.get_repository(HouseholdsRepository))
        as_of = self.evaluation_date()
        action = request.action

        proposed = parse_resident_changes(request.changes)

        # -- Authorize -------------------------------------------------- #
        existing: Resident | None = None
        if action is AccessAction.CREATE:
            missing = [f for f in RESIDENT_REQUIRED_ON_CREATE if f not in proposed]
            if missing:
                raise ValidationError(
                    "Missing required fields",
                    details={f: "required on create" for f in missing},
                )
            resource_id = request.resource_id or self._id_factory()
            if request.resource_id is not None and await residents.get_by_id(resource_id):
                raise ValidationError.for_field("id", "resident already exists")
            changes = dict(proposed)
            descriptor = ResourceDescriptor(
                resource_type=ResourceType.RESIDENT,
                id=None,
                unit_code=changes["unit_code"],
                household_id=changes.get("household_id"),
                changed_fields=frozenset(changes),
            )
        else:
            if request.resource_id is None:
                raise ValidationError.for_field("resource_id", "required for this action")
            resource_id = request.resource_id
            peek = await residents.get_by_id(resource_id)
            if peek is None:
                self._guard.require_for_missing(
                    request.actor, action, ResourceType.RESIDENT, resource_id
                )
                raise ResourceNotFoundError(ResourceType.RESIDENT.value, str(resource_id))
            changes = self._resident_changes(action, peek, proposed)
            descriptor = ResourceDescriptor(
                resource_type=ResourceType.RESIDENT,
                id=peek.id,
                unit_code=peek.unit_code,
                household_id=peek.household_id,
                changed_fields=frozenset(changes),
            )
            existing = peek

        self._guard.require(request.actor, action, descriptor)
        new_unit = changes.get("unit_code")
        if existing is not None and new_unit is not None:
            self._guard.require(
                request.actor, action, dataclasses.replace(descriptor, unit_code=new_unit)
            )
        trail.advance(MutationState.AUTHORIZED)

        # -- Lock (households, then the resident) ----------------------- #
        target_household_id = changes.get(
            "household_id", existing.household_id if existing else None
        )
        household_ids = {target_household_id, existing.household_id if existing else None}
        locked = await self._lock_households(households, household_ids)
        if target_household_id is not None and target_household_id not in locked:
            raise ResourceNotFoundError(ResourceType.HOUSEHOLD.value, str(target_household_id))
        if existing is not None:
            current = await residents.get_by_id(resource_id, for_update=True)
            if current is None or current.version != existing.version:
                raise ConcurrentModificationError(details={"resource_id": str(resource_id)})
            existing = current

        # -- Validate --------------------------------------------------- #
        if existing is None:
            candidate: Resident = _build(
                lambda: Resident(id=resource_id, **changes, version=0)
            )
        else:
            base = existing
            candidate = _build(lambda: dataclasses.replace(base, **changes))
        candidate = self._validate_geography(candidate, changes)
        if candidate.birthdate > as_of:
            raise ValidationError.for_field("birthdate", "must not be in the future")
        self._engine.check_declared_facts(
            candidate, self._engine.derive_resident(candidate, as_of)
        )
        if candidate.previous_unit_code:
            self._resolver.require_leaf(candidate.previous_unit_code, field="previous_unit_code")
        if target_household_id is not None:
            household = locked[target_household_id]
            if household.unit_code != candidate.unit_code:
                raise ValidationError.for_field(
                    "household_id", "household belongs to a different administrative unit"
                )
        if existing is not None and existing.household_id in locked:
            old_household = locked[existing.household_id]
            leaving = (
                not candidate.is_active or candidate.household_id != existing.household_id
            )
            if old_household.head_resident_id == existing.id and leaving:
                field = "is_active" if not candidate.is_active else "household_id"
                raise ValidationError.for_field(
                    field, "resident heads the household; reassign the head first"
                )
        trail.advance(MutationState.VALIDATED)

        # -- Derive ----------------------------------------------------- #
        candidate = self._engine.refresh_resident(candidate, as_of)
        member_updates: list[tuple[Resident, int]] = []
        household_updates: list[tuple[Household, int]] = []
        for household_id in sorted(locked, key=str):
            household = locked[household_id]
            members = await residents.list_by_household(household_id, for_update=True)
            roster: list[Resident] = []
            for member in members:
                if member.id == candidate.id:
                    continue
                refreshed = self._engine.refresh_resident(member, as_of)
                if _cache_changed(member, refreshed):
                    member_updates.append((refreshed, member.version))
                roster.append(refreshed)
            if candidate.household_id == household_id:
                roster.append(candidate)
            updated = self._engine.refresh_household(household, roster, as_of)
            if _cache_changed(household, updated):
                household_updates.append((updated, household.version))
        trail.advance(MutationState.DERIVED)

        # -- Persist ---------------------------------------------------- #
        stored = await residents.upsert(
            candidate, expected_version=existing.version if existing else None
        )
        for member, version in member_updates:
            await residents.upsert(member, expected_version=version)
        for household, version in household_updates:
            await households.upsert(household, expected_version=version)
        trail.advance(MutationState.PERSISTED)

        # -- Audit ------------------------------------------------------ #
        audit = await self._audit_logger(tx).record(
            request.actor.id,
            action,
            ResourceType.RESIDENT,
            stored.id,
            existing.to_snapshot() if existing else None,
            stored.to_snapshot(),
            unit_code=stored.unit_code,
        )
        trail.advance(MutationState.AUDITED)
        return stored, stored.id, audit

    @staticmethod
    def _resident_changes(
        action: AccessAction,
        existing: Resident,
        proposed: Mapping[str, Any],
    ) -> dict[str, Any]:
        if action is AccessAction.UPDATE:
            return _changed(existing, proposed)
        if proposed:
            raise ValidationError(
                f"{action.value} does not accept field changes",
                details={name: "not allowed with this action" for name in proposed},
            )
        target = action is AccessAction.REACTIVATE
        if existing.is_active == target:
            state = "active" if target else "inactive"
            raise ValidationError.for_field("is_active", f"resident is already {state}")
        return {"is_active": target}

    # ------------------------------------------------------------------ #
    # Households
    # ------------------------------------------------------------------ #

    async def _apply_household(
        self,
        tx: UnitOfWork,
        request: MutationRequest,
        trail: _Trail,
    ) -> tuple[Household, UUID, Any]:
        residents = cast(ResidentsRepository, tx.get_repository(ResidentsRepository))
        households = cast(HouseholdsRepository, tx.get_repository(HouseholdsRepository))
        as_of = self.evaluation_date()
        action = request.action

        proposed = parse_household_changes(request.changes)

        # -- Authorize -------------------------------------------------- #
        existing: Household | None = None
        if action is AccessAction.CREATE:
            missing = [f for f in HOUSEHOLD_REQUIRED_ON_CREATE if f not in proposed]
            if missing:
                raise ValidationError(
                    "Missing required fields",
                    details={f: "required on create" for f in missing},
                )
            if proposed.get("head_resident_id") is not None:
                raise ValidationError.for_field(
                    "head_resident_id", "a new household has no members to head it"
                )
            resource_id = request.resource_id or self._id_factory()
            if request.resource_id is not None and await households.get_by_id(resource_id):
                raise ValidationError.for_field("id", "household already exists")
            changes = dict(proposed)
            code = build_household_code(changes["unit_code"], changes["household_number"])
            descriptor = ResourceDescriptor(
                resource_type=ResourceType.HOUSEHOLD,
                id=None,
                unit_code=changes["unit_code"],
                household_code=code,
                changed_fields=frozenset(changes),
            )
        else:
            if request.resource_id is None:
                raise ValidationError.for_field("resource_id", "required for this action")
            resource_id = request.resource_id
            existing = await households.get_by_id(resource_id, for_update=True)
            if existing is None:
                self._guard.require_for_missing(
                    request.actor, action, ResourceType.HOUSEHOLD, resource_id
                )
                raise ResourceNotFoundError(ResourceType.HOUSEHOLD.value, str(resource_id))
            changes = _changed(existing, proposed)
            descriptor = ResourceDescriptor(
                resource_type=ResourceType.HOUSEHOLD,
                id=existing.id,
                unit_code=existing.unit_code,
                household_id=existing.id,
                household_code=existing.code,
                changed_fields=frozenset(changes),
            )

        self._guard.require(request.actor, action, descriptor)
        new_unit = changes.get("unit_code")
        if existing is not None and new_unit is not None:
            self._guard.require(
                request.actor, action, dataclasses.replace(descriptor, unit_code=new_unit)
            )
        trail.advance(MutationState.AUTHORIZED)

        # -- Validate --------------------------------------------------- #
        if existing is None:
            candidate: Household = _build(
                lambda: Household(
                    id=resource_id,
                    code=build_household_code(changes["unit_code"], changes["household_number"]),
                    **changes,
                    version=0,
                )
            )
        else:
            base = existing
            rekeyed = {
                **changes,
                "code": build_household_code(
                    changes.get("unit_code", base.unit_code),
                    changes.get("household_number", base.household_number),
                ),
            }
            candidate = _build(lambda: dataclasses.replace(base, **rekeyed))
        candidate = self._validate_geography(candidate, changes)

        if existing is None or candidate.code != existing.code:
            clash = await households.get_by_code(candidate.code)
            if clash is not None and clash.id != candidate.id:
                raise ValidationError.for_field(
                    "household_number", "already registered in this administrative unit"
                )

        members: Sequence[Resident] = ()
        if existing is not None:
            members = await residents.list_by_household(existing.id, for_update=True)
        active_ids = {m.id for m in members if m.is_active}
        if new_unit is not None and active_ids:
            raise ValidationError.for_field(
                "unit_code", "household has active members; move them first"
            )
        if candidate.head_resident_id is not None and candidate.head_resident_id not in active_ids:
            raise ValidationError.for_field(
                "head_resident_id", "must reference an active member of the household"
            )
        trail.advance(MutationState.VALIDATED)

        # -- Derive ----------------------------------------------------- #
        candidate = self._engine.refresh_household(candidate, members, as_of)
        trail.advance(MutationState.DERIVED)

        # -- Persist ---------------------------------------------------- #
        stored = await households.upsert(
            candidate, expected_version=existing.version if existing else None
        )
        trail.advance(MutationState.PERSISTED)

        # -- Audit ------------------------------------------------------ #
        audit = await self._audit_logger(tx).record(
            request.actor.id,
            action,
            ResourceType.HOUSEHOLD,
            stored.id,
            existing.to_snapshot() if existing else None,
            stored.to_snapshot(),
            unit_code=stored.unit_code,
        )
        trail.advance(MutationState.AUDITED)
        return stored, stored.id, audit

    # ------------------------------------------------------------------ #
    # Shared steps
    # ------------------------------------------------------------------ #

    def _validate_geography(self, candidate: Any, changes: Mapping[str, Any]) -> Any:
        """Validate the unit and declared ancestors, then denormalize them.

        Only ancestor codes supplied in this request are checked; stored ones
        are overwritten from the resolved chain.
        """
        unit_code = candidate.unit_code
        self._resolver.require_leaf(unit_code)
        declared = declared_ancestors(
            region_code=changes.get("region_code"),
            province_code=changes.get("province_code"),
            city_code=changes.get("city_code"),
        )
        self._resolver.validate_chain(unit_code, declared)
        resolved = self._resolver.ancestor_codes(unit_code)
        return dataclasses.replace(
            candidate,
            **{name: resolved.get(level) for level, name in _ANCESTOR_FIELDS.items()},
        )

    @staticmethod
    async def _lock_households(
        households: HouseholdsRepository,
        household_ids: set[UUID | None],
    ) -> dict[UUID, Household]:
        locked: dict[UUID, Household] = {}
        for household_id in sorted((h for h in household_ids if h is not None), key=str):
            household = await households.get_by_id(household_id, for_update=True)
            if household is not None:
                locked[household_id] = household
        return locked

    def _audit_logger(self, tx: UnitOfWork) -> AuditLogger:
        repo = cast(AuditLogRepository, tx.get_repository(AuditLogRepository))
        return AuditLogger(repo, clock=self._clock, id_factory=self._id_factory)


__all__ = ["MutationCoordinator"]
