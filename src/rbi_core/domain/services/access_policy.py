# src/rbi_core/domain/services/access_policy.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Tenant access policy evaluator.

Purpose:
    Decide whether an actor may perform an action on a resident or
    household record. Tenancy is the administrative unit code of the
    record, not a flat tenant id.

Layer:
    domain/services

Notes:
    - Pure: the resource descriptor is passed in, nothing is fetched. The
      optional resolver is only used to find the owning unit of a household
      whose descriptor carries a hierarchical code but no unit code.
    - Rules are evaluated in order and the first match wins:
        1. Global admins are allowed everything.
        2. Unit admins are allowed iff the record's unit equals their scope.
        3. Self-service reads are allowed for the actor's own resident
           record or household.
        4. Self-service writes are allowed only on the actor's own resident
           record and only for contact fields.
        5. Anything with missing or ambiguous scope is denied as
           ``malformed_actor``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar
from uuid import UUID

from rbi_core.domain.entities.resident import CONTACT_FIELDS
from rbi_core.domain.enums.access import AccessAction, ActorRole, DenyReason, ResourceType
from rbi_core.domain.exceptions.registry import ValidationError
from rbi_core.domain.services.geographic_hierarchy import GeographicHierarchyResolver
from rbi_core.domain.value_objects.actor import ActorIdentity


@dataclass(frozen=True, slots=True)
class ResourceDescriptor:
    """What the policy needs to know about the target record.

    Attributes:
        resource_type: Resident or household.
        id: Record identifier; None for records not yet created.
        unit_code: Owning local unit, when already denormalized.
        household_id: Household the record belongs to. For a household
            descriptor this is the household's own id.
        household_code: Hierarchical household code, used to resolve the
            owning unit when ``unit_code`` is missing.
        changed_fields: Names of fields a write would change.
    """

    resource_type: ResourceType
    id: UUID | None
    unit_code: str | None
    household_id: UUID | None = None
    household_code: str | None = None
    changed_fields: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class Allow:
    """Positive access decision."""

    allowed: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class Deny:
    """Negative access decision with a stable reason code."""

    reason: DenyReason
    allowed: ClassVar[bool] = False


AccessDecision = Allow | Deny

ALLOW = Allow()


class TenantAccessPolicyEvaluator:
    """Evaluate (actor, action, resource) triples into Allow or Deny."""

    def __init__(
        self,
        resolver: GeographicHierarchyResolver | None = None,
        *,
        self_editable_fields: frozenset[str] = CONTACT_FIELDS,
    ) -> None:
        """Initialize the evaluator.

        Args:
            resolver:
                Used to resolve a household's owning unit from its code when
                the descriptor carries no unit code.
            self_editable_fields:
                Fields a self-service actor may change on their own record.
        """
        self._resolver = resolver
        self._self_editable_fields = self_editable_fields

    def evaluate(
        self,
        actor: ActorIdentity,
        action: AccessAction,
        resource: ResourceDescriptor,
    ) -> AccessDecision:
        """Return the access decision for one request.

        Args:
            actor: Authenticated actor.
            action: Attempted action.
            resource: Descriptor of the target record.

        Returns:
            AccessDecision: ``Allow()`` or ``Deny(reason)``.
        """
        role = actor.known_role
        if role is ActorRole.GLOBAL_ADMIN:
            return ALLOW
        if role is ActorRole.UNIT_ADMIN:
            return self._evaluate_unit_admin(actor, resource)
        if role is ActorRole.SELF_SERVICE:
            return self._evaluate_self_service(actor, action, resource)
        return Deny(DenyReason.MALFORMED_ACTOR)

    # ---------------------------------------------------------------- #
    # Rules
    # ---------------------------------------------------------------- #

    def _evaluate_unit_admin(
        self,
        actor: ActorIdentity,
        resource: ResourceDescriptor,
    ) -> AccessDecision:
        scope = actor.scoped_unit_code
        if not scope:
            return Deny(DenyReason.MALFORMED_ACTOR)
        unit_code = self._owning_unit(resource)
        if unit_code is None or unit_code != scope:
            return Deny(DenyReason.OUT_OF_SCOPE)
        return ALLOW

    def _evaluate_self_service(
        self,
        actor: ActorIdentity,
        action: AccessAction,
        resource: ResourceDescriptor,
    ) -> AccessDecision:
        if actor.resident_id is None or not actor.scoped_unit_code:
            return Deny(DenyReason.MALFORMED_ACTOR)

        owns_record = (
            resource.resource_type is ResourceType.RESIDENT
            and resource.id is not None
            and resource.id == actor.resident_id
        )

        if not action.is_write:
            same_household = (
                actor.household_id is not None and resource.household_id == actor.household_id
            )
            return ALLOW if owns_record or same_household else Deny(DenyReason.NOT_OWNER)

        if not owns_record:
            return Deny(DenyReason.NOT_OWNER)
        if not resource.changed_fields <= self._self_editable_fields:
            return Deny(DenyReason.FIELD_NOT_SELF_EDITABLE)
        return ALLOW

    def _owning_unit(self, resource: ResourceDescriptor) -> str | None:
        if resource.unit_code:
            return resource.unit_code
        if resource.household_code is None or self._resolver is None:
            return None
        try:
            return self._resolver.owning_unit_code(resource.household_code)
        except ValidationError:
            return None


__all__ = [
    "ALLOW",
    "AccessDecision",
    "Allow",
    "Deny",
    "ResourceDescriptor",
    "TenantAccessPolicyEvaluator",
]
