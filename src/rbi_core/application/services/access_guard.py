# src/rbi_core/application/services/access_guard.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Access guard.

Purpose:
    Apply the tenant access policy inside use cases: evaluate, count the
    decision, and turn a deny into :class:`AuthorizationError`.

Layer:
    application/services
"""

from __future__ import annotations

import logging
from uuid import UUID

from rbi_core.domain.enums.access import AccessAction, ResourceType
from rbi_core.domain.exceptions.registry import AuthorizationError
from rbi_core.domain.services.access_policy import (
    AccessDecision,
    Deny,
    ResourceDescriptor,
    TenantAccessPolicyEvaluator,
)
from rbi_core.domain.value_objects.actor import ActorIdentity
from rbi_core.infrastructure.observability.metrics import get_access_decisions_total

logger = logging.getLogger(__name__)


class AccessGuard:
    """Evaluate access and raise on deny."""

    def __init__(self, evaluator: TenantAccessPolicyEvaluator) -> None:
        self._evaluator = evaluator

    def check(
        self,
        actor: ActorIdentity,
        action: AccessAction,
        resource: ResourceDescriptor,
    ) -> AccessDecision:
        """Evaluate and record a decision without raising."""
        decision = self._evaluator.evaluate(actor, action, resource)
        role = actor.known_role
        get_access_decisions_total().labels(
            role=role.value if role else "unknown",
            action=action.value,
            outcome="deny" if isinstance(decision, Deny) else "allow",
            reason=decision.reason.value if isinstance(decision, Deny) else "",
        ).inc()
        if isinstance(decision, Deny):
            logger.info(
                "registry.access.denied",
                extra={
                    "actor_id": actor.id,
                    "action": action.value,
                    "resource_type": resource.resource_type.value,
                    "reason": decision.reason.value,
                },
            )
        return decision

    def require(
        self,
        actor: ActorIdentity,
        action: AccessAction,
        resource: ResourceDescriptor,
    ) -> None:
        """Evaluate and raise when denied.

        Raises:
            AuthorizationError: Carrying only the deny reason.
        """
        decision = self.check(actor, action, resource)
        if isinstance(decision, Deny):
            raise AuthorizationError(decision.reason.value)

    def require_for_missing(
        self,
        actor: ActorIdentity,
        action: AccessAction,
        resource_type: ResourceType,
        resource_id: UUID,
    ) -> None:
        """Authorize a request whose target record does not exist.

        The descriptor carries no unit or household, so a scoped actor gets
        the same denial as for a record outside its scope and cannot tell a
        missing id from a foreign one.

        Raises:
            AuthorizationError: Unless the actor could see the record anyway.
        """
        self.require(
            actor,
            action,
            ResourceDescriptor(resource_type=resource_type, id=resource_id, unit_code=None),
        )


__all__ = ["AccessGuard"]
