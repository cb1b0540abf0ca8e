# src/rbi_core/domain/value_objects/actor.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Actor identity value object (Domain Layer).

Purpose:
    Represent the already-authenticated caller of the registry core. The
    identity collaborator builds it; the core never mutates it.

Design:
    - Pydantic v2 model, frozen and ``extra="forbid"``.
    - Role/scope combinations are *not* enforced at construction. A
      malformed identity (for example a unit admin without a scope) must
      still reach the access policy so it can be denied fail-closed with
      ``malformed_actor``.

Layer:
    domain/value_objects
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from rbi_core.domain.enums.access import ActorRole

__all__ = ["ActorIdentity"]


class ActorIdentity(BaseModel):
    """Authenticated actor scoped by administrative-unit code.

    Attributes:
        id: Stable external identifier for the actor.
        role: Role string. Unknown roles are kept verbatim so the policy can
            deny them instead of failing to parse.
        scoped_unit_code: Local unit the actor is scoped to. Required unless
            the actor is a global admin.
        resident_id: Resident record owned by a self-service actor.
        household_id: Household of that resident, if any.
    """

    model_config = ConfigDict(
        title="ActorIdentity",
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    id: str = Field(..., min_length=1, description="Stable actor identifier.")
    role: ActorRole | str = Field(..., description="Actor role.")
    scoped_unit_code: str | None = Field(
        default=None,
        description="Administrative unit the actor is scoped to.",
    )
    resident_id: UUID | None = Field(
        default=None,
        description="Own resident record for self-service actors.",
    )
    household_id: UUID | None = Field(
        default=None,
        description="Household of the self-service actor's resident record.",
    )

    @property
    def known_role(self) -> ActorRole | None:
        """Return the parsed role, or None when the role is not recognised."""
        if isinstance(self.role, ActorRole):
            return self.role
        try:
            return ActorRole(self.role)
        except ValueError:
            return None
