# src/rbi_core/domain/enums/access.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Access-control enums.

Purpose:
    Roles, actions, resource kinds and deny reasons used by the tenant
    access policy and the mutation coordinator.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class ActorRole(str, Enum):
    """Role of an authenticated actor."""

    GLOBAL_ADMIN = "global_admin"
    UNIT_ADMIN = "unit_admin"
    SELF_SERVICE = "self_service"


class AccessAction(str, Enum):
    """Action an actor attempts on a resource."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DEACTIVATE = "deactivate"
    REACTIVATE = "reactivate"

    @property
    def is_write(self) -> bool:
        """Return True for every action other than READ."""
        return self is not AccessAction.READ


class ResourceType(str, Enum):
    """Kind of registry record."""

    RESIDENT = "resident"
    HOUSEHOLD = "household"


class DenyReason(str, Enum):
    """Stable reason codes returned with a deny decision."""

    OUT_OF_SCOPE = "out_of_scope"
    NOT_OWNER = "not_owner"
    FIELD_NOT_SELF_EDITABLE = "field_not_self_editable"
    MALFORMED_ACTOR = "malformed_actor"


__all__ = ["AccessAction", "ActorRole", "DenyReason", "ResourceType"]
