# src/rbi_core/domain/enums/mutation.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Mutation lifecycle states.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class MutationState(str, Enum):
    """States a mutation request passes through, in order.

    ``REJECTED`` is terminal and may follow any state before ``COMMITTED``.
    """

    RECEIVED = "received"
    AUTHORIZED = "authorized"
    VALIDATED = "validated"
    DERIVED = "derived"
    PERSISTED = "persisted"
    AUDITED = "audited"
    COMMITTED = "committed"
    REJECTED = "rejected"


__all__ = ["MutationState"]
