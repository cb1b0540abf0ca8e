# src/rbi_core/domain/exceptions/geography.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""
Geographic hierarchy exceptions.

Purpose:
    Error types raised by the geographic hierarchy resolver.

Layer:
    domain
"""

from __future__ import annotations

from rbi_core.domain.exceptions.registry import ValidationError


class GeographicNotFoundError(ValidationError):
    """Raised when a code does not resolve to any administrative unit."""

    code = "GEOGRAPHIC_NOT_FOUND"

    def __init__(self, unit_code: str, *, field: str = "unit_code") -> None:
        super().__init__(
            f"Unknown administrative unit code: {unit_code!r}",
            details={field: "unknown administrative unit code", "unit_code": unit_code},
        )
        self.unit_code = unit_code


class GeographicChainMismatchError(ValidationError):
    """Raised when declared ancestor codes disagree with the resolved chain."""

    code = "GEOGRAPHIC_CHAIN_MISMATCH"


class GeographicTreeError(ValidationError):
    """Raised when a reference tree fails structural validation on build."""

    code = "GEOGRAPHIC_TREE_INVALID"
