# src/rbi_core/domain/interfaces/repositories/geographic_reference_source.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Geographic reference-data source interface.

Purpose:
    Supply the authoritative administrative-unit tree and its version so
    the resolver can be refreshed when reference data changes.

Layer:
    domain/interfaces/repositories
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from rbi_core.domain.entities.geographic_unit import GeographicUnit


class GeographicReferenceSource(Protocol):
    """Protocol for reference-data providers."""

    async def current_version(self) -> str:
        """Return the version label of the reference data currently stored."""
        raise NotImplementedError

    async def load_units(self) -> Sequence[GeographicUnit]:
        """Return the complete set of administrative units."""
        raise NotImplementedError


__all__ = ["GeographicReferenceSource"]
