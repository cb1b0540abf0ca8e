# src/rbi_core/domain/entities/geographic_unit.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""
Geographic Unit Entity

Purpose:
    Immutable node of the administrative hierarchy
    (region -> province -> city/municipality -> local unit).

Layer: domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass

from rbi_core.domain.enums.geography import GeographicLevel

from .base import BaseEntity


@dataclass(frozen=True, slots=True)
class GeographicUnit(BaseEntity):
    """Administrative unit loaded from reference data.

    Args:
        code: Unit code, e.g. ``"137404001"`` for a local unit.
        level: Hierarchy level.
        parent_code: Code of the unit one level up; None only for regions.
        name: Display name.

    Raises:
        ValueError: If the code is blank or the parent rule is violated.
    """

    code: str
    level: GeographicLevel
    parent_code: str | None
    name: str

    def __post_init__(self) -> None:
        if not self.code or not self.code.strip():
            raise ValueError("code must be non-empty")
        if self.level is GeographicLevel.REGION and self.parent_code is not None:
            raise ValueError("regions must not declare a parent_code")
        if self.level is not GeographicLevel.REGION and not self.parent_code:
            raise ValueError(f"{self.level.value} units must declare a parent_code")
        if self.parent_code == self.code:
            raise ValueError("a unit cannot be its own parent")
