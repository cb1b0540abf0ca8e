# src/rbi_core/domain/services/geographic_hierarchy.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Geographic hierarchy resolver.

Purpose:
    Hold the administrative-unit tree (region -> province -> city ->
    local unit), resolve codes into root..leaf chains, and validate the
    denormalized ancestor codes records carry.

Design:
    * The tree lives in an immutable :class:`GeographicTreeSnapshot`. Chains
      for every code are computed once when the snapshot is built, so
      repeated ``resolve`` calls between refreshes return the identical
      tuple.
    * ``refresh`` builds and validates a complete new snapshot first, then
      swaps a single reference under a writer lock. Readers take the
      reference once per call and never lock, so an in-flight call sees
      either the old or the new tree, never a mix.
    * A tree that fails validation leaves the current snapshot in place.
    * Unknown codes are always :class:`GeographicNotFoundError`. The
      resolver never guesses or repairs a chain.

Layer:
    domain/services
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from rbi_core.domain.entities.geographic_unit import GeographicUnit
from rbi_core.domain.entities.household import unit_code_from_household_code
from rbi_core.domain.enums.geography import ANCESTOR_LEVELS, GeographicLevel
from rbi_core.domain.exceptions.geography import (
    GeographicChainMismatchError,
    GeographicNotFoundError,
    GeographicTreeError,
)
from rbi_core.domain.exceptions.registry import ValidationError

GeographicChain = tuple[GeographicUnit, ...]

EMPTY_TREE_VERSION = "empty"


@dataclass(frozen=True, slots=True)
class GeographicTreeSnapshot:
    """Immutable, fully validated view of the administrative tree.

    Attributes:
        version: Reference-data version the snapshot was built from.
        units: Read-only mapping ``code -> unit``.
        chains: Read-only mapping ``code -> root..unit chain``.
    """

    version: str
    units: Mapping[str, GeographicUnit]
    chains: Mapping[str, GeographicChain]

    @property
    def size(self) -> int:
        """Return the number of units in the snapshot."""
        return len(self.units)


def build_snapshot(units: Iterable[GeographicUnit], version: str) -> GeographicTreeSnapshot:
    """Validate a set of units and precompute every chain.

    Rules:
        * Codes are unique across the whole tree.
        * Every non-region unit's parent exists and sits exactly one level up.

    Args:
        units: Complete set of units for the new tree.
        version: Reference-data version label.

    Returns:
        GeographicTreeSnapshot: The validated snapshot.

    Raises:
        GeographicTreeError: If any structural rule is violated.
    """
    by_code: dict[str, GeographicUnit] = {}
    duplicates: list[str] = []
    for unit in units:
        if unit.code in by_code:
            duplicates.append(unit.code)
            continue
        by_code[unit.code] = unit
    if duplicates:
        raise GeographicTreeError(
            "Duplicate administrative unit codes in reference data",
            details={"duplicate_codes": sorted(set(duplicates))},
        )

    problems: dict[str, str] = {}
    for unit in by_code.values():
        expected_parent_level = unit.level.parent
        if expected_parent_level is None:
            continue
        parent = by_code.get(unit.parent_code or "")
        if parent is None:
            problems[unit.code] = f"parent {unit.parent_code!r} does not exist"
        elif parent.level is not expected_parent_level:
            problems[unit.code] = (
                f"parent {parent.code!r} is a {parent.level.value}, "
                f"expected {expected_parent_level.value}"
            )
    if problems:
        raise GeographicTreeError(
            "Administrative tree failed validation",
            details={"units": problems},
        )

    # Parents are strictly one level up, so processing by depth guarantees the
    # parent chain already exists.
    chains: dict[str, GeographicChain] = {}
    for unit in sorted(by_code.values(), key=lambda u: u.level.depth):
        if unit.parent_code is None:
            chains[unit.code] = (unit,)
        else:
            chains[unit.code] = (*chains[unit.parent_code], unit)

    return GeographicTreeSnapshot(
        version=version,
        units=MappingProxyType(by_code),
        chains=MappingProxyType(chains),
    )


class GeographicHierarchyResolver:
    """Process-wide resolver over a copy-on-write tree snapshot.

    Args:
        units: Initial units. Defaults to an empty tree.
        version: Version label for the initial units.

    Raises:
        GeographicTreeError: If the initial units are structurally invalid.
    """

    def __init__(
        self,
        units: Iterable[GeographicUnit] = (),
        *,
        version: str = EMPTY_TREE_VERSION,
    ) -> None:
        self._snapshot: GeographicTreeSnapshot = build_snapshot(units, version)
        self._write_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Snapshot lifecycle
    # ------------------------------------------------------------------ #

    @property
    def snapshot(self) -> GeographicTreeSnapshot:
        """Return the snapshot currently served to readers."""
        return self._snapshot

    @property
    def version(self) -> str:
        """Return the reference-data version currently served."""
        return self._snapshot.version

    @property
    def size(self) -> int:
        """Return the number of units currently served."""
        return self._snapshot.size

    def refresh(self, units: Iterable[GeographicUnit], version: str) -> GeographicTreeSnapshot:
        """Replace the tree wholesale.

        The new snapshot is fully built and validated before the swap. If the
        build fails, the current snapshot keeps serving.

        Args:
            units: Complete set of units for the new tree.
            version: Reference-data version label.

        Returns:
            GeographicTreeSnapshot: The snapshot now being served.

        Raises:
            GeographicTreeError: If the new tree is invalid.
        """
        fresh = build_snapshot(units, version)
        with self._write_lock:
            self._snapshot = fresh
        return fresh

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #

    def resolve(self, code: str) -> GeographicChain:
        """Return the root..unit chain for ``code``.

        Raises:
            GeographicNotFoundError: If the code is unknown.
        """
        chain = self._snapshot.chains.get(code)
        if chain is None:
            raise GeographicNotFoundError(code)
        return chain

    def get(self, code: str) -> GeographicUnit:
        """Return the unit registered under ``code``.

        Raises:
            GeographicNotFoundError: If the code is unknown.
        """
        return self.resolve(code)[-1]

    def require_leaf(self, code: str, *, field: str = "unit_code") -> GeographicChain:
        """Resolve ``code`` and require it to be a local unit.

        Args:
            code: Unit code to resolve.
            field: Field name reported in validation details.

        Returns:
            GeographicChain: Root..leaf chain.

        Raises:
            GeographicNotFoundError: If the code is unknown.
            ValidationError: If the unit is not a local unit.
        """
        chain = self._snapshot.chains.get(code)
        if chain is None:
            raise GeographicNotFoundError(code, field=field)
        leaf = chain[-1]
        if not leaf.level.is_leaf:
            raise ValidationError.for_field(
                field,
                f"{code!r} is a {leaf.level.value}, records must reference a local unit",
            )
        return chain

    def ancestor_codes(self, code: str) -> dict[GeographicLevel, str]:
        """Return ``level -> code`` for every ancestor of ``code``.

        Raises:
            GeographicNotFoundError: If the code is unknown.
        """
        return {unit.level: unit.code for unit in self.resolve(code)[:-1]}

    def validate_chain(
        self,
        unit_code: str,
        declared_parent_codes: Mapping[GeographicLevel, str | None],
    ) -> None:
        """Check declared ancestor codes against the resolved chain.

        Levels declared as None are treated as not declared. A level that
        does not exist above the unit (for example a province declared for a
        region) is a mismatch.

        Args:
            unit_code: Code of the unit the record references.
            declared_parent_codes: Denormalized ancestor codes on the record.

        Raises:
            GeographicNotFoundError: If ``unit_code`` is unknown.
            GeographicChainMismatchError: If any declared ancestor differs.
        """
        chain = self.resolve(unit_code)
        resolved = {unit.level: unit.code for unit in chain[:-1]}
        mismatches: dict[str, str] = {}
        for level, declared in declared_parent_codes.items():
            if declared is None:
                continue
            actual = resolved.get(level)
            if actual != declared:
                mismatches[f"{level.value}_code"] = (
                    f"declared {declared!r} but {unit_code!r} resolves to {actual!r}"
                )
        if mismatches:
            raise GeographicChainMismatchError(
                f"Declared ancestor codes do not match the chain of {unit_code!r}",
                details=mismatches,
            )

    def owning_unit_code(self, household_code: str) -> str:
        """Return the local unit encoded in a hierarchical household code.

        Raises:
            GeographicNotFoundError: If the prefix is missing or unknown.
            ValidationError: If the prefix is not a local unit.
        """
        prefix = unit_code_from_household_code(household_code)
        if prefix is None:
            raise GeographicNotFoundError(household_code, field="code")
        self.require_leaf(prefix, field="code")
        return prefix


def declared_ancestors(
    *,
    region_code: str | None,
    province_code: str | None,
    city_code: str | None,
) -> dict[GeographicLevel, str | None]:
    """Build the ``declared_parent_codes`` mapping from record fields."""
    return dict(zip(ANCESTOR_LEVELS, (region_code, province_code, city_code), strict=True))


__all__ = [
    "EMPTY_TREE_VERSION",
    "GeographicChain",
    "GeographicHierarchyResolver",
    "GeographicTreeSnapshot",
    "build_snapshot",
    "declared_ancestors",
]
