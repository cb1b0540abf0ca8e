# src/rbi_core/domain/services/attribute_derivation.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Attribute derivation engine.

Purpose:
    Recompute the sectoral classification of residents and the member
    aggregates of households from stored facts and an evaluation date.

Layer:
    domain/services

Notes:
    - Pure functions of their inputs: no clock, no I/O, no logging. The
      caller supplies ``as_of``.
    - Thresholds and status groupings live in :class:`SectoralPolicy` so they
      can be overridden without touching the algorithms.
    - Leap-day birthdays are celebrated on Feb 28 in non-leap years.
    - Household aggregates always rederive each active member from facts,
      never from the member's cached flags.
"""

from __future__ import annotations

import calendar
import dataclasses
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from rbi_core.domain.entities.household import Household
from rbi_core.domain.entities.resident import Resident
from rbi_core.domain.enums.resident import EducationStatus, EmploymentStatus, IncomeClass
from rbi_core.domain.exceptions.registry import ValidationError
from rbi_core.domain.value_objects.derived_fields import (
    DerivedHouseholdFields,
    DerivedResidentFields,
)

# Monthly household income floors, highest bracket first.
DEFAULT_INCOME_BRACKETS: tuple[tuple[Decimal, IncomeClass], ...] = (
    (Decimal("219140"), IncomeClass.RICH),
    (Decimal("131484"), IncomeClass.HIGH_INCOME),
    (Decimal("76669"), IncomeClass.UPPER_MIDDLE_INCOME),
    (Decimal("43828"), IncomeClass.MIDDLE_CLASS),
    (Decimal("21194"), IncomeClass.LOWER_MIDDLE_CLASS),
    (Decimal("9520"), IncomeClass.LOW_INCOME),
)


@dataclass(frozen=True, slots=True)
class SectoralPolicy:
    """Overridable thresholds for sectoral classification.

    Attributes:
        minor_age_limit:
            Residents younger than this are minors.
        senior_citizen_age:
            Residents at or above this age are senior citizens.
        youth_min_age / youth_max_age:
            Inclusive age band for out-of-school youth.
        working_age:
            Minimum age for the unemployed and labor-force flags.
        school_age_min / school_age_max:
            Inclusive age band for out-of-school children.
        employed_statuses:
            Employment statuses that count as employed.
        not_employed_statuses:
            Employment statuses that count as not employed (jobless and
            available).
        part_time_counts_as_enrolled:
            When True, part-time enrollment excludes a resident from the
            out-of-school-youth and unemployed flags like full-time
            enrollment does.
        income_brackets:
            ``(floor, class)`` pairs sorted from highest floor down.
    """

    minor_age_limit: int = 18
    senior_citizen_age: int = 60
    youth_min_age: int = 15
    youth_max_age: int = 24
    working_age: int = 15
    school_age_min: int = 6
    school_age_max: int = 14
    employed_statuses: frozenset[EmploymentStatus] = frozenset(
        {
            EmploymentStatus.EMPLOYED,
            EmploymentStatus.SELF_EMPLOYED,
            EmploymentStatus.UNDEREMPLOYED,
        }
    )
    not_employed_statuses: frozenset[EmploymentStatus] = frozenset(
        {EmploymentStatus.NOT_EMPLOYED}
    )
    part_time_counts_as_enrolled: bool = False
    income_brackets: tuple[tuple[Decimal, IncomeClass], ...] = DEFAULT_INCOME_BRACKETS

    def __post_init__(self) -> None:
        if self.youth_min_age > self.youth_max_age:
            raise ValueError("youth_min_age must be <= youth_max_age")
        if self.school_age_min > self.school_age_max:
            raise ValueError("school_age_min must be <= school_age_max")
        if self.minor_age_limit <= 0 or self.senior_citizen_age <= self.minor_age_limit:
            raise ValueError("senior_citizen_age must exceed a positive minor_age_limit")
        floors = [floor for floor, _ in self.income_brackets]
        if floors != sorted(floors, reverse=True):
            raise ValueError("income_brackets must be sorted by descending floor")

    @property
    def full_time_enrollment_statuses(self) -> frozenset[EducationStatus]:
        """Education statuses treated as full-time enrollment."""
        if self.part_time_counts_as_enrolled:
            return frozenset(
                {EducationStatus.CURRENTLY_ENROLLED, EducationStatus.ENROLLED_PART_TIME}
            )
        return frozenset({EducationStatus.CURRENTLY_ENROLLED})

    @property
    def in_school_statuses(self) -> frozenset[EducationStatus]:
        """Education statuses that mean a child is attending school."""
        return frozenset({EducationStatus.CURRENTLY_ENROLLED, EducationStatus.ENROLLED_PART_TIME})


def _is_leap_day(d: date) -> bool:
    return d.month == 2 and d.day == 29


def birthday_in_year(birthdate: date, year: int) -> date:
    """Return the date ``birthdate`` is celebrated in ``year``.

    Leap-day birthdays fall on Feb 28 in non-leap years.
    """
    if _is_leap_day(birthdate) and not calendar.isleap(year):
        return date(year, 2, 28)
    return birthdate.replace(year=year)


def compute_age(birthdate: date, as_of: date) -> int:
    """Return the full years elapsed between ``birthdate`` and ``as_of``.

    Args:
        birthdate: Date of birth.
        as_of: Evaluation date.

    Returns:
        int: Age in completed years.

    Raises:
        ValidationError: If ``birthdate`` is after ``as_of``.
    """
    if birthdate > as_of:
        raise ValidationError.for_field(
            "birthdate",
            f"{birthdate.isoformat()} is after the evaluation date {as_of.isoformat()}",
        )
    years = as_of.year - birthdate.year
    if as_of < birthday_in_year(birthdate, as_of.year):
        years -= 1
    return years


class AttributeDerivationEngine:
    """Derive sectoral flags and household aggregates from facts."""

    def __init__(self, policy: SectoralPolicy | None = None) -> None:
        """Initialize the engine.

        Args:
            policy:
                Optional policy table. When omitted, defaults are used.
        """
        self._policy = policy or SectoralPolicy()

    @property
    def policy(self) -> SectoralPolicy:
        """Return the active policy table."""
        return self._policy

    # ---------------------------------------------------------------- #
    # Residents
    # ---------------------------------------------------------------- #

    def age(self, birthdate: date, as_of: date) -> int:
        """Return the resident's age in full years (see :func:`compute_age`)."""
        return compute_age(birthdate, as_of)

    def derive_resident(self, facts: Resident, as_of: date) -> DerivedResidentFields:
        """Compute the derived fields for one resident.

        Args:
            facts: Resident whose non-derived fields are used. Cached derived
                values on it are ignored.
            as_of: Evaluation date.

        Returns:
            DerivedResidentFields: Fresh classification.

        Raises:
            ValidationError: If the birthdate is after ``as_of``.
        """
        p = self._policy
        age = compute_age(facts.birthdate, as_of)
        employment = facts.employment_status
        education = facts.education_status

        is_employed = employment in p.employed_statuses
        is_jobless = employment in p.not_employed_statuses
        of_working_age = age >= p.working_age
        full_time = education in p.full_time_enrollment_statuses

        is_osy = (
            p.youth_min_age <= age <= p.youth_max_age
            and not full_time
            and education is not EducationStatus.GRADUATED
            and is_jobless
        )
        is_osc = (
            p.school_age_min <= age <= p.school_age_max
            and education not in p.in_school_statuses
        )
        is_migrant = bool(facts.previous_unit_code) and facts.previous_unit_code != facts.unit_code

        return DerivedResidentFields(
            age=age,
            is_minor=age < p.minor_age_limit,
            is_senior_citizen=age >= p.senior_citizen_age,
            is_out_of_school_youth=is_osy,
            is_unemployed=of_working_age and is_jobless and not full_time,
            is_out_of_school_children=is_osc,
            is_labor_force=of_working_age and (is_employed or is_jobless),
            is_employed=is_employed,
            is_migrant=is_migrant,
        )

    def check_declared_facts(self, facts: Resident, derived: DerivedResidentFields) -> None:
        """Reject declared sectoral facts that contradict the derived ones.

        Raises:
            ValidationError: If a resident who is not a senior citizen is
                declared as a registered one.
        """
        if facts.is_registered_senior_citizen and not derived.is_senior_citizen:
            raise ValidationError.for_field(
                "is_registered_senior_citizen",
                f"requires age {self._policy.senior_citizen_age} or older",
            )

    def refresh_resident(self, resident: Resident, as_of: date) -> Resident:
        """Return ``resident`` with its derived cache recomputed for ``as_of``."""
        return dataclasses.replace(
            resident,
            derived=self.derive_resident(resident, as_of),
            derived_as_of=as_of,
        )

    # ---------------------------------------------------------------- #
    # Households
    # ---------------------------------------------------------------- #

    def income_class(self, monthly_income: Decimal | None) -> IncomeClass:
        """Return the income bracket for a monthly household income.

        Missing or negative income is classified as the lowest bracket.
        """
        if monthly_income is None or monthly_income < 0:
            return IncomeClass.POOR
        for floor, klass in self._policy.income_brackets:
            if monthly_income >= floor:
                return klass
        return IncomeClass.POOR

    def derive_household(self, members: Iterable[Resident], as_of: date) -> DerivedHouseholdFields:
        """Aggregate the active members of a household in a single pass.

        Args:
            members: Residents linked to the household. Inactive residents
                are skipped.
            as_of: Evaluation date used to derive each member.

        Returns:
            DerivedHouseholdFields: Fresh aggregates.
        """
        total = minors = seniors = employed = migrants = 0
        registered = pwd = solo_parents = ofws = indigenous = 0
        income = Decimal("0")
        for member in members:
            if not member.is_active:
                continue
            flags = self.derive_resident(member, as_of)
            total += 1
            minors += flags.is_minor
            seniors += flags.is_senior_citizen
            employed += flags.is_employed
            migrants += flags.is_migrant
            registered += member.is_registered_senior_citizen
            pwd += member.is_person_with_disability
            solo_parents += member.is_solo_parent
            ofws += member.is_ofw
            indigenous += member.is_indigenous_people
            if member.monthly_income is not None:
                income += member.monthly_income

        return DerivedHouseholdFields(
            total_members=total,
            adult_count=total - minors,
            minor_count=minors,
            senior_count=seniors,
            employed_count=employed,
            migrant_count=migrants,
            registered_senior_count=registered,
            pwd_count=pwd,
            solo_parent_count=solo_parents,
            ofw_count=ofws,
            indigenous_count=indigenous,
            monthly_income=income,
            income_class=self.income_class(income),
        )

    def refresh_household(
        self,
        household: Household,
        members: Sequence[Resident],
        as_of: date,
    ) -> Household:
        """Return ``household`` with aggregates recomputed from ``members``."""
        return dataclasses.replace(
            household,
            derived=self.derive_household(members, as_of),
            derived_as_of=as_of,
        )


__all__ = [
    "DEFAULT_INCOME_BRACKETS",
    "AttributeDerivationEngine",
    "SectoralPolicy",
    "birthday_in_year",
    "compute_age",
]
