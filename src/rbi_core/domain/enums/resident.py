# src/rbi_core/domain/enums/resident.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Resident and household classification enums.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class Sex(str, Enum):
    """Sex as recorded on the inhabitant record."""

    MALE = "male"
    FEMALE = "female"


class EmploymentStatus(str, Enum):
    """Employment status fact for a resident."""

    EMPLOYED = "employed"
    SELF_EMPLOYED = "self_employed"
    UNDEREMPLOYED = "underemployed"
    NOT_EMPLOYED = "not_employed"
    RETIRED = "retired"
    HOMEMAKER = "homemaker"
    UNABLE_TO_WORK = "unable_to_work"


class EducationStatus(str, Enum):
    """Schooling status fact for a resident."""

    CURRENTLY_ENROLLED = "currently_enrolled"
    ENROLLED_PART_TIME = "enrolled_part_time"
    NOT_ENROLLED = "not_enrolled"
    DROPPED_OUT = "dropped_out"
    GRADUATED = "graduated"


class IncomeClass(str, Enum):
    """Household income bracket, lowest to highest."""

    POOR = "poor"
    LOW_INCOME = "low_income"
    LOWER_MIDDLE_CLASS = "lower_middle_class"
    MIDDLE_CLASS = "middle_class"
    UPPER_MIDDLE_INCOME = "upper_middle_income"
    HIGH_INCOME = "high_income"
    RICH = "rich"


__all__ = ["EducationStatus", "EmploymentStatus", "IncomeClass", "Sex"]
