# migrations/versions/20261019_0002_sectoral_facts.py
"""Add manually declared sectoral facts and their household counts.

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19

This migration:
  * Adds declared sectoral flags to rbi.residents (OFW, PWD, solo parent,
    indigenous people, registered senior citizen).
  * Adds the matching aggregate counts to the rbi.households derived cache.
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: str | None = "20261019_0001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

SCHEMA = "rbi"

RESIDENT_FLAGS: tuple[str, ...] = (
    "is_ofw",
    "is_person_with_disability",
    "is_solo_parent",
    "is_indigenous_people",
    "is_registered_senior_citizen",
)

HOUSEHOLD_COUNTS: tuple[str, ...] = (
    "registered_senior_count",
    "pwd_count",
    "solo_parent_count",
    "ofw_count",
    "indigenous_count",
)


def upgrade() -> None:
    """Apply the migration."""
    for name in RESIDENT_FLAGS:
        op.add_column(
            "residents",
            sa.Column(name, sa.Boolean, nullable=False, server_default=sa.text("false")),
            schema=SCHEMA,
        )
    for name in HOUSEHOLD_COUNTS:
        op.add_column(
            "households",
            sa.Column(name, sa.Integer, nullable=True),
            schema=SCHEMA,
        )


def downgrade() -> None:
    """Revert the migration (dev convenience only)."""
    for name in reversed(HOUSEHOLD_COUNTS):
        op.drop_column("households", name, schema=SCHEMA)
    for name in reversed(RESIDENT_FLAGS):
        op.drop_column("residents", name, schema=SCHEMA)
