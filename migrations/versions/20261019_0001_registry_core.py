# migrations/versions/20261019_0001_registry_core.py
"""Create the registry schema: geography, households, residents, audit log.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19

This migration:
  * Creates schema: rbi.
  * Creates reference tables: rbi.geographic_units, rbi.reference_data_versions.
  * Creates registry tables: rbi.households, rbi.residents (with derived caches).
  * Creates the append-only rbi.audit_log.

Notes:
  - households.head_resident_id has no foreign key; the head invariant is
    enforced by the mutation coordinator.
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

SCHEMA = "rbi"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Apply the migration."""
    conn = op.get_bind()
    conn.exec_driver_sql(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    # Reference tables
    op.create_table(
        "geographic_units",
        sa.Column("code", sa.String(20), primary_key=True),
        sa.Column("level", sa.String(16), nullable=False),
        sa.Column(
            "parent_code",
            sa.String(20),
            sa.ForeignKey(f"{SCHEMA}.geographic_units.code", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.CheckConstraint(
            "level IN ('region', 'province', 'city', 'local_unit')",
            name="ck_geographic_units_level",
        ),
        sa.CheckConstraint(
            "(level = 'region') = (parent_code IS NULL)",
            name="ck_geographic_units_parent_presence",
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_geographic_units_parent_code", "geographic_units", ["parent_code"], schema=SCHEMA
    )
    op.create_index("ix_geographic_units_level", "geographic_units", ["level"], schema=SCHEMA)

    op.create_table(
        "reference_data_versions",
        sa.Column("dataset", sa.String(64), primary_key=True),
        sa.Column("version", sa.String(64), nullable=False),
        sa.Column(
            "loaded_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        schema=SCHEMA,
    )

    # Households
    op.create_table(
        "households",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(80), nullable=False, unique=True),
        sa.Column("household_number", sa.String(50), nullable=False),
        sa.Column(
            "unit_code",
            sa.String(20),
            sa.ForeignKey(f"{SCHEMA}.geographic_units.code", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("region_code", sa.String(20), nullable=True),
        sa.Column("province_code", sa.String(20), nullable=True),
        sa.Column("city_code", sa.String(20), nullable=True),
        sa.Column("head_resident_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("total_members", sa.Integer, nullable=True),
        sa.Column("adult_count", sa.Integer, nullable=True),
        sa.Column("minor_count", sa.Integer, nullable=True),
        sa.Column("senior_count", sa.Integer, nullable=True),
        sa.Column("employed_count", sa.Integer, nullable=True),
        sa.Column("migrant_count", sa.Integer, nullable=True),
        sa.Column("monthly_income", sa.Numeric(16, 2), nullable=True),
        sa.Column("income_class", sa.String(32), nullable=True),
        sa.Column("derived_as_of", sa.Date, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
        schema=SCHEMA,
    )
    op.create_index("ix_households_unit_code", "households", ["unit_code"], schema=SCHEMA)

    # Residents
    op.create_table(
        "residents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("middle_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("birthdate", sa.Date, nullable=False),
        sa.Column("sex", sa.String(16), nullable=False),
        sa.Column("employment_status", sa.String(32), nullable=False),
        sa.Column("education_status", sa.String(32), nullable=False),
        sa.Column("monthly_income", sa.Numeric(14, 2), nullable=True),
        sa.Column("previous_unit_code", sa.String(20), nullable=True),
        sa.Column("mobile_number", sa.String(20), nullable=True),
        sa.Column("telephone_number", sa.String(20), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column(
            "unit_code",
            sa.String(20),
            sa.ForeignKey(f"{SCHEMA}.geographic_units.code", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "household_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(f"{SCHEMA}.households.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("region_code", sa.String(20), nullable=True),
        sa.Column("province_code", sa.String(20), nullable=True),
        sa.Column("city_code", sa.String(20), nullable=True),
        sa.Column("age", sa.Integer, nullable=True),
        sa.Column("is_minor", sa.Boolean, nullable=True),
        sa.Column("is_senior_citizen", sa.Boolean, nullable=True),
        sa.Column("is_out_of_school_youth", sa.Boolean, nullable=True),
        sa.Column("is_unemployed", sa.Boolean, nullable=True),
        sa.Column("is_out_of_school_children", sa.Boolean, nullable=True),
        sa.Column("is_labor_force", sa.Boolean, nullable=True),
        sa.Column("is_employed", sa.Boolean, nullable=True),
        sa.Column("is_migrant", sa.Boolean, nullable=True),
        sa.Column("derived_as_of", sa.Date, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.CheckConstraint(
            "monthly_income IS NULL OR monthly_income >= 0",
            name="ck_residents_income_non_negative",
        ),
        *_timestamps(),
        schema=SCHEMA,
    )
    op.create_index("ix_residents_unit_code", "residents", ["unit_code"], schema=SCHEMA)
    op.create_index("ix_residents_household_id", "residents", ["household_id"], schema=SCHEMA)

    # Audit log (append-only)
    op.create_table(
        "audit_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("actor_id", sa.String(255), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("resource_type", sa.String(16), nullable=False),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("before", postgresql.JSONB, nullable=True),
        sa.Column("after", postgresql.JSONB, nullable=True),
        sa.Column("timestamp", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("unit_code", sa.String(20), nullable=True),
        schema=SCHEMA,
    )
    op.create_index("ix_audit_log_resource_id", "audit_log", ["resource_id"], schema=SCHEMA)
    op.create_index(
        "ix_audit_log_unit_code_timestamp",
        "audit_log",
        ["unit_code", "timestamp"],
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Revert the migration."""
    op.drop_index("ix_audit_log_unit_code_timestamp", table_name="audit_log", schema=SCHEMA)
    op.drop_index("ix_audit_log_resource_id", table_name="audit_log", schema=SCHEMA)
    op.drop_table("audit_log", schema=SCHEMA)
    op.drop_index("ix_residents_household_id", table_name="residents", schema=SCHEMA)
    op.drop_index("ix_residents_unit_code", table_name="residents", schema=SCHEMA)
    op.drop_table("residents", schema=SCHEMA)
    op.drop_index("ix_households_unit_code", table_name="households", schema=SCHEMA)
    op.drop_table("households", schema=SCHEMA)
    op.drop_table("reference_data_versions", schema=SCHEMA)
    op.drop_index("ix_geographic_units_level", table_name="geographic_units", schema=SCHEMA)
    op.drop_index("ix_geographic_units_parent_code", table_name="geographic_units", schema=SCHEMA)
    op.drop_table("geographic_units", schema=SCHEMA)
