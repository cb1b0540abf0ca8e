# migrations/env.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Alembic environment for the registry schema.

Runs the revisions under ``migrations/versions`` offline (SQL output) or
online through an async engine. Registry tables live in the fixed ``rbi``
schema; only the Alembic version table follows ``DB_SCHEMA``.

Environment variables:
    DATABASE_URL    Async database URL; falls back to ``sqlalchemy.url``.
    DB_SCHEMA       Schema of the version table (default "rbi").
    ECHO_SQL        If "1", echo SQL during online runs.
"""

from __future__ import annotations

import asyncio
import logging.config
import os
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from rbi_core.infrastructure.database.models import audit as _audit_models  # noqa: F401
from rbi_core.infrastructure.database.models import geography as _geo_models  # noqa: F401
from rbi_core.infrastructure.database.models import registry as _registry_models  # noqa: F401
from rbi_core.infrastructure.database.models.base import metadata as BaseMetadata

config = context.config
if config.config_file_name is not None:
    logging.config.fileConfig(config.config_file_name)

# Exported variables win over the repo-root .env file.
load_dotenv(Path(__file__).resolve().parents[1] / ".env", override=False)

target_metadata = BaseMetadata


def _db_url() -> str:
    """Return the database URL from the environment or alembic.ini.

    Raises:
        RuntimeError: If neither is configured.
    """
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("Database URL not configured (DATABASE_URL/sqlalchemy.url).")
    return url


def _version_table_schema() -> str:
    return (os.getenv("DB_SCHEMA") or "rbi").strip()


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (SQL script output)."""
    context.configure(
        url=_db_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_schemas=True,
        version_table_schema=_version_table_schema(),
    )
    with context.begin_transaction():
        context.run_migrations()


def _configure_and_run(connection: Connection) -> None:
    schema = _version_table_schema()
    # The version table's schema must exist before Alembic creates the table.
    connection.exec_driver_sql(f'CREATE SCHEMA IF NOT EXISTS "{schema}"')
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        include_schemas=True,
        version_table_schema=schema,
    )
    with context.begin_transaction():
        context.run_migrations()


async def _run_migrations_async() -> None:
    engine = create_async_engine(
        _db_url(), echo=os.getenv("ECHO_SQL") == "1", poolclass=pool.NullPool
    )
    async with engine.connect() as connection:
        await connection.run_sync(_configure_and_run)
    await engine.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode through an async engine."""
    asyncio.run(_run_migrations_async())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
