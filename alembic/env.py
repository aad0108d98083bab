"""Alembic environment for the credential-core schema.

The same revisions run against Postgres (asyncpg) in deployment and SQLite
(pysqlite or aiosqlite) in tests, so SQLite connections migrate in batch mode.
"""

from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context
from portal_auth.infrastructure.db.metadata import metadata

config = context.config

_PLACEHOLDER_URL = "sqlite:///./portal_auth.db"
_ASYNC_DRIVERS = frozenset({"asyncpg", "aiosqlite"})

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = metadata


def _resolve_url() -> str:
    """Return the URL to migrate; DATABASE_URL replaces only the ini placeholder."""

    configured = config.get_main_option("sqlalchemy.url") or _PLACEHOLDER_URL
    if configured != _PLACEHOLDER_URL:
        return configured
    load_dotenv(Path(__file__).resolve().parents[1] / ".env")
    return os.getenv("DATABASE_URL") or configured


def _configure(**options: object) -> None:
    url = make_url(_resolve_url())
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.get_backend_name() == "sqlite",
        **options,
    )


def run_migrations_offline() -> None:
    _configure(
        url=_resolve_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        _engine_options(),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


def run_migrations_online() -> None:
    """Run through an async engine when the URL names an async driver."""

    if make_url(_resolve_url()).get_driver_name() in _ASYNC_DRIVERS:
        asyncio.run(run_async_migrations())
        return

    connectable = engine_from_config(
        _engine_options(),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        do_run_migrations(connection)


def _engine_options() -> dict[str, str]:
    options = dict(config.get_section(config.config_ini_section, {}))
    options["sqlalchemy.url"] = _resolve_url()
    return options


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
