"""Alembic migration environment for the blog schema (async engine).

The database URL comes from ``blogapi.config.settings`` unless one is passed
on the command line with ``alembic -x url=... upgrade head``.  SQLite URLs
switch on batch mode so ALTER-style operations work there too.
"""

import asyncio
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from blogapi.config import settings
from blogapi.database import Base

# Registers users / articles / comments on Base.metadata.
import blogapi.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def _database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("url", settings.DATABASE_URL)


def _configure_kwargs(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of executing it."""
    url = _database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync_migrations(connection: Connection, url: str) -> None:
    context.configure(connection=connection, **_configure_kwargs(url))
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    url = _database_url()
    logger.info("Migrating %s", url.split("@")[-1])
    connectable = create_async_engine(url, pool_pre_ping=True)
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(_run_sync_migrations, url)
    finally:
        await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
