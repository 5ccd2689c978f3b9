"""Alembic environment for the propgraph core tables (async PostgreSQL).

Only the properties/linking tables are managed here. Workspace and record
tables belong to the services that own those records, so autogenerate
ignores them.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from sqlmodel import SQLModel

from propgraph.config import settings
from propgraph.db.models import (
    EntityInheritedDisplay,
    EntityLink,
    EntityProperty,
    PropertyDefinition,
)

MANAGED_TABLES = frozenset(
    model.__tablename__
    for model in (PropertyDefinition, EntityProperty, EntityLink, EntityInheritedDisplay)
)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Settings win over alembic.ini
config.set_main_option("sqlalchemy.url", settings.async_database_url)

target_metadata = SQLModel.metadata


def include_object(obj, name, type_, reflected, compare_to) -> bool:  # noqa: ANN001
    """Restrict autogenerate to the managed tables and their indexes."""
    if type_ == "table":
        return name in MANAGED_TABLES
    table = getattr(obj, "table", None)
    if table is not None:
        return table.name in MANAGED_TABLES
    return True


def _configure(**kwargs) -> None:  # noqa: ANN003
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL without a database connection."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
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
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
