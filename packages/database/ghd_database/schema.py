"""
Schema creation and forward-only migrations for the local cache.

The schema version lives in SQLite's PRAGMA user_version. A fresh database
is created at SCHEMA_VERSION; an older one is upgraded one version at a time,
each step inside its own transaction. A database written by newer code is
refused rather than silently downgraded.
"""

import logging

from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlmodel import SQLModel

from ghd_database import base  # noqa: F401  registers tables on SQLModel.metadata
from ghd_database.migrations import MIGRATIONS

logger = logging.getLogger(__name__)

SCHEMA_VERSION: int = 2


class DatabaseSetupError(Exception):
    """The database cannot be opened or interpreted; fatal at startup."""


class SchemaVersionError(DatabaseSetupError):
    def __init__(self, found: int, supported: int = SCHEMA_VERSION):
        super().__init__(
            f"Database schema version {found} is newer than supported version {supported}"
        )
        self.found = found
        self.supported = supported


class MigrationError(DatabaseSetupError):
    def __init__(self, from_version: int, to_version: int, reason: str):
        super().__init__(f"Unable to migrate database from version {from_version} to {to_version}: {reason}")
        self.from_version = from_version
        self.to_version = to_version


async def get_schema_version(conn: AsyncConnection) -> int:
    result = await conn.exec_driver_sql("PRAGMA user_version")
    return int(result.scalar_one())


def _set_schema_version(sync_conn: Connection, version: int) -> None:
    # PRAGMA does not accept bound parameters
    sync_conn.exec_driver_sql(f"PRAGMA user_version = {int(version)}")


def _has_schema(sync_conn: Connection) -> bool:
    return inspect(sync_conn).has_table("users")


def _create_schema(sync_conn: Connection) -> None:
    SQLModel.metadata.create_all(sync_conn)
    _set_schema_version(sync_conn, SCHEMA_VERSION)


def _apply_step(sync_conn: Connection, from_version: int, to_version: int) -> None:
    if to_version != from_version + 1:
        raise MigrationError(from_version, to_version, "versions must be exactly one apart")

    module = MIGRATIONS.get(from_version)
    if module is None or module.revision != to_version:
        raise MigrationError(from_version, to_version, "no migration step available")

    context = MigrationContext.configure(connection=sync_conn)
    with Operations.context(context):
        module.upgrade()

    _set_schema_version(sync_conn, to_version)


async def migrate(engine: AsyncEngine, from_version: int, to_version: int) -> None:
    """Applies a single migration step in one transaction"""
    logger.info(f"Migrating database from version {from_version} to {to_version}")
    async with engine.begin() as conn:
        await conn.run_sync(_apply_step, from_version, to_version)


async def setup_database(engine: AsyncEngine) -> int:
    """
    Creates or upgrades the schema. Returns the resulting schema version.

    Raises DatabaseSetupError (or a subclass) when the store cannot be used;
    callers are expected to abort.
    """
    try:
        async with engine.begin() as conn:
            if not await conn.run_sync(_has_schema):
                await conn.run_sync(_create_schema)
                logger.info(f"Created database schema at version {SCHEMA_VERSION}")
                return SCHEMA_VERSION
            version = await get_schema_version(conn)
    except SQLAlchemyError as e:
        raise DatabaseSetupError(f"Unable to open database: {e}") from e

    logger.debug(f"Database at version {version}, current {SCHEMA_VERSION}")

    if version > SCHEMA_VERSION:
        raise SchemaVersionError(version)

    while version < SCHEMA_VERSION:
        try:
            await migrate(engine, version, version + 1)
        except MigrationError:
            raise
        except SQLAlchemyError as e:
            raise MigrationError(version, version + 1, str(e)) from e
        version += 1

    return version
