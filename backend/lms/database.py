import os
import logging
from sqlmodel import SQLModel
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

DATABASE_URL = os.getenv(
    "DATABASE_URL", "sqlite+aiosqlite:///./lms.db"
)  # swap with a Postgres URL (postgresql+asyncpg://...) if needed

logger = logging.getLogger(__name__)

# Control SQL echo via environment variable and route output through logging
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
if SQL_ECHO:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

engine = create_async_engine(DATABASE_URL, echo=SQL_ECHO)

async_session = async_sessionmaker(engine, expire_on_commit=False)


class SchemaMismatchError(RuntimeError):
    """Raised when an existing database lacks columns the models rely on."""


def _missing_columns(sync_conn) -> dict[str, list[str]]:
    inspector = inspect(sync_conn)
    existing_tables = set(inspector.get_table_names())
    missing: dict[str, list[str]] = {}
    for table in SQLModel.metadata.sorted_tables:
        if table.name not in existing_tables:
            missing[table.name] = [c.name for c in table.columns]
            continue
        present = {c["name"] for c in inspector.get_columns(table.name)}
        absent = [c.name for c in table.columns if c.name not in present]
        if absent:
            missing[table.name] = absent
    return missing


async def verify_schema(conn) -> None:
    """Fail fast when the live schema does not match the declared models.

    Older installs are not patched column by column; an operator has to
    migrate the database before the service will start against it.
    """
    missing = await conn.run_sync(_missing_columns)
    if missing:
        for table, columns in missing.items():
            logger.error("Table %s is missing columns: %s", table, ", ".join(columns))
        raise SchemaMismatchError(
            "Database schema does not match the application models"
        )


async def create_db_and_tables() -> None:
    from . import models  # noqa: F401  register tables on the metadata

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
        # create_all never alters existing tables, so check what it left alone
        await verify_schema(conn)


async def get_session() -> AsyncSession:
    async with async_session() as session:
        yield session
