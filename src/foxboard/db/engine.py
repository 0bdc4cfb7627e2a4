"""Async SQLAlchemy engine and session factory.

SQLAlchemy 2.0 async mode: create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.
The pool is bounded (pool_size + max_overflow); callers beyond that wait for
a free connection.
"""

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from foxboard.config import settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an engine; SQLite has no sized pool so skip the pool options."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory: each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency: yields a session per request, auto-closes.

    Anything not committed by the handler is rolled back on close.
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create missing tables from the ORM metadata."""
    from foxboard.db.models import Base

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def upsert_insert(db: AsyncSession, table):
    """INSERT supporting ON CONFLICT clauses for the session's dialect.

    Only PostgreSQL (production) and SQLite (tests) are supported.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(table)
    if dialect == "sqlite":
        return sqlite_insert(table)
    raise NotImplementedError(f"ON CONFLICT inserts not supported on {dialect}")
