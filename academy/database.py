"""
Database access for the academy engine.

One async engine (asyncpg) per process, created lazily from DATABASE_URL.
Request handlers borrow a connection for reads and a transaction for
writes; Alembic gets the same URL with the sync psycopg2 driver.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .config import get_database_url, is_sql_echo

ASYNC_SCHEME = "postgresql+asyncpg://"
SYNC_SCHEME = "postgresql://"

_engine: AsyncEngine | None = None


def _with_scheme(url: str, scheme: str) -> str:
    """Rewrite a postgres URL to use the given driver scheme."""
    for known in (ASYNC_SCHEME, SYNC_SCHEME, "postgres://"):
        if url.startswith(known):
            return scheme + url[len(known):]
    raise ValueError(f"DATABASE_URL is not a PostgreSQL URL: {url.split('://')[0]}://...")


def get_async_database_url() -> str:
    url = get_database_url()
    if not url:
        raise ValueError("DATABASE_URL environment variable must be set.")
    return _with_scheme(url, ASYNC_SCHEME)


def get_sync_database_url() -> str:
    """URL for Alembic, which runs migrations synchronously."""
    url = get_database_url()
    if not url:
        raise ValueError("DATABASE_URL must be set for migrations")
    return _with_scheme(url, SYNC_SCHEME)


def is_configured() -> bool:
    """True when DATABASE_URL is set (DB-backed tests skip otherwise)."""
    return get_database_url() is not None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            get_async_database_url(),
            echo=is_sql_echo(),
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
        )
    return _engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """
    Borrow a pooled connection for a read-only request.

    Usage:
        async with get_connection() as conn:
            tree = await load_course_tree(conn, course_id)
    """
    async with get_engine().connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """
    Run one customer action in a single transaction.

    The attempt counter, the completion row and any access-code usage commit
    together, or all roll back when an exception leaves the block.

    Usage:
        async with get_transaction() as conn:
            await mark_subsection_completed(conn, customer_id=1, subsection_id=2)
    """
    async with get_engine().begin() as conn:
        yield conn


async def close_engine() -> None:
    """Dispose of the pool. Called from the app lifespan on shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
