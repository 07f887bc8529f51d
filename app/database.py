from contextlib import asynccontextmanager
from contextvars import ContextVar

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.cache import cache
from app.config import settings

# Statements sent to the store during the current request.
query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


class Base(DeclarativeBase):
    pass


def install_query_counter(engine: AsyncEngine) -> None:
    """Count every statement *engine* executes into ``query_count_var``."""

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _count(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


def build_engine(url: str | None = None) -> AsyncEngine:
    """
    Create the process-wide async engine.

    The engine owns the connection pool shared by every request handler.
    It is created once by the application lifespan and reaches handlers
    only through ``get_db``.
    """
    engine = create_async_engine(
        url or settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_pre_ping=True,
    )
    install_query_counter(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create any missing tables."""
    # Import models so their tables are registered on Base.metadata.
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope(session_factory: async_sessionmaker[AsyncSession]):
    """
    One unit of work: commit on success, roll back on error.

    Cached article reads are purged only after a commit that changed
    articles, never before it.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            cache.forget_stale(session)
            raise
        await cache.flush_stale(session)


async def get_db(request: Request):
    async with session_scope(request.app.state.session_factory) as session:
        yield session
