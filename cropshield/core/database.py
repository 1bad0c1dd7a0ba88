"""Async SQLAlchemy engine, session factory and declarative base."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from cropshield.core.config import settings

_MEMORY_URLS = ("sqlite+aiosqlite://", "sqlite+aiosqlite:///:memory:")


class Base(DeclarativeBase):
    pass


def build_engine(url: str | None = None) -> AsyncEngine:
    """Create the async engine for ``url`` (defaults to the configured database).

    In-memory SQLite is pinned to a single connection so every session sees
    the same database.
    """
    url = url or settings.database_url
    kwargs = {}
    if url in _MEMORY_URLS:
        kwargs["poolclass"] = StaticPool

    engine = create_async_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    return engine


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    # The sqlite driver opens transactions lazily, which breaks SAVEPOINT.
    # Take over transaction control and emit BEGIN ourselves.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    import cropshield.models  # noqa: F401  registers the mappers

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
