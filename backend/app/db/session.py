"""Async SQLAlchemy engine, session factory and request dependency."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, SessionTransaction
from sqlalchemy.pool import StaticPool

from app.config.settings import Settings, get_settings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def engine_kwargs(url: str, echo: bool = False, settings: Settings | None = None) -> dict[str, Any]:
    """
    Return engine creation kwargs appropriate for the database URL.

    SQLite has no server-side pool; an in-memory database must share a
    single connection or every checkout would see an empty schema.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.endswith("sqlite+aiosqlite://"):
            kwargs["poolclass"] = StaticPool
    elif settings is not None:
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
        kwargs["pool_pre_ping"] = True
    return kwargs


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    """Create and return the global async engine."""
    global _engine
    if _engine is None:
        cfg = settings or get_settings()
        url = str(cfg.database_url)
        _engine = create_async_engine(url, **engine_kwargs(url, cfg.db_echo, cfg))
    return _engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Return the global session factory, creating it if necessary."""
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(create_engine(settings))
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields a database session.

    Commits when the request handler returns, rolls back on exception.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Dispose the engine; used on application shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def hold_until_transaction_end(db: AsyncSession, lock: asyncio.Lock, name: str) -> None:
    """
    Acquire ``lock`` for the rest of the session's current transaction.

    The lock is released when that transaction commits, rolls back or is
    closed, so a second writer only reads its tail once the first one's
    rows are visible. Re-entrant per session: a session already holding
    ``name`` returns immediately.
    """
    held: set[str] = db.info.setdefault("held_locks", set())
    if name in held:
        return

    await lock.acquire()
    held.add(name)

    listening: set[str] = db.info.setdefault("lock_listeners", set())
    if name not in listening:
        listening.add(name)

        @event.listens_for(db.sync_session, "after_transaction_end")
        def _release(session: Session, transaction: SessionTransaction) -> None:
            if transaction.parent is None and name in held:
                held.discard(name)
                lock.release()

    try:
        # the transaction must exist before anything can end it
        await db.connection()
    except BaseException:
        if name in held:
            held.discard(name)
            lock.release()
        raise
