"""Database engine, declarative base and the ledger store."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from settlement_core.config import settings
from settlement_core.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base for all models."""


class LedgerStore:
    """Transactional store for bookings, commissions and payouts.

    Holds no record state of its own. Every operation opens a fresh session,
    so concurrent handlers and other instances always read committed data.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_url(cls, url: str, **engine_kwargs) -> "LedgerStore":
        """Build a store from a database URL."""
        if url.startswith("postgresql"):
            engine_kwargs.setdefault("pool_size", settings.db_pool_size)
            engine_kwargs.setdefault("max_overflow", settings.db_max_overflow)
            engine_kwargs.setdefault("pool_pre_ping", True)
        return cls(create_async_engine(url, echo=settings.debug, **engine_kwargs))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Read-only session. Nothing is committed."""
        try:
            async with self.session_factory() as session:
                yield session
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Ledger store read failed: {e}")
            raise StoreUnavailable() from e

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Session inside a single transaction.

        Commits when the block exits cleanly and rolls back on any exception.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Ledger store transaction failed: {e}")
            raise StoreUnavailable() from e

    async def create_all(self) -> None:
        """Create tables (development and tests only, production uses Alembic)."""
        import settlement_core.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


_store: LedgerStore | None = None


def get_ledger_store() -> LedgerStore:
    """Process-wide store bound to the configured database."""
    global _store
    if _store is None:
        _store = LedgerStore.from_url(settings.database_url)
    return _store


async def init_db() -> None:
    """Create tables on the configured database."""
    await get_ledger_store().create_all()


async def close_db() -> None:
    """Dispose the configured engine."""
    global _store
    if _store is not None:
        await _store.dispose()
        _store = None
