"""Unit of Work for FPL sync.

Provides a UnitOfWork with the repositories the sync jobs need.
"""

import asyncio
from collections.abc import Callable
from types import TracebackType
from typing import Any, Self

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from letletme_sync.shared.repositories import (
    EntryEventResultRepository,
    EntryInfoRepository,
    EventRepository,
)

# Type alias for UoW factory function
UOWFactoryType = Callable[[], "UnitOfWork"]


def setup_db_session(
    db_connection: str,
    session_kwargs: dict[str, Any] | None = None,
    engine_kwargs: dict[str, Any] | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Create a SQLAlchemy async session factory."""
    session_kwargs = {"expire_on_commit": False, **(session_kwargs or {})}
    engine_kwargs = {"pool_pre_ping": True, **(engine_kwargs or {})}

    engine = create_async_engine(db_connection, **engine_kwargs)
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        **session_kwargs,
    )


def create_uow_factory(
    db_connection: str,
    session_kwargs: dict[str, Any] | None = None,
    engine_kwargs: dict[str, Any] | None = None,
) -> UOWFactoryType:
    """Create a factory function that produces UnitOfWork instances.

    Args:
        db_connection: Database connection string (postgresql+asyncpg://...)
        session_kwargs: Additional kwargs for async_sessionmaker (optional)
        engine_kwargs: Additional kwargs for create_async_engine (optional)
    """
    session_factory = setup_db_session(
        db_connection,
        session_kwargs=session_kwargs,
        engine_kwargs=engine_kwargs,
    )

    def _create_uow() -> UnitOfWork:
        return UnitOfWork(session_factory)

    return _create_uow


class UnitOfWork:
    """One transaction over the sync repositories.

    Commits on clean exit, rolls back if the block raised.

    Usage:
        async with uow_factory() as uow:
            await uow.entry_infos.upsert(data)
    """

    entry_infos: EntryInfoRepository
    entry_event_results: EntryEventResultRepository
    events: EventRepository

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory: async_sessionmaker[AsyncSession] = session_factory

    async def __aenter__(self) -> Self:
        self._session: AsyncSession = self._session_factory()

        self.entry_infos = EntryInfoRepository(self._session)
        self.entry_event_results = EntryEventResultRepository(self._session)
        self.events = EventRepository(self._session)

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if exc_val:
                await self.rollback()
            else:
                await self.commit()
        finally:
            await self._close()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def _close(self) -> None:
        # shielded so a cancelled task still returns its connection
        await asyncio.shield(self._session.close())
