# ozonator/database.py

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy.orm import declarative_base

from ozonator.core.config import get_settings

Base = declarative_base()


def _enable_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class LocalStore:
    """
    Handle on one local database.

    Owns the async engine and session factory. Services receive a store (or a
    session opened from it) explicitly, so tests can run several stores side
    by side.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        self.database_url = database_url or get_settings().DATABASE_URL
        if not self.database_url:
            raise ValueError("DATABASE_URL is not set")

        self.engine: AsyncEngine = create_async_engine(self.database_url, echo=echo, future=True)

        if self.engine.dialect.name == "sqlite" and ":memory:" not in self.database_url:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_pragmas)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        session = self.session_factory()
        try:
            yield session
        finally:
            await session.close()

    async def init_models(self) -> None:
        """Create all tables that do not exist yet."""
        # Registers every table on Base.metadata
        import ozonator.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
