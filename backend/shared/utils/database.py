"""
Async PostgreSQL access for the crawler entrypoints (SQLAlchemy 2.0 + asyncpg).

One ``DatabaseManager`` per process, entered as an async context manager:

    async with DatabaseManager(settings, application_name="crawler") as db:
        async with db.write_session() as session:
            ...
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class DatabaseManager:
    """Owns the async engine and hands out read and write sessions."""

    def __init__(self, settings: Settings | None = None, application_name: str = "sofacrawl") -> None:
        self._settings = settings or get_settings()
        self._application_name = application_name
        self._engine: Optional[AsyncEngine] = None
        self._sessions: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def connected(self) -> bool:
        return self._engine is not None

    async def connect(self) -> None:
        """Create the engine and verify the server answers."""
        s = self._settings
        self._engine = create_async_engine(
            s.database_url_str,
            pool_size=s.db_pool_min,
            max_overflow=max(s.db_pool_max - s.db_pool_min, 0),
            pool_pre_ping=True,
            echo=s.debug,
            connect_args={
                "timeout": s.db_command_timeout,
                "command_timeout": s.db_command_timeout,
                "server_settings": {"application_name": self._application_name},
            },
        )
        self._sessions = async_sessionmaker(bind=self._engine, expire_on_commit=False)
        await self.ping()
        logger.info("database_connected", url=s.database_url_safe_log, application=self._application_name)

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None
        logger.info("database_disconnected")

    async def __aenter__(self) -> "DatabaseManager":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    async def ping(self) -> None:
        async with self.read_session() as session:
            await session.execute(text("SELECT 1"))

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        """Session without commit, for lookups."""
        if self._sessions is None:
            raise RuntimeError("DatabaseManager not connected.")
        async with self._sessions() as session:
            yield session

    @asynccontextmanager
    async def write_session(self) -> AsyncIterator[AsyncSession]:
        """Transactional session: commit on success, rollback on any error."""
        if self._sessions is None:
            raise RuntimeError("DatabaseManager not connected.")
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def execute_script(self, statements: Iterable[str]) -> int:
        """Run raw SQL statements in one transaction; returns how many ran."""
        count = 0
        async with self.write_session() as session:
            for stmt in statements:
                await session.execute(text(stmt))
                count += 1
        return count
