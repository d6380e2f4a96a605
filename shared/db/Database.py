"""Async engine and session scope for the relational store."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from shared.db.base import Base
from shared.helper.HelperConfig import HelperConfig

DEFAULT_DB_URL = "sqlite+aiosqlite:///./data/medqa.db"


def _apply_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.execute("PRAGMA busy_timeout=5000;")
    finally:
        cursor.close()


class Database:
    """Owns the async engine and hands out transactional sessions."""

    def __init__(self, helper_config: HelperConfig, db_url: str | None = None) -> None:
        self.logging = helper_config.get_logger()
        self.db_url = db_url or helper_config.get_string_val("DB_URL", default=DEFAULT_DB_URL)
        self.echo_sql = helper_config.get_bool_val("DB_ECHO_SQL", default=False)
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def _is_sqlite(self) -> bool:
        return self.db_url.startswith("sqlite")

    def get_engine(self) -> AsyncEngine:
        if self._engine is None:
            url = self.db_url
            if url.startswith("sqlite:///"):
                url = url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
            self._engine = create_async_engine(url, echo=self.echo_sql)
            if self._is_sqlite():
                event.listens_for(self._engine.sync_engine, "connect")(_apply_sqlite_pragmas)
            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                autoflush=True,
                expire_on_commit=False,
            )
        return self._engine

    async def init_schema(self) -> None:
        """Create missing tables. Existing tables are left untouched."""
        if self._is_sqlite():
            database = make_url(self.db_url).database
            if database and database != ":memory:":
                Path(database).parent.mkdir(parents=True, exist_ok=True)
        async with self.get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.logging.info("Database schema ready (%s).", make_url(self.db_url).render_as_string(hide_password=True))

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Async session context: commit on success, rollback + re-raise on exception."""
        self.get_engine()
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
