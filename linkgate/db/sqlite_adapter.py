"""
SQLite Database Adapter

Default backend for development, tests and single-instance deployments.

Every connection is opened in WAL mode with foreign keys enforced and a busy
timeout, so concurrent challenge writes wait for the file lock instead of
failing immediately.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from linkgate.db.interface import DatabaseAdapter

BUSY_TIMEOUT_MS = 5000

CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA foreign_keys=ON",
    f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}",
)


class SQLiteAdapter(DatabaseAdapter):
    """SQLite over aiosqlite, one connection per checkout (NullPool)."""

    def _build_engine(self, database_url: str, options: dict[str, Any]) -> AsyncEngine:
        return create_async_engine(
            database_url,
            poolclass=self.get_pool_class(),
            # aiosqlite runs the connection in a worker thread
            connect_args={"check_same_thread": False},
            **options
        )

    def get_pool_class(self) -> type[NullPool]:
        return NullPool

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {"echo": False}

    def configure_connections(self, engine: AsyncEngine) -> None:
        @event.listens_for(engine.sync_engine, "connect")
        def _apply_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            for pragma in CONNECTION_PRAGMAS:
                cursor.execute(pragma)
            cursor.close()

    async def delete_created_before(
        self,
        session: AsyncSession,
        model: type,
        cutoff: datetime
    ) -> int:
        # Stored timestamps are naive UTC strings; lexical order is chronological
        result = await session.execute(delete(model).where(model.created_at < cutoff))
        return result.rowcount or 0


def get_database_adapter() -> DatabaseAdapter:
    """Return the adapter for the configured backend (SQLite only for now)."""
    return SQLiteAdapter()
