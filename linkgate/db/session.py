"""
Async engine and session handling.

The engine is built by the configured DatabaseAdapter. Request handlers get
a session from get_session(), which commits when the handler returns and
rolls back if it raises. Background work opens its own sessions from
async_session_maker.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from linkgate.core.setting import settings
from linkgate.db import models  # noqa: F401  registers every table on SQLModel.metadata
from linkgate.db.sqlite_adapter import get_database_adapter

# SQLite unless get_database_adapter() says otherwise
db_adapter = get_database_adapter()

engine = db_adapter.create_engine(
    settings.DATABASE_URL
)


def make_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """Build a session factory for ``bind`` configured for async use."""
    return async_sessionmaker(
        bind,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,  # Prevents SQLAlchemy from expiring objects after commit
        autocommit=False,
        autoflush=False,
    )


async_session_maker = make_session_maker(engine)


async def create_db_and_tables(bind: AsyncEngine = engine) -> None:
    """Create every table declared in linkgate.db.models if missing."""
    async with bind.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: commit on success, rollback on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
