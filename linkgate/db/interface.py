"""
Database Abstraction Interface

Backends plug in behind DatabaseAdapter: it builds the async engine and owns
the dialect-specific statements the service needs beyond plain ORM access.
Expiring records (challenges, redirect sessions, IP flags) have no native
TTL in any supported backend, so the adapter also provides the bulk deletes
the purge loop runs.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.pool import Pool


class DatabaseAdapter(ABC):
    """
    Contract every database backend implements.

    A new backend needs its own subclass and an entry in
    get_database_adapter(); nothing else in the service changes.
    """

    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Build the async engine for ``database_url``.

        Keyword arguments override the adapter's own engine options.
        """
        options = self.get_engine_kwargs()
        options.update(kwargs)
        engine = self._build_engine(database_url, options)
        self.configure_connections(engine)
        return engine

    @abstractmethod
    def _build_engine(self, database_url: str, options: dict[str, Any]) -> AsyncEngine:
        pass

    @abstractmethod
    def get_pool_class(self) -> Optional[type[Pool]]:
        """Pool class for this backend, or None for SQLAlchemy's default."""
        pass

    @abstractmethod
    def get_engine_kwargs(self) -> dict[str, Any]:
        pass

    def configure_connections(self, engine: AsyncEngine) -> None:
        """Hook for per-connection setup such as session pragmas."""

    @abstractmethod
    async def delete_created_before(
        self,
        session: AsyncSession,
        model: type,
        cutoff: datetime
    ) -> int:
        """
        Delete rows of ``model`` created before ``cutoff``.

        Args:
            session: The database session; the caller commits
            model: Table class with a created_at column
            cutoff: Naive UTC timestamp

        Returns:
            Number of deleted rows
        """
        pass
