"""
Persistence layer: table models, the backend adapter and async sessions.

Importing this package registers every table on SQLModel.metadata, which
alembic and create_db_and_tables() rely on.
"""

from linkgate.db.interface import DatabaseAdapter
from linkgate.db.session import (
    async_session_maker,
    create_db_and_tables,
    db_adapter,
    engine,
    get_session,
    make_session_maker,
)

__all__ = [
    "DatabaseAdapter",
    "async_session_maker",
    "create_db_and_tables",
    "db_adapter",
    "engine",
    "get_session",
    "make_session_maker",
]
