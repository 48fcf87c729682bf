"""Connection collaborators."""

from __future__ import annotations

from .base import AsyncDBClient, DBClient, Rows
from .sqlalchemy_client import AsyncSQLAlchemyClient, SQLAlchemyClient, Transaction

__all__: list[str] = [
    "AsyncDBClient",
    "AsyncSQLAlchemyClient",
    "DBClient",
    "Rows",
    "SQLAlchemyClient",
    "Transaction",
]
