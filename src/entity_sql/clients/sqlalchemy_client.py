"""
SQLAlchemy-backed clients.

Commands are sent with ``exec_driver_sql`` so the command text and the
positional parameter order produced by the preparator reach the DBAPI
driver unchanged. The dialect is chosen from ``engine.dialect.name``.

Usage::

    engine = create_engine("sqlite:///app.db")
    client = SQLAlchemyClient(engine)
    with client.transaction() as tx:
        client.non_query('DELETE FROM "company"', transaction=tx)

On engines that allow a single writer (SQLite), a transaction holds the
client's writer lock from begin until commit or rollback, and
non-transactional writes take the same lock. Reads never take it. A write
or a nested transaction started without ``transaction=`` by the caller
that already holds the lock raises :class:`TransactionError` instead of
waiting on itself.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import asynccontextmanager, contextmanager
from typing import TYPE_CHECKING, Any

from ..dialects import get_dialect
from ..exceptions import TransactionError
from .base import Rows

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

    from ..dialects.base import Dialect

logger = logging.getLogger(__name__)


class Transaction:
    """Handle passed as ``transaction=`` to run calls on the transaction's connection."""

    def __init__(self, connection: Any) -> None:
        self._connection = connection
        self.active = True

    @property
    def connection(self) -> Any:
        if not self.active:
            raise TransactionError("Transaction has already ended")
        return self._connection

    def _close(self) -> None:
        self.active = False


def _parameters(parameters: Sequence[Any]) -> tuple[Any, ...]:
    return tuple(parameters)


def _log(command: str, parameters: Sequence[Any]) -> None:
    logger.debug("Executing: %s | parameters=%r", command, tuple(parameters))


def _reentry_error() -> TransactionError:
    return TransactionError(
        "The writer lock is held by the caller's open transaction; "
        "pass transaction= to run on it"
    )


class SQLAlchemyClient:
    """:class:`~entity_sql.clients.base.DBClient` over a synchronous ``Engine``."""

    is_async = False

    def __init__(self, engine: Engine, dialect: Dialect | None = None) -> None:
        self.engine = engine
        self.dialect = dialect or get_dialect(engine.dialect.name)
        self._lock = threading.RLock()
        self._owner: int | None = None

    def _holds_lock(self) -> bool:
        return self._owner is not None and self._owner == threading.get_ident()

    @contextmanager
    def _writer(self) -> Iterator[None]:
        if not self.dialect.requires_writer_lock:
            yield
            return
        if self._holds_lock():
            raise _reentry_error()
        with self._lock:
            yield

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Open a transaction; commit on normal exit, roll back on exception.

        The writer lock is released on every exit path.

        Raises:
            TransactionError: If the calling thread already has a
                transaction open on a single-writer engine.
        """
        if self.dialect.requires_writer_lock and self._holds_lock():
            raise _reentry_error()
        connection: Connection = self.engine.connect()
        try:
            engine_transaction = self.dialect.begin_transaction(self._lock, connection.begin)
        except BaseException:
            connection.close()
            raise

        if self.dialect.requires_writer_lock:
            self._owner = threading.get_ident()
        transaction = Transaction(connection)
        try:
            yield transaction
            engine_transaction.commit()
        except BaseException:
            engine_transaction.rollback()
            raise
        finally:
            transaction._close()
            self._owner = None
            self.dialect.end_transaction(self._lock)
            connection.close()

    def non_query(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> int:
        _log(command, parameters)
        if transaction is not None:
            result = transaction.connection.exec_driver_sql(command, _parameters(parameters))
            return result.rowcount
        with self._writer(), self.engine.begin() as connection:
            return connection.exec_driver_sql(command, _parameters(parameters)).rowcount

    def query(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Rows:
        _log(command, parameters)
        if transaction is not None:
            result = transaction.connection.exec_driver_sql(command, _parameters(parameters))
            return [dict(row) for row in result.mappings()]
        with self.engine.connect() as connection:
            result = connection.exec_driver_sql(command, _parameters(parameters))
            return [dict(row) for row in result.mappings()]

    def scalar(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Any:
        _log(command, parameters)
        if transaction is not None:
            return transaction.connection.exec_driver_sql(
                command, _parameters(parameters)
            ).scalar()
        # RETURNING inserts also come through here; only PostgreSQL emits them
        with self.engine.begin() as connection:
            return connection.exec_driver_sql(command, _parameters(parameters)).scalar()

    def set(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Iterator[Any]:
        _log(command, parameters)
        if transaction is not None:
            result = transaction.connection.exec_driver_sql(command, _parameters(parameters))
            return (row[0] for row in result)
        return self._iterate(command, _parameters(parameters))

    def _iterate(self, command: str, parameters: tuple[Any, ...]) -> Iterator[Any]:
        with self.engine.connect() as connection:
            for row in connection.exec_driver_sql(command, parameters):
                yield row[0]


class AsyncSQLAlchemyClient:
    """:class:`~entity_sql.clients.base.AsyncDBClient` over an ``AsyncEngine``."""

    is_async = True

    def __init__(self, engine: AsyncEngine, dialect: Dialect | None = None) -> None:
        self.engine = engine
        self.dialect = dialect or get_dialect(engine.dialect.name)
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task[Any] | None = None

    def _holds_lock(self) -> bool:
        return self._owner is not None and self._owner is asyncio.current_task()

    @asynccontextmanager
    async def _writer(self) -> AsyncIterator[None]:
        if not self.dialect.requires_writer_lock:
            yield
            return
        # asyncio.Lock is not reentrant
        if self._holds_lock():
            raise _reentry_error()
        async with self._lock:
            yield

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Async twin of :meth:`SQLAlchemyClient.transaction`."""
        if self.dialect.requires_writer_lock and self._holds_lock():
            raise _reentry_error()
        connection: AsyncConnection = self.engine.connect()
        await connection.start()
        try:
            engine_transaction = await self.dialect.begin_transaction_async(
                self._lock, connection.begin
            )
        except BaseException:
            await connection.close()
            raise

        if self.dialect.requires_writer_lock:
            self._owner = asyncio.current_task()
        transaction = Transaction(connection)
        try:
            yield transaction
            await engine_transaction.commit()
        except BaseException:
            await engine_transaction.rollback()
            raise
        finally:
            transaction._close()
            self._owner = None
            await self.dialect.end_transaction_async(self._lock)
            await connection.close()

    async def non_query(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> int:
        _log(command, parameters)
        if transaction is not None:
            result = await transaction.connection.exec_driver_sql(
                command, _parameters(parameters)
            )
            return result.rowcount
        async with self._writer(), self.engine.begin() as connection:
            result = await connection.exec_driver_sql(command, _parameters(parameters))
            return result.rowcount

    async def query(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Rows:
        _log(command, parameters)
        if transaction is not None:
            result = await transaction.connection.exec_driver_sql(
                command, _parameters(parameters)
            )
            return [dict(row) for row in result.mappings()]
        async with self.engine.connect() as connection:
            result = await connection.exec_driver_sql(command, _parameters(parameters))
            return [dict(row) for row in result.mappings()]

    async def scalar(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Any:
        _log(command, parameters)
        if transaction is not None:
            result = await transaction.connection.exec_driver_sql(
                command, _parameters(parameters)
            )
            return result.scalar()
        async with self.engine.begin() as connection:
            result = await connection.exec_driver_sql(command, _parameters(parameters))
            return result.scalar()

    def set(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> AsyncIterator[Any]:
        _log(command, parameters)
        return self._iterate(command, _parameters(parameters), transaction)

    async def _iterate(
        self, command: str, parameters: tuple[Any, ...], transaction: Any
    ) -> AsyncIterator[Any]:
        if transaction is not None:
            result = await transaction.connection.exec_driver_sql(command, parameters)
            for row in result:
                yield row[0]
            return
        async with self.engine.connect() as connection:
            result = await connection.exec_driver_sql(command, parameters)
            for row in result:
                yield row[0]


__all__: list[str] = ["AsyncSQLAlchemyClient", "SQLAlchemyClient", "Transaction"]
