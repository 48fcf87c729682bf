"""Protocols for the connection collaborator used by operations and schema code."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import AbstractAsyncContextManager, AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..dialects.base import Dialect

Rows = list[dict[str, Any]]


@runtime_checkable
class DBClient(Protocol):
    """
    Synchronous database access.

    Every call accepts ``transaction=`` to run inside a transaction opened
    with :meth:`transaction`; without it, the call runs on its own
    connection and commits immediately.
    """

    dialect: Dialect
    is_async: bool

    def non_query(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> int:
        """Execute a command and return the number of affected rows."""
        ...

    def query(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Rows:
        """Execute a query and return all rows as column-name mappings."""
        ...

    def scalar(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Any:
        """First column of the first row, or ``None``."""
        ...

    def set(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Iterator[Any]:
        """Lazily iterate the first column of every row."""
        ...

    def transaction(self) -> AbstractContextManager[Any]:
        """Open a transaction holding the writer lock until it ends."""
        ...


@runtime_checkable
class AsyncDBClient(Protocol):
    """Asynchronous counterpart of :class:`DBClient`."""

    dialect: Dialect
    is_async: bool

    async def non_query(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> int: ...

    async def query(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Rows: ...

    async def scalar(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> Any: ...

    def set(
        self, command: str, parameters: Sequence[Any] = (), transaction: Any = None
    ) -> AsyncIterator[Any]: ...

    def transaction(self) -> AbstractAsyncContextManager[Any]: ...


__all__: list[str] = ["AsyncDBClient", "DBClient", "Rows"]
