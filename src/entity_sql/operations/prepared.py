"""
Prepared operations: finalized command text plus ordered parameters.

:class:`PreparedOperation` is immutable and may be shared and executed
concurrently. The typed wrappers pair it with a client and differ only in
how the result is interpreted.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..exceptions import ConfigurationError
from ..expressions.ast import Parameter

if TYPE_CHECKING:
    from ..clients.base import Rows
    from ..schema.descriptors import EntityDescriptor

T = TypeVar("T")
R = TypeVar("R")

RowMapper = Callable[[dict[str, Any]], R]


@dataclass(frozen=True)
class PreparedOperation:
    """
    Command text with placeholders already rendered and its parameters.

    ``parameters`` may contain :class:`~entity_sql.expressions.ast.Parameter`
    slots that are filled by :meth:`bind`.
    """

    command_text: str
    parameters: tuple[Any, ...] = ()

    def bind(
        self,
        *values: Any,
        converter: Callable[[Any], Any] | None = None,
        **named: Any,
    ) -> tuple[Any, ...]:
        """
        Produce the final parameter tuple.

        Positional ``values`` (when given) replace the whole parameter list;
        ``named`` values fill :class:`Parameter` slots.

        Raises:
            ConfigurationError: If a slot is left unfilled or the number of
                positional values does not match the placeholders.
        """
        convert = converter or (lambda v: v)
        if values:
            if len(values) != len(self.parameters):
                raise ConfigurationError(
                    f"Operation expects {len(self.parameters)} parameter(s), "
                    f"got {len(values)}"
                )
            return tuple(convert(v) for v in values)

        bound: list[Any] = []
        for value in self.parameters:
            if isinstance(value, Parameter):
                if value.name not in named:
                    raise ConfigurationError(f"No value supplied for parameter '{value.name}'")
                bound.append(convert(named[value.name]))
            else:
                bound.append(value)
        return tuple(bound)

    @property
    def parameter_names(self) -> list[str]:
        return [p.name for p in self.parameters if isinstance(p, Parameter)]

    def __str__(self) -> str:
        return self.command_text


class PreparedExecutable:
    """Base for the typed wrappers binding a :class:`PreparedOperation` to a client."""

    def __init__(self, client: Any, operation: PreparedOperation) -> None:
        self._client = client
        self._operation = operation

    @property
    def operation(self) -> PreparedOperation:
        return self._operation

    @property
    def command_text(self) -> str:
        return self._operation.command_text

    @property
    def parameters(self) -> tuple[Any, ...]:
        return self._operation.parameters

    def _bind(self, values: tuple[Any, ...], named: dict[str, Any]) -> tuple[Any, ...]:
        return self._operation.bind(
            *values, converter=self._client.dialect.to_db_value, **named
        )

    def _convert(self, value: Any, as_type: Any) -> Any:
        if as_type is None:
            return value
        return self._client.dialect.from_db_value(value, as_type)

    async def _convert_all(self, values: AsyncIterator[Any], as_type: Any) -> AsyncIterator[Any]:
        async for value in values:
            yield self._convert(value, as_type)

    def _sync_client(self) -> Any:
        if getattr(self._client, "is_async", False):
            raise ConfigurationError(
                "Operation is bound to an asynchronous client; use the *_async methods"
            )
        return self._client

    def _async_client(self) -> Any:
        if not getattr(self._client, "is_async", False):
            raise ConfigurationError(
                "Operation is bound to a synchronous client; use the sync methods"
            )
        return self._client

    def __str__(self) -> str:
        return self.command_text

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.command_text!r}, {self.parameters!r})"


class PreparedNonQuery(PreparedExecutable):
    """Operation returning the number of affected rows."""

    def execute(self, *values: Any, transaction: Any = None, **named: Any) -> int:
        return self._sync_client().non_query(
            self.command_text, self._bind(values, named), transaction=transaction
        )

    async def execute_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> int:
        return await self._async_client().non_query(
            self.command_text, self._bind(values, named), transaction=transaction
        )


class PreparedScalar(PreparedExecutable):
    """
    Operation returning the first column of the first row.

    With ``as_type`` the value is converted like a loaded column of that
    type, custom converters included.
    """

    def execute(
        self, *values: Any, transaction: Any = None, as_type: Any = None, **named: Any
    ) -> Any:
        value = self._sync_client().scalar(
            self.command_text, self._bind(values, named), transaction=transaction
        )
        return self._convert(value, as_type)

    async def execute_async(
        self, *values: Any, transaction: Any = None, as_type: Any = None, **named: Any
    ) -> Any:
        value = await self._async_client().scalar(
            self.command_text, self._bind(values, named), transaction=transaction
        )
        return self._convert(value, as_type)


class PreparedLoad(PreparedExecutable, Generic[T]):
    """
    Load operation. The same command can be interpreted as a full result
    set, a scalar, a lazy sequence of scalars, entities, or rows mapped by
    a caller-supplied function::

        names = prepared.execute_types(lambda row: row["name"].title())
        total = prepared.execute_scalar(as_type=Decimal)
    """

    def __init__(
        self,
        client: Any,
        operation: PreparedOperation,
        descriptor: EntityDescriptor | None = None,
    ) -> None:
        super().__init__(client, operation)
        self._descriptor = descriptor

    def execute(self, *values: Any, transaction: Any = None, **named: Any) -> Rows:
        return self._sync_client().query(
            self.command_text, self._bind(values, named), transaction=transaction
        )

    def execute_scalar(
        self, *values: Any, transaction: Any = None, as_type: Any = None, **named: Any
    ) -> Any:
        value = self._sync_client().scalar(
            self.command_text, self._bind(values, named), transaction=transaction
        )
        return self._convert(value, as_type)

    def execute_set(
        self, *values: Any, transaction: Any = None, as_type: Any = None, **named: Any
    ) -> Iterator[Any]:
        result = self._sync_client().set(
            self.command_text, self._bind(values, named), transaction=transaction
        )
        if as_type is None:
            return result
        return (self._convert(value, as_type) for value in result)

    def execute_entities(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> list[T]:
        rows = self.execute(*values, transaction=transaction, **named)
        return [self._materialize(row) for row in rows]

    def execute_types(
        self, mapper: RowMapper[R], *values: Any, transaction: Any = None, **named: Any
    ) -> list[R]:
        """Map every result row through ``mapper``."""
        return [mapper(row) for row in self.execute(*values, transaction=transaction, **named)]

    def execute_type(
        self, mapper: RowMapper[R], *values: Any, transaction: Any = None, **named: Any
    ) -> R | None:
        """Map the first result row through ``mapper``; ``None`` without rows."""
        rows = self.execute(*values, transaction=transaction, **named)
        return mapper(rows[0]) if rows else None

    async def execute_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> Rows:
        return await self._async_client().query(
            self.command_text, self._bind(values, named), transaction=transaction
        )

    async def execute_scalar_async(
        self, *values: Any, transaction: Any = None, as_type: Any = None, **named: Any
    ) -> Any:
        value = await self._async_client().scalar(
            self.command_text, self._bind(values, named), transaction=transaction
        )
        return self._convert(value, as_type)

    def execute_set_async(
        self, *values: Any, transaction: Any = None, as_type: Any = None, **named: Any
    ) -> AsyncIterator[Any]:
        result = self._async_client().set(
            self.command_text, self._bind(values, named), transaction=transaction
        )
        if as_type is None:
            return result
        return self._convert_all(result, as_type)

    async def execute_entities_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> list[T]:
        rows = await self.execute_async(*values, transaction=transaction, **named)
        return [self._materialize(row) for row in rows]

    async def execute_types_async(
        self, mapper: RowMapper[R], *values: Any, transaction: Any = None, **named: Any
    ) -> list[R]:
        rows = await self.execute_async(*values, transaction=transaction, **named)
        return [mapper(row) for row in rows]

    async def execute_type_async(
        self, mapper: RowMapper[R], *values: Any, transaction: Any = None, **named: Any
    ) -> R | None:
        rows = await self.execute_async(*values, transaction=transaction, **named)
        return mapper(rows[0]) if rows else None

    def _materialize(self, row: dict[str, Any]) -> T:
        from .entities import materialize

        if self._descriptor is None:
            raise ConfigurationError("Operation is not bound to an entity type")
        return materialize(self._descriptor, self._client.dialect, row)


class PreparedInsert(PreparedExecutable):
    """
    Insert operation. With ``id_operation`` (or a ``RETURNING`` clause) it
    returns the generated key, otherwise the affected-row count.
    """

    def __init__(
        self,
        client: Any,
        operation: PreparedOperation,
        *,
        return_id: bool = False,
        id_operation: PreparedOperation | None = None,
    ) -> None:
        super().__init__(client, operation)
        self._return_id = return_id
        self._id_operation = id_operation

    def execute(self, *values: Any, transaction: Any = None, **named: Any) -> int:
        client = self._sync_client()
        parameters = self._bind(values, named)
        if not self._return_id:
            return client.non_query(self.command_text, parameters, transaction=transaction)
        if self._id_operation is None:
            return client.scalar(self.command_text, parameters, transaction=transaction)
        if transaction is not None:
            return self._insert_then_read(client, parameters, transaction)
        with client.transaction() as scoped:
            return self._insert_then_read(client, parameters, scoped)

    def _insert_then_read(self, client: Any, parameters: tuple[Any, ...], transaction: Any) -> int:
        assert self._id_operation is not None
        client.non_query(self.command_text, parameters, transaction=transaction)
        return client.scalar(
            self._id_operation.command_text,
            self._id_operation.parameters,
            transaction=transaction,
        )

    async def execute_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> int:
        client = self._async_client()
        parameters = self._bind(values, named)
        if not self._return_id:
            return await client.non_query(
                self.command_text, parameters, transaction=transaction
            )
        if self._id_operation is None:
            return await client.scalar(self.command_text, parameters, transaction=transaction)
        if transaction is not None:
            return await self._insert_then_read_async(client, parameters, transaction)
        async with client.transaction() as scoped:
            return await self._insert_then_read_async(client, parameters, scoped)

    async def _insert_then_read_async(
        self, client: Any, parameters: tuple[Any, ...], transaction: Any
    ) -> int:
        assert self._id_operation is not None
        await client.non_query(self.command_text, parameters, transaction=transaction)
        return await client.scalar(
            self._id_operation.command_text,
            self._id_operation.parameters,
            transaction=transaction,
        )


__all__: list[str] = [
    "PreparedExecutable",
    "PreparedInsert",
    "PreparedLoad",
    "PreparedNonQuery",
    "PreparedOperation",
    "PreparedScalar",
    "RowMapper",
]
