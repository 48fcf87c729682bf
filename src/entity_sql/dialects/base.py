"""
Dialect abstraction.

A :class:`Dialect` captures everything engine-specific: identifier quoting,
placeholders, type mapping and value conversion, function rendering,
pagination, schema introspection, DDL generation, migration primitives and
transaction locking. Everything above this layer is engine-neutral.

Introspection is split into query producers and pure parsers so the sync
and async paths share all logic::

    rows = client.query(*dialect.object_query("company"))
    kind = dialect.parse_object_kind("company", rows)
    details = {k: client.query(*q) for k, q in dialect.detail_queries("company", kind).items()}
    schema = dialect.parse_schema("company", kind, rows, details)
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from ..converters import ConverterCollection, default_converters
from ..exceptions import ConfigurationError, UnsupportedTypeError
from ..operations.preparator import OperationPreparator
from ..operations.prepared import PreparedOperation
from ..schema.cache import unwrap_optional
from ..schema.descriptors import (
    ColumnDescriptor,
    EntityDescriptor,
    IndexDescriptor,
    SchemaColumnDescriptor,
    SchemaDescriptor,
    TableDescriptor,
)
from ..schema.migration import MigrationPlan

if TYPE_CHECKING:
    from ..clients.base import Rows
    from ..expressions.ast import ArithmeticOperator, Expression
    from ..expressions.compiler import ExpressionCompiler
    from ..expressions.functions import Function

logger = logging.getLogger(__name__)

Query = tuple[str, tuple[Any, ...]]

TICKS_PER_MICROSECOND = 10
TICKS_PER_SECOND = 10_000_000

REBUILD_SUFFIX = "__rebuild"

_ZERO_VALUES: dict[type[Any], Any] = {
    bool: False,
    int: 0,
    float: 0.0,
    str: "",
    bytes: b"",
    datetime: datetime(1, 1, 1),
    date: date(1, 1, 1),
    time: time(0),
    timedelta: timedelta(0),
    UUID: UUID(int=0),
    Decimal: Decimal(0),
}


def lookup_type(table: dict[type[Any], Any], python_type: Any) -> Any:
    """Find the entry for ``python_type`` walking its MRO; ``None`` if absent."""
    for klass in getattr(python_type, "__mro__", (python_type,)):
        if klass in table:
            return table[klass]
    return None


def timedelta_to_ticks(value: timedelta) -> int:
    return (
        (value.days * 86_400 + value.seconds) * TICKS_PER_SECOND
        + value.microseconds * TICKS_PER_MICROSECOND
    )


def ticks_to_timedelta(value: int) -> timedelta:
    return timedelta(microseconds=int(value) // TICKS_PER_MICROSECOND)


def index_name(table: str, name: str) -> str:
    """Database name of an entity index, ``idx_<table>_<name>``."""
    return f"idx_{table}_{name}"


class Dialect(ABC):
    """Engine-specific SQL generation and introspection."""

    name: str = ""
    identifier_quote = '"'
    like_term = "LIKE"
    auto_increment = ""
    requires_writer_lock = False

    #: declared host type -> database column type
    type_names: dict[type[Any], str] = {}
    #: declared host type -> host type stored in the database
    representations: dict[type[Any], type[Any]] = {}

    def __init__(self, converters: ConverterCollection | None = None) -> None:
        self.converters = converters if converters is not None else default_converters

    # -- identifiers / parameters ---------------------------------------------

    @property
    def escape_character(self) -> str:
        return self.identifier_quote

    def quote(self, identifier: str) -> str:
        q = self.identifier_quote
        return f"{q}{identifier.replace(q, q + q)}{q}"

    @abstractmethod
    def placeholder(self, index: int) -> str:
        """Placeholder text for the ``index``-th (1-based) parameter."""
        ...

    def arithmetic_operator(self, operator: ArithmeticOperator) -> str:
        return operator.value

    # -- types -----------------------------------------------------------------

    def _enum_value_type(self, enum_type: type[Enum]) -> type[Any]:
        members = list(enum_type)
        return type(members[0].value) if members else int

    def map_type(self, python_type: Any) -> str:
        """Database column type for a declared host type."""
        python_type = unwrap_optional(python_type)
        converter = self.converters.get(python_type)
        if converter is not None:
            return self.map_type(converter.db_type)
        if isinstance(python_type, type) and issubclass(python_type, Enum):
            return self.map_type(self._enum_value_type(python_type))
        db_type = lookup_type(self.type_names, python_type)
        if db_type is None:
            raise UnsupportedTypeError(python_type, self.name)
        return db_type

    def representation_type(self, python_type: Any) -> type[Any]:
        """Host type used to store values of ``python_type``."""
        python_type = unwrap_optional(python_type)
        converter = self.converters.get(python_type)
        if converter is not None:
            return self.representation_type(converter.db_type)
        if isinstance(python_type, type) and issubclass(python_type, Enum):
            return self.representation_type(self._enum_value_type(python_type))
        if lookup_type(self.type_names, python_type) is None:
            raise UnsupportedTypeError(python_type, self.name)
        return lookup_type(self.representations, python_type) or python_type

    def to_db_value(self, value: Any) -> Any:
        """Convert a host value into the value passed to the driver."""
        if value is None:
            return None
        converter = self.converters.get(type(value))
        if converter is not None:
            return self.to_db_value(converter.to_db(value))
        if isinstance(value, Enum):
            value = value.value
        target = lookup_type(self.representations, type(value))
        if target is None:
            return value
        if isinstance(value, timedelta):
            return timedelta_to_ticks(value)
        if isinstance(value, UUID):
            return value.bytes if target is bytes else str(value)
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, date | time):
            return value.isoformat()
        return str(value) if target is str else target(value)

    def from_db_value(self, value: Any, python_type: Any) -> Any:
        """Convert a driver value back into ``python_type``."""
        if value is None:
            return None
        python_type = unwrap_optional(python_type)
        converter = self.converters.get(python_type)
        if converter is not None:
            return converter.from_db(self.from_db_value(value, converter.db_type))
        if not isinstance(python_type, type) or isinstance(value, python_type):
            return value
        if issubclass(python_type, Enum):
            return python_type(self.from_db_value(value, self._enum_value_type(python_type)))
        if python_type is bool:
            return bool(value)
        if python_type is timedelta:
            return ticks_to_timedelta(value)
        if python_type is UUID:
            if isinstance(value, bytes | memoryview):
                return UUID(bytes=bytes(value))
            return UUID(str(value))
        if python_type is datetime:
            return datetime.fromisoformat(str(value))
        if python_type is date:
            if isinstance(value, datetime):
                return value.date()
            return date.fromisoformat(str(value))
        if python_type is time:
            return time.fromisoformat(str(value))
        if python_type is Decimal:
            return Decimal(str(value))
        if python_type is bytes:
            return bytes(value)
        if python_type in (int, float, str):
            return python_type(value)
        return value

    def zero_value(self, python_type: Any) -> Any:
        """Zero value used for NOT NULL columns added without a default."""
        python_type = unwrap_optional(python_type)
        converter = self.converters.get(python_type)
        if converter is not None:
            return converter.from_db(self.zero_value(converter.db_type))
        if isinstance(python_type, type) and issubclass(python_type, Enum):
            return next(iter(python_type))
        zero = lookup_type(_ZERO_VALUES, python_type)
        if zero is None:
            raise UnsupportedTypeError(python_type, self.name)
        return zero

    def render_literal(self, value: Any) -> str:
        """
        Render a value inline, for DDL ``DEFAULT`` clauses.

        Raises:
            ConfigurationError: For non-finite floats, which have no literal form.
        """
        value = self.to_db_value(value)
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return self.render_bool(value)
        if isinstance(value, float) and not math.isfinite(value):
            raise ConfigurationError(f"Cannot render non-finite float {value!r} as a literal")
        if isinstance(value, int | float):
            return repr(value)
        if isinstance(value, bytes):
            return self.render_bytes(value)
        text = str(value).replace("'", "''")
        return f"'{text}'"

    def render_bool(self, value: bool) -> str:
        return "1" if value else "0"

    def render_bytes(self, value: bytes) -> str:
        return f"X'{value.hex().upper()}'"

    # -- expression leaves ----------------------------------------------------

    @abstractmethod
    def render_function(self, function: Function, compiler: ExpressionCompiler) -> None:
        """
        Append a database function call.

        Raises:
            UnsupportedFunctionError: If the function has no rendering.
        """
        ...

    def _call(self, compiler: ExpressionCompiler, name: str, *arguments: Expression) -> None:
        compiler.preparator.append_text(f"{name}(")
        for index, argument in enumerate(arguments):
            if index:
                compiler.preparator.append_text(",")
            compiler.visit(argument)
        compiler.preparator.append_text(")")

    def render_upper(self, compiler: ExpressionCompiler, operand: Expression) -> None:
        self._call(compiler, "upper", operand)

    def render_lower(self, compiler: ExpressionCompiler, operand: Expression) -> None:
        self._call(compiler, "lower", operand)

    def render_replace(
        self,
        compiler: ExpressionCompiler,
        operand: Expression,
        old: Expression,
        new: Expression,
    ) -> None:
        self._call(compiler, "replace", operand, old, new)

    @abstractmethod
    def render_pagination(
        self, preparator: OperationPreparator, limit: int | None, offset: int | None
    ) -> None:
        """Append the limit/offset clause."""
        ...

    # -- introspection --------------------------------------------------------

    @abstractmethod
    def table_exists_query(self, name: str) -> Query: ...

    @abstractmethod
    def object_query(self, name: str) -> Query:
        """Query returning the row(s) describing the table or view ``name``."""
        ...

    @abstractmethod
    def parse_object_kind(self, name: str, rows: Rows) -> str:
        """
        Return ``"table"`` or ``"view"``.

        Raises:
            TypeNotFoundError: If ``rows`` is empty.
            SchemaMismatchError: If the object is neither table nor view.
        """
        ...

    @abstractmethod
    def detail_queries(self, name: str, kind: str) -> dict[str, Query]:
        """Further queries needed to describe an object of ``kind``."""
        ...

    @abstractmethod
    def parse_schema(
        self, name: str, kind: str, rows: Rows, details: dict[str, Rows]
    ) -> SchemaDescriptor: ...

    def table_exists(self, client: Any, name: str, transaction: Any = None) -> bool:
        return bool(client.query(*self.table_exists_query(name), transaction=transaction))

    async def table_exists_async(
        self, client: Any, name: str, transaction: Any = None
    ) -> bool:
        return bool(
            await client.query(*self.table_exists_query(name), transaction=transaction)
        )

    def read_schema(self, client: Any, name: str, transaction: Any = None) -> SchemaDescriptor:
        rows = client.query(*self.object_query(name), transaction=transaction)
        kind = self.parse_object_kind(name, rows)
        details = {
            key: client.query(sql, params, transaction=transaction)
            for key, (sql, params) in self.detail_queries(name, kind).items()
        }
        return self.parse_schema(name, kind, rows, details)

    async def read_schema_async(
        self, client: Any, name: str, transaction: Any = None
    ) -> SchemaDescriptor:
        rows = await client.query(*self.object_query(name), transaction=transaction)
        kind = self.parse_object_kind(name, rows)
        details = {}
        for key, (sql, params) in self.detail_queries(name, kind).items():
            details[key] = await client.query(sql, params, transaction=transaction)
        return self.parse_schema(name, kind, rows, details)

    # -- DDL -------------------------------------------------------------------

    def schema_column(
        self, column: ColumnDescriptor, *, adding: bool = False
    ) -> SchemaColumnDescriptor:
        """
        Desired database form of an entity column.

        With ``adding`` set, a NOT NULL column without a default gets the
        zero value of its type so existing rows stay valid.
        """
        default = column.default
        if adding and column.not_null and default is None and not column.primary_key:
            default = self.zero_value(column.python_type)
        return SchemaColumnDescriptor(
            name=column.name,
            type=self.map_type(column.python_type),
            primary_key=column.primary_key,
            auto_increment=column.auto_increment,
            not_null=column.not_null,
            unique=column.unique,
            default=None if default is None else self.render_literal(default),
        )

    def table_layout(self, descriptor: EntityDescriptor) -> TableDescriptor:
        """Desired table for an entity, expressed as an introspection result."""
        return TableDescriptor(
            name=descriptor.table_name,
            columns=tuple(self.schema_column(c) for c in descriptor.columns),
            uniques=descriptor.uniques,
            indices=descriptor.indices,
        )

    def create_column(self, column: SchemaColumnDescriptor) -> str:
        parts = [self.quote(column.name), column.type]
        if column.primary_key:
            parts.append("PRIMARY KEY")
        if column.auto_increment and self.auto_increment:
            parts.append(self.auto_increment)
        if column.unique:
            parts.append("UNIQUE")
        if column.not_null:
            parts.append("NOT NULL")
        if column.default is not None:
            parts.append(f"DEFAULT {column.default}")
        return " ".join(parts)

    def create_table(self, table: TableDescriptor, name: str | None = None) -> PreparedOperation:
        """``CREATE TABLE`` for ``table`` (optionally under another ``name``)."""
        preparator = OperationPreparator(self)
        preparator.append_text(f"CREATE TABLE {self.quote(name or table.name)} (")
        preparator.append_list([self.create_column(c) for c in table.columns])
        for unique in table.uniques:
            preparator.append_text(",", "UNIQUE(")
            preparator.append_list([self.quote(c) for c in unique.columns])
            preparator.append_text(")")
        preparator.append_text(")")
        return preparator.get_operation()

    def create_index(self, table: str, index: IndexDescriptor) -> PreparedOperation:
        preparator = OperationPreparator(self)
        preparator.append_text(
            f"CREATE INDEX {self.quote(index_name(table, index.name))} ON {self.quote(table)} ("
        )
        preparator.append_list([self.quote(c) for c in index.columns])
        preparator.append_text(")")
        return preparator.get_operation()

    def drop_index(self, table: str, name: str) -> PreparedOperation:
        return PreparedOperation(f"DROP INDEX IF EXISTS {self.quote(index_name(table, name))}")

    def drop_table(self, name: str) -> PreparedOperation:
        return PreparedOperation(f"DROP TABLE IF EXISTS {self.quote(name)}")

    def drop_view(self, name: str) -> PreparedOperation:
        return PreparedOperation(f"DROP VIEW IF EXISTS {self.quote(name)}")

    def rename_table(self, name: str, new_name: str) -> PreparedOperation:
        return PreparedOperation(
            f"ALTER TABLE {self.quote(name)} RENAME TO {self.quote(new_name)}"
        )

    @abstractmethod
    def truncate(
        self, descriptor: EntityDescriptor, reset_identity: bool = False
    ) -> list[PreparedOperation]:
        """Operations removing all rows, optionally resetting the identity."""
        ...

    @abstractmethod
    def insert_id(
        self, preparator: OperationPreparator, descriptor: EntityDescriptor
    ) -> PreparedOperation | None:
        """
        Arrange for an insert to report the generated key.

        Either extends ``preparator`` so the insert itself returns the key
        (returns ``None``) or returns a follow-up operation reading it in
        the same transaction.
        """
        ...

    # -- migration primitives -------------------------------------------------

    def add_column(self, table: TableDescriptor, column: ColumnDescriptor) -> MigrationPlan:
        definition = self.schema_column(column, adding=True)
        return MigrationPlan().add(
            f"ALTER TABLE {self.quote(table.name)} ADD COLUMN {self.create_column(definition)}",
            f"ALTER TABLE {self.quote(table.name)} DROP COLUMN {self.quote(column.name)}",
            f"add column {table.name}.{column.name}",
        )

    def remove_column(self, table: TableDescriptor, column: str) -> MigrationPlan:
        return MigrationPlan().add(
            f"ALTER TABLE {self.quote(table.name)} DROP COLUMN {self.quote(column)}",
            description=f"drop column {table.name}.{column}",
        )

    def alter_column(self, table: TableDescriptor, column: ColumnDescriptor) -> MigrationPlan:
        """
        Change a column definition by removing and re-adding it.

        Data held in the column is discarded.
        """
        plan = self.remove_column(table, column.name)
        return plan.extend(self.add_column(table.without_column(column.name), column))

    def rebuild_table(self, live: TableDescriptor, target: TableDescriptor) -> MigrationPlan:
        """
        Recreate ``live`` with the layout of ``target``.

        Rows are copied over the intersection of column names. Steps:
        stage the new table, copy, drop the original, rename the staging
        table. A failure before the drop leaves the original untouched;
        the staging table is removed by compensation.
        """
        staging = f"{live.name}{REBUILD_SUFFIX}"
        kept = [
            c.name for c in target.columns if live.find_column(c.name) is not None
        ]
        columns = ", ".join(self.quote(c) for c in kept)
        logger.debug(
            "Planning rebuild of %s (%d of %d columns kept)",
            live.name,
            len(kept),
            len(live.columns),
        )

        plan = MigrationPlan()
        plan.add(self.drop_table(staging), description=f"clear staging table {staging}")
        plan.add(
            self.create_table(target, name=staging),
            self.drop_table(staging),
            f"stage rebuilt table {staging}",
        )
        if kept:
            plan.add(
                f"INSERT INTO {self.quote(staging)} ({columns}) "
                f"SELECT {columns} FROM {self.quote(live.name)}",
                description=f"copy rows {live.name} -> {staging}",
            )
        plan.add(self.drop_table(live.name), description=f"drop original {live.name}")
        plan.add(
            self.rename_table(staging, live.name),
            description=f"rename {staging} -> {live.name}",
        )
        return plan

    # -- transactions ----------------------------------------------------------

    def begin_transaction(self, lock: Any, begin: Callable[[], Any]) -> Any:
        """Acquire the writer lock (when needed) and start the engine transaction."""
        if self.requires_writer_lock:
            lock.acquire()
        try:
            return begin()
        except BaseException:
            self.end_transaction(lock)
            raise

    def end_transaction(self, lock: Any) -> None:
        if self.requires_writer_lock:
            lock.release()

    async def begin_transaction_async(
        self, lock: Any, begin: Callable[[], Awaitable[Any]]
    ) -> Any:
        if self.requires_writer_lock:
            await lock.acquire()
        try:
            return await begin()
        except BaseException:
            await self.end_transaction_async(lock)
            raise

    async def end_transaction_async(self, lock: Any) -> None:
        if self.requires_writer_lock:
            lock.release()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


__all__: list[str] = [
    "Dialect",
    "Query",
    "REBUILD_SUFFIX",
    "index_name",
    "lookup_type",
    "ticks_to_timedelta",
    "timedelta_to_ticks",
]
