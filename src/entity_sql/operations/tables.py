"""
Builders over a table addressed by name, without a mapped entity type.

Example::

    manager.create_table("audit").column(
        "id", int, primary_key=True, auto_increment=True
    ).column("message", str, not_null=True).execute()

    insert = manager.insert_data("audit").columns("message").prepare()
    insert.execute("created")

    manager.update_data("audit").set(message="edited").where("id", "=", 1).execute()
"""

from __future__ import annotations

import logging
from typing import Any

from ..exceptions import ConfigurationError
from ..expressions.ast import Parameter
from ..schema.descriptors import (
    ColumnDescriptor,
    IndexDescriptor,
    TableDescriptor,
    UniqueDescriptor,
)
from ..schema.migration import MigrationPlan, run_plan, run_plan_async
from .load_data import TableCriteriaBuilder, require_names
from .preparator import OperationPreparator
from .prepared import PreparedNonQuery

logger = logging.getLogger(__name__)


def _append_value(preparator: OperationPreparator, value: Any) -> None:
    if isinstance(value, Parameter):
        preparator.append_parameter(value)
    else:
        preparator.append_parameter(preparator.dialect.to_db_value(value))


class InsertDataOperation:
    """
    Builder for ``INSERT INTO`` a table addressed by name.

    Columns without fixed values become named parameter slots, so the
    prepared insert can be executed repeatedly.
    """

    def __init__(self, client: Any, table: str) -> None:
        if not table or not isinstance(table, str):
            raise ConfigurationError("insert_data() requires a table name")
        self._client = client
        self._table = table
        self._columns: list[str] = []
        self._values: list[Any] = []

    def columns(self, *names: str) -> InsertDataOperation:
        self._columns = require_names(names, "columns()")
        return self

    def values(self, *values: Any) -> InsertDataOperation:
        """Fix the inserted values; one per column, :class:`Parameter` slots allowed."""
        if len(values) != len(self._columns):
            raise ConfigurationError(
                f"values() expects {len(self._columns)} value(s), got {len(values)}"
            )
        self._values = list(values)
        return self

    def prepare(self) -> PreparedNonQuery:
        if not self._columns:
            raise ConfigurationError("Insert requires at least one column")
        dialect = self._client.dialect
        preparator = OperationPreparator(dialect)
        preparator.append_text(f"INSERT INTO {dialect.quote(self._table)} (")
        preparator.append_list([dialect.quote(c) for c in self._columns])
        preparator.append_text(")", "VALUES (")
        values = self._values or [Parameter(c) for c in self._columns]
        for index, value in enumerate(values):
            if index:
                preparator.append_text(",")
            _append_value(preparator, value)
        preparator.append_text(")")
        return PreparedNonQuery(self._client, preparator.get_operation())

    def execute(self, *values: Any, transaction: Any = None, **named: Any) -> int:
        return self.prepare().execute(*values, transaction=transaction, **named)

    async def execute_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> int:
        return await self.prepare().execute_async(*values, transaction=transaction, **named)


class UpdateDataOperation(TableCriteriaBuilder):
    """Builder for ``UPDATE`` of a table addressed by name."""

    def __init__(self, client: Any, table: str) -> None:
        super().__init__(client, table, "update_data()")
        self._assignments: dict[str, Any] = {}

    def set(self, **values: Any) -> UpdateDataOperation:
        """Assign values by column name; :class:`Parameter` slots allowed."""
        self._assignments.update(values)
        return self

    def set_value(self, column: str, value: Any) -> UpdateDataOperation:
        """Assign a value to a column whose name is not a Python identifier."""
        require_names((column,), "set_value()")
        self._assignments[column] = value
        return self

    def prepare(self) -> PreparedNonQuery:
        if not self._assignments:
            raise ConfigurationError("Update requires at least one assignment")
        dialect = self._client.dialect
        preparator = OperationPreparator(dialect)
        preparator.append_text("UPDATE", dialect.quote(self._table), "SET")
        for index, (column, value) in enumerate(self._assignments.items()):
            if index:
                preparator.append_text(",")
            preparator.append_field(column).append_text("=")
            _append_value(preparator, value)
        self._append_criteria(preparator)
        return PreparedNonQuery(self._client, preparator.get_operation())

    def execute(self, *values: Any, transaction: Any = None, **named: Any) -> int:
        return self.prepare().execute(*values, transaction=transaction, **named)

    async def execute_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> int:
        return await self.prepare().execute_async(*values, transaction=transaction, **named)


class CreateTableOperation:
    """
    Builder for a table (and its indices) declared column by column.

    Column types are host types mapped through the dialect, exactly as for
    entity columns.
    """

    def __init__(self, client: Any, table: str) -> None:
        if not table or not isinstance(table, str):
            raise ConfigurationError("create_table() requires a table name")
        self._client = client
        self._table = table
        self._columns: list[ColumnDescriptor] = []
        self._uniques: list[UniqueDescriptor] = []
        self._indices: list[IndexDescriptor] = []

    def _known(self, names: tuple[str, ...], clause: str) -> tuple[str, ...]:
        existing = {c.name.lower() for c in self._columns}
        for name in require_names(names, clause):
            if name.lower() not in existing:
                raise ConfigurationError(f"{clause} references unknown column '{name}'")
        return names

    def column(
        self,
        name: str,
        python_type: Any,
        *,
        primary_key: bool = False,
        auto_increment: bool = False,
        not_null: bool = False,
        unique: bool = False,
        default: Any = None,
    ) -> CreateTableOperation:
        require_names((name,), "column()")
        if any(c.name.lower() == name.lower() for c in self._columns):
            raise ConfigurationError(f"Duplicate column '{name}' on '{self._table}'")
        if auto_increment and not primary_key:
            raise ConfigurationError(
                f"Column '{name}' is auto-increment but not the primary key"
            )
        if primary_key and any(c.primary_key for c in self._columns):
            raise ConfigurationError(f"'{self._table}' already has a primary key")
        self._columns.append(
            ColumnDescriptor(
                name=name,
                field_name=name,
                python_type=python_type,
                primary_key=primary_key,
                auto_increment=auto_increment,
                not_null=not_null,
                unique=unique,
                default=default,
            )
        )
        return self

    def unique(self, *columns: str) -> CreateTableOperation:
        """Declare a uniqueness group over two or more columns."""
        if len(columns) < 2:
            raise ConfigurationError(
                "unique() groups need two or more columns; use column(unique=True)"
            )
        self._uniques.append(UniqueDescriptor(self._known(columns, "unique()")))
        return self

    def index(self, name: str, *columns: str) -> CreateTableOperation:
        self._indices.append(IndexDescriptor(name, self._known(columns, "index()")))
        return self

    def plan(self) -> MigrationPlan:
        if not self._columns:
            raise ConfigurationError(f"'{self._table}' requires at least one column")
        dialect = self._client.dialect
        layout = TableDescriptor(
            name=self._table,
            columns=tuple(dialect.schema_column(c) for c in self._columns),
            uniques=tuple(self._uniques),
            indices=tuple(self._indices),
        )
        plan = MigrationPlan().add(
            dialect.create_table(layout),
            dialect.drop_table(self._table),
            f"create table {self._table}",
        )
        for index in self._indices:
            plan.add(
                dialect.create_index(self._table, index),
                dialect.drop_index(self._table, index.name),
                f"create index {index.name} on {self._table}",
            )
        return plan

    def execute(self, transaction: Any = None) -> None:
        run_plan(self._client, self.plan(), transaction)
        logger.info("Created table %s (%d columns)", self._table, len(self._columns))

    async def execute_async(self, transaction: Any = None) -> None:
        await run_plan_async(self._client, self.plan(), transaction)
        logger.info("Created table %s (%d columns)", self._table, len(self._columns))


__all__: list[str] = ["CreateTableOperation", "InsertDataOperation", "UpdateDataOperation"]
