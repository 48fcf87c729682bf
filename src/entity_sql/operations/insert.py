"""
Insert builder.

Columns without explicit values become named parameter slots (named after
the column) filled at execution time, so one prepared insert can be
executed repeatedly::

    insert = manager.insert(Company).columns("name", "employees").prepare()
    insert.execute("acme", 12)
    insert.execute(name="globex", employees=40)
"""

from __future__ import annotations

from typing import Any

from ..exceptions import ConfigurationError
from ..expressions.ast import Expression, Parameter, as_expression
from .builder import DescriptorLookup, OperationBuilder
from .prepared import PreparedInsert


class InsertValuesOperation(OperationBuilder):
    """Builder for ``INSERT INTO ... VALUES``."""

    def __init__(
        self, client: Any, descriptors: DescriptorLookup, entity_type: type[Any]
    ) -> None:
        super().__init__(client, descriptors, entity_type)
        self._columns: list[str] = []
        self._values: list[Any] = []
        self._return_id = False

    def columns(self, *fields: Any) -> InsertValuesOperation:
        if not fields:
            raise ConfigurationError("columns() requires at least one field")
        descriptor = self.descriptor
        for field in fields:
            name = field if isinstance(field, str) else getattr(field, "name", None)
            if name is None:
                raise ConfigurationError(
                    f"columns() expects field names or fields, got {type(field).__name__}"
                )
            self._columns.append(descriptor.get_column(name).name)
        return self

    def values(self, *values: Any) -> InsertValuesOperation:
        """Fix the inserted values; one per column, expressions or plain values."""
        if len(values) != len(self._columns):
            raise ConfigurationError(
                f"values() expects {len(self._columns)} value(s), got {len(values)}"
            )
        self._values = list(values)
        return self

    def return_id(self) -> InsertValuesOperation:
        if self.descriptor.primary_key is None:
            raise ConfigurationError(
                f"'{self._entity_type.__name__}' has no primary key to return"
            )
        self._return_id = True
        return self

    def prepare(self) -> PreparedInsert:
        if not self._columns:
            raise ConfigurationError("Insert requires at least one column")

        preparator = self._new_preparator()
        dialect = preparator.dialect
        compiler = self._compiler(preparator)

        preparator.append_text(f"INSERT INTO {dialect.quote(self.descriptor.table_name)} (")
        preparator.append_list([dialect.quote(c) for c in self._columns])
        preparator.append_text(")", "VALUES (")
        values = self._values or [Parameter(c) for c in self._columns]
        for index, value in enumerate(values):
            if index:
                preparator.append_text(",")
            node: Expression = as_expression(value)
            compiler.visit(node)
        preparator.append_text(")")

        id_operation = None
        if self._return_id:
            id_operation = dialect.insert_id(preparator, self.descriptor)
        return PreparedInsert(
            self._client,
            preparator.get_operation(),
            return_id=self._return_id,
            id_operation=id_operation,
        )

    def execute(self, *values: Any, transaction: Any = None, **named: Any) -> int:
        return self.prepare().execute(*values, transaction=transaction, **named)

    async def execute_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> int:
        return await self.prepare().execute_async(*values, transaction=transaction, **named)


__all__: list[str] = ["InsertValuesOperation"]
