"""Update builder."""

from __future__ import annotations

from typing import Any

from ..exceptions import ConfigurationError
from ..expressions.ast import Expression, as_expression
from .builder import DescriptorLookup, OperationBuilder
from .prepared import PreparedNonQuery


class UpdateValuesOperation(OperationBuilder):
    """
    Builder for ``UPDATE ... SET ... WHERE``.

    Example::

        company = fields(Company)
        manager.update(Company).set(name="acme").set_expression(
            "employees", company.employees + 1
        ).where(company.id == 7).execute()
    """

    def __init__(
        self, client: Any, descriptors: DescriptorLookup, entity_type: type[Any]
    ) -> None:
        super().__init__(client, descriptors, entity_type)
        self._assignments: dict[str, Expression] = {}
        self._criteria: Expression | None = None

    def set(self, **values: Any) -> UpdateValuesOperation:
        """Assign plain values (or expressions) by field name."""
        for name, value in values.items():
            self._assign(name, as_expression(value))
        return self

    def set_expression(self, field: Any, expression: Any) -> UpdateValuesOperation:
        name = field if isinstance(field, str) else getattr(field, "name", None)
        if name is None:
            raise ConfigurationError(
                f"set_expression() expects a field name or field, got {type(field).__name__}"
            )
        self._assign(name, as_expression(expression))
        return self

    def _assign(self, name: str, value: Expression) -> None:
        self._assignments[self.descriptor.get_column(name).name] = value

    def where(self, criteria: Expression) -> UpdateValuesOperation:
        criteria = self._require_expression(criteria, "where()")
        self._criteria = criteria if self._criteria is None else self._criteria & criteria
        return self

    def prepare(self) -> PreparedNonQuery:
        if not self._assignments:
            raise ConfigurationError("Update requires at least one assignment")

        preparator = self._new_preparator()
        dialect = preparator.dialect
        compiler = self._compiler(preparator)

        preparator.append_text("UPDATE", dialect.quote(self.descriptor.table_name), "SET")
        for index, (column, value) in enumerate(self._assignments.items()):
            if index:
                preparator.append_text(",")
            preparator.append_field(column).append_text("=")
            compiler.visit(value)

        if self._criteria is not None:
            preparator.append_text("WHERE")
            compiler.visit(self._criteria)
        return PreparedNonQuery(self._client, preparator.get_operation())

    def execute(self, *values: Any, transaction: Any = None, **named: Any) -> int:
        return self.prepare().execute(*values, transaction=transaction, **named)

    async def execute_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> int:
        return await self.prepare().execute_async(*values, transaction=transaction, **named)


__all__: list[str] = ["UpdateValuesOperation"]
