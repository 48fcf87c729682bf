"""Delete builder."""

from __future__ import annotations

from typing import Any

from ..expressions.ast import Expression
from .builder import DescriptorLookup, OperationBuilder
from .prepared import PreparedNonQuery


class DeleteOperation(OperationBuilder):
    """Builder for ``DELETE FROM ... [WHERE ...]``."""

    def __init__(
        self, client: Any, descriptors: DescriptorLookup, entity_type: type[Any]
    ) -> None:
        super().__init__(client, descriptors, entity_type)
        self._criteria: Expression | None = None

    def where(self, criteria: Expression) -> DeleteOperation:
        criteria = self._require_expression(criteria, "where()")
        self._criteria = criteria if self._criteria is None else self._criteria & criteria
        return self

    def prepare(self) -> PreparedNonQuery:
        preparator = self._new_preparator()
        preparator.append_text("DELETE FROM", preparator.dialect.quote(self.descriptor.table_name))
        if self._criteria is not None:
            preparator.append_text("WHERE")
            self._compiler(preparator).visit(self._criteria)
        return PreparedNonQuery(self._client, preparator.get_operation())

    def execute(self, *values: Any, transaction: Any = None, **named: Any) -> int:
        return self.prepare().execute(*values, transaction=transaction, **named)

    async def execute_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> int:
        return await self.prepare().execute_async(*values, transaction=transaction, **named)


__all__: list[str] = ["DeleteOperation"]
