"""
Entity load builder.

Example::

    company = fields(Company)
    operation = (
        manager.load(Company, company.id, company.name)
        .where(company.employees > Parameter("min"))
        .order_by(desc(company.employees))
        .limit(10)
    )
    rows = operation.execute(min=50)

A ``LoadOperation`` can also be used as the value list of ``in_()``; it is
then compiled inline as a sub-select sharing the outer parameter list.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..exceptions import ConfigurationError
from ..expressions.ast import Expression, Field
from ..expressions.compiler import AliasContext
from .builder import DescriptorLookup, OperationBuilder
from .criteria import JoinOperation, JoinType, OrderBy, as_field
from .preparator import OperationPreparator
from .prepared import PreparedLoad, PreparedScalar

if TYPE_CHECKING:
    from ..clients.base import Rows
    from .prepared import RowMapper

T = TypeVar("T")
R = TypeVar("R")


def _count(value: Any, clause: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(f"{clause} requires a non-negative integer, got {value!r}")
    return value


class LoadOperation(OperationBuilder, Generic[T]):
    """Builder for ``SELECT`` statements against an entity table."""

    def __init__(
        self,
        client: Any,
        descriptors: DescriptorLookup,
        entity_type: type[T],
        *fields: Any,
    ) -> None:
        super().__init__(client, descriptors, entity_type)
        self._fields: list[Expression] = [as_field(f, entity_type) for f in fields]
        self._criteria: Expression | None = None
        self._having: Expression | None = None
        self._order: list[OrderBy] = []
        self._group: list[Expression] = []
        self._joins: list[JoinOperation] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._distinct = False

    # -- configuration --------------------------------------------------------

    def where(self, criteria: Expression) -> LoadOperation[T]:
        """Add a filter; repeated calls are combined with AND."""
        criteria = self._require_expression(criteria, "where()")
        self._criteria = criteria if self._criteria is None else self._criteria & criteria
        return self

    def having(self, criteria: Expression) -> LoadOperation[T]:
        criteria = self._require_expression(criteria, "having()")
        self._having = criteria if self._having is None else self._having & criteria
        return self

    def order_by(self, *orderings: Any) -> LoadOperation[T]:
        """Order by fields (ascending) or :class:`OrderBy` values from ``asc``/``desc``."""
        if not orderings:
            raise ConfigurationError("order_by() requires at least one field")
        for ordering in orderings:
            if not isinstance(ordering, OrderBy):
                ordering = OrderBy(as_field(ordering, self._entity_type))
            self._order.append(ordering)
        return self

    def group_by(self, *fields: Any) -> LoadOperation[T]:
        if not fields:
            raise ConfigurationError("group_by() requires at least one field")
        self._group.extend(as_field(f, self._entity_type) for f in fields)
        return self

    def limit(self, count: int) -> LoadOperation[T]:
        self._limit = _count(count, "limit()")
        return self

    def offset(self, count: int) -> LoadOperation[T]:
        self._offset = _count(count, "offset()")
        return self

    def distinct(self) -> LoadOperation[T]:
        self._distinct = True
        return self

    def join(
        self,
        entity_type: type[Any],
        criteria: Expression,
        join_type: JoinType | str = JoinType.INNER,
    ) -> LoadOperation[T]:
        """
        Join another entity. Its fields are qualified with the generated
        alias ``j<n>``; fields of the root entity with the table name.

        Raises:
            ConfigurationError: If ``entity_type`` is already joined; its
                fields could not tell the two joins apart.
        """
        criteria = self._require_expression(criteria, "join()")
        if entity_type is not self._entity_type and any(
            j.entity_type is entity_type for j in self._joins
        ):
            raise ConfigurationError(f"'{entity_type.__name__}' is already joined")
        try:
            join_type = JoinType(join_type.upper() if isinstance(join_type, str) else join_type)
        except ValueError:
            raise ConfigurationError(f"Unsupported join type '{join_type}'") from None
        self._joins.append(
            JoinOperation(entity_type, criteria, f"j{len(self._joins) + 1}", join_type)
        )
        return self

    @property
    def joins(self) -> tuple[JoinOperation, ...]:
        return tuple(self._joins)

    # -- compilation ------------------------------------------------------------

    def _aliases(self) -> AliasContext:
        return AliasContext(
            root=self._entity_type,
            aliases={
                j.entity_type: j.alias
                for j in self._joins
                if j.entity_type is not self._entity_type
            },
            qualify=bool(self._joins),
        )

    def _selected(self) -> list[Expression]:
        if self._fields:
            return self._fields
        return [Field(c.name, self._entity_type) for c in self.descriptor.columns]

    def build(self, preparator: OperationPreparator) -> OperationPreparator:
        """Append this ``SELECT`` to ``preparator``."""
        if self._having is not None and not self._group:
            raise ConfigurationError("having() requires group_by()")

        dialect = preparator.dialect
        compiler = self._compiler(preparator, self._aliases())

        preparator.append_text("SELECT DISTINCT" if self._distinct else "SELECT")
        for index, selected in enumerate(self._selected()):
            if index:
                preparator.append_text(",")
            compiler.visit(selected)

        preparator.append_text("FROM", dialect.quote(self.descriptor.table_name))
        for join in self._joins:
            table = self._descriptors(join.entity_type).table_name
            preparator.append_text(
                f"{join.join_type.value} JOIN", dialect.quote(table), "AS", join.alias, "ON"
            )
            compiler.visit(join.criteria)

        if self._criteria is not None:
            preparator.append_text("WHERE")
            compiler.visit(self._criteria)

        if self._group:
            preparator.append_text("GROUP BY")
            for index, grouped in enumerate(self._group):
                if index:
                    preparator.append_text(",")
                compiler.visit(grouped)

        if self._having is not None:
            preparator.append_text("HAVING")
            compiler.visit(self._having)

        if self._order:
            preparator.append_text("ORDER BY")
            for index, ordering in enumerate(self._order):
                if index:
                    preparator.append_text(",")
                compiler.visit(ordering.field)
                preparator.append_text("ASC" if ordering.ascending else "DESC")

        dialect.render_pagination(preparator, self._limit, self._offset)
        return preparator

    def prepare(self) -> PreparedLoad[T]:
        operation = self.build(self._new_preparator()).get_operation()
        return PreparedLoad(self._client, operation, self.descriptor)

    def prepare_scalar(self) -> PreparedScalar:
        """Prepared form returning the first column of the first row, e.g. for counts."""
        return PreparedScalar(self._client, self.build(self._new_preparator()).get_operation())

    # -- execution ----------------------------------------------------------------

    def execute(self, *values: Any, transaction: Any = None, **named: Any) -> Rows:
        return self.prepare().execute(*values, transaction=transaction, **named)

    def execute_scalar(self, *values: Any, transaction: Any = None, **named: Any) -> Any:
        return self.prepare().execute_scalar(*values, transaction=transaction, **named)

    def execute_set(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> Iterator[Any]:
        return self.prepare().execute_set(*values, transaction=transaction, **named)

    def execute_entities(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> list[T]:
        return self.prepare().execute_entities(*values, transaction=transaction, **named)

    def execute_types(
        self, mapper: RowMapper[R], *values: Any, transaction: Any = None, **named: Any
    ) -> list[R]:
        return self.prepare().execute_types(mapper, *values, transaction=transaction, **named)

    def execute_type(
        self, mapper: RowMapper[R], *values: Any, transaction: Any = None, **named: Any
    ) -> R | None:
        return self.prepare().execute_type(mapper, *values, transaction=transaction, **named)

    async def execute_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> Rows:
        return await self.prepare().execute_async(*values, transaction=transaction, **named)

    async def execute_scalar_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> Any:
        return await self.prepare().execute_scalar_async(
            *values, transaction=transaction, **named
        )

    def execute_set_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> AsyncIterator[Any]:
        return self.prepare().execute_set_async(*values, transaction=transaction, **named)

    async def execute_entities_async(
        self, *values: Any, transaction: Any = None, **named: Any
    ) -> list[T]:
        return await self.prepare().execute_entities_async(
            *values, transaction=transaction, **named
        )

    async def execute_types_async(
        self, mapper: RowMapper[R], *values: Any, transaction: Any = None, **named: Any
    ) -> list[R]:
        return await self.prepare().execute_types_async(
            mapper, *values, transaction=transaction, **named
        )

    async def execute_type_async(
        self, mapper: RowMapper[R], *values: Any, transaction: Any = None, **named: Any
    ) -> R | None:
        return await self.prepare().execute_type_async(
            mapper, *values, transaction=transaction, **named
        )


__all__: list[str] = ["LoadOperation"]
