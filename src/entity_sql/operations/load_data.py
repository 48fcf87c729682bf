"""
Untyped loads from a table addressed by name.

Columns and filter columns are plain strings; filter operators are
restricted to a fixed whitelist and values are always bound as
parameters::

    manager.load_data("company", "id", "name").where("employees", ">", 10).execute()
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from typing import TYPE_CHECKING, Any, TypeVar

from ..exceptions import ConfigurationError
from .criteria import CriteriaOperator, LoadCriteria
from .preparator import OperationPreparator
from .prepared import PreparedLoad

if TYPE_CHECKING:
    from ..clients.base import Rows
    from .prepared import RowMapper

R = TypeVar("R")

COMPARISON_OPERATORS = frozenset({"=", "<>", "!=", "<", "<=", ">", ">=", "LIKE", "NOT LIKE"})
NULL_OPERATORS = frozenset({"IS", "IS NOT"})


def require_names(names: tuple[str, ...], clause: str) -> list[str]:
    if not names:
        raise ConfigurationError(f"{clause} requires at least one column")
    for name in names:
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"Column names must be non-empty strings, got {name!r}")
    return list(names)


class TableCriteriaBuilder:
    """Base for builders over a bare table name filtered by whitelisted criteria."""

    def __init__(self, client: Any, table: str, clause: str) -> None:
        if not table or not isinstance(table, str):
            raise ConfigurationError(f"{clause} requires a table name")
        self._client = client
        self._table = table
        self._criteria: list[LoadCriteria] = []

    @property
    def table(self) -> str:
        return self._table

    def where(
        self,
        column: str,
        operator: str,
        value: Any,
        link: CriteriaOperator | str = CriteriaOperator.AND,
    ) -> Any:
        """
        Add a filter ``column <operator> value``.

        Raises:
            ConfigurationError: If the operator is not whitelisted, or
                ``IS`` / ``IS NOT`` is used with a value other than ``None``.
        """
        normalized = " ".join(operator.upper().split())
        if normalized in NULL_OPERATORS:
            if value is not None:
                raise ConfigurationError(f"'{operator}' only accepts None as value")
        elif normalized not in COMPARISON_OPERATORS:
            raise ConfigurationError(
                f"Unsupported operator '{operator}'. "
                f"Supported: {', '.join(sorted(COMPARISON_OPERATORS | NULL_OPERATORS))}"
            )
        try:
            link = CriteriaOperator(link.upper() if isinstance(link, str) else link)
        except ValueError:
            raise ConfigurationError(f"Unsupported criteria link '{link}'") from None
        self._criteria.append(LoadCriteria(column, normalized, value, link))
        return self

    def _append_criteria(self, preparator: OperationPreparator) -> None:
        dialect = preparator.dialect
        for index, criteria in enumerate(self._criteria):
            preparator.append_text(criteria.link.value if index else "WHERE")
            preparator.append_field(criteria.column).append_text(criteria.operator)
            if criteria.operator in NULL_OPERATORS:
                preparator.append_text("NULL")
            else:
                preparator.append_parameter(dialect.to_db_value(criteria.value))


class LoadDataOperation(TableCriteriaBuilder):
    """Builder for ``SELECT`` over a bare table name."""

    def __init__(self, client: Any, table: str, *columns: str) -> None:
        super().__init__(client, table, "load_data()")
        self._columns: list[str] = []
        if columns:
            self.columns(*columns)

    def columns(self, *names: str) -> LoadDataOperation:
        self._columns = require_names(names, "columns()")
        return self

    def prepare(self) -> PreparedLoad[Any]:
        dialect = self._client.dialect
        preparator = OperationPreparator(dialect)
        preparator.append_text("SELECT")
        if self._columns:
            preparator.append_list([dialect.quote(c) for c in self._columns])
        else:
            preparator.append_text("*")
        preparator.append_text("FROM", dialect.quote(self._table))
        self._append_criteria(preparator)
        return PreparedLoad(self._client, preparator.get_operation())

    def execute(self, transaction: Any = None) -> Rows:
        return self.prepare().execute(transaction=transaction)

    def execute_scalar(self, transaction: Any = None, as_type: Any = None) -> Any:
        return self.prepare().execute_scalar(transaction=transaction, as_type=as_type)

    def execute_set(self, transaction: Any = None, as_type: Any = None) -> Iterator[Any]:
        return self.prepare().execute_set(transaction=transaction, as_type=as_type)

    def execute_types(self, mapper: RowMapper[R], transaction: Any = None) -> list[R]:
        return self.prepare().execute_types(mapper, transaction=transaction)

    def execute_type(self, mapper: RowMapper[R], transaction: Any = None) -> R | None:
        return self.prepare().execute_type(mapper, transaction=transaction)

    async def execute_async(self, transaction: Any = None) -> Rows:
        return await self.prepare().execute_async(transaction=transaction)

    async def execute_scalar_async(self, transaction: Any = None, as_type: Any = None) -> Any:
        return await self.prepare().execute_scalar_async(
            transaction=transaction, as_type=as_type
        )

    def execute_set_async(
        self, transaction: Any = None, as_type: Any = None
    ) -> AsyncIterator[Any]:
        return self.prepare().execute_set_async(transaction=transaction, as_type=as_type)

    async def execute_types_async(
        self, mapper: RowMapper[R], transaction: Any = None
    ) -> list[R]:
        return await self.prepare().execute_types_async(mapper, transaction=transaction)

    async def execute_type_async(
        self, mapper: RowMapper[R], transaction: Any = None
    ) -> R | None:
        return await self.prepare().execute_type_async(mapper, transaction=transaction)


__all__: list[str] = [
    "COMPARISON_OPERATORS",
    "LoadDataOperation",
    "NULL_OPERATORS",
    "TableCriteriaBuilder",
    "require_names",
]
