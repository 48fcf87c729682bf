"""
Creation of tables, views and indices from entity descriptors.

Views are opaque: their SQL is read verbatim from a named resource and
executed as-is. By default the resource is looked up next to the module
declaring the entity (``importlib.resources``); a different resolver can
be configured through :class:`~entity_sql.manager.ManagerOptions`.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..exceptions import ConfigurationError
from .migration import MigrationPlan, run_plan, run_plan_async

if TYPE_CHECKING:
    from ..dialects.base import Dialect
    from .descriptors import EntityDescriptor

logger = logging.getLogger(__name__)

ViewResolver = Callable[[type[Any], str], str]


def default_view_resolver(entity_type: type[Any], resource: str) -> str:
    """Read ``resource`` from the package (or directory) of the entity's module."""
    module = sys.modules.get(entity_type.__module__)
    package = getattr(module, "__package__", None)
    try:
        if package:
            return resources.files(package).joinpath(resource).read_text(encoding="utf-8")
        return Path(module.__file__).with_name(resource).read_text(encoding="utf-8")  # type: ignore[union-attr, arg-type]
    except (OSError, AttributeError, TypeError) as exc:
        raise ConfigurationError(
            f"View resource '{resource}' for '{entity_type.__name__}' could not be read"
        ) from exc


class SchemaCreator:
    """Creates the database objects backing entity types."""

    def __init__(
        self,
        client: Any,
        descriptors: Callable[[type[Any]], EntityDescriptor],
        view_resolver: ViewResolver | None = None,
    ) -> None:
        self._client = client
        self._descriptors = descriptors
        self._view_resolver = view_resolver or default_view_resolver

    @property
    def dialect(self) -> Dialect:
        return self._client.dialect

    def table_plan(self, descriptor: EntityDescriptor) -> MigrationPlan:
        """``CREATE TABLE`` (with multi-column ``UNIQUE`` clauses) followed by indices."""
        dialect = self.dialect
        plan = MigrationPlan().add(
            dialect.create_table(dialect.table_layout(descriptor)),
            dialect.drop_table(descriptor.table_name),
            f"create table {descriptor.table_name}",
        )
        return plan.extend(self.index_plan(descriptor.table_name, descriptor))

    def index_plan(self, table: str, descriptor: EntityDescriptor) -> MigrationPlan:
        plan = MigrationPlan()
        for index in descriptor.indices:
            plan.add(
                self.dialect.create_index(table, index),
                self.dialect.drop_index(table, index.name),
                f"create index {index.name} on {table}",
            )
        return plan

    def view_sql(self, descriptor: EntityDescriptor) -> str:
        assert descriptor.view is not None
        return self._view_resolver(descriptor.entity_type, descriptor.view)

    def create(self, entity_type: type[Any], transaction: Any = None) -> bool:
        """
        Create the table or view for ``entity_type``.

        Returns ``False`` when an object with that name already exists.
        """
        descriptor = self._descriptors(entity_type)
        if self.dialect.table_exists(self._client, descriptor.table_name, transaction):
            return False

        if descriptor.view is not None:
            self._client.non_query(self.view_sql(descriptor), transaction=transaction)
            logger.info("Created view %s from %s", descriptor.table_name, descriptor.view)
            return True

        run_plan(self._client, self.table_plan(descriptor), transaction)
        logger.info(
            "Created table %s (%d columns, %d indices)",
            descriptor.table_name,
            len(descriptor.columns),
            len(descriptor.indices),
        )
        return True

    async def create_async(self, entity_type: type[Any], transaction: Any = None) -> bool:
        descriptor = self._descriptors(entity_type)
        if await self.dialect.table_exists_async(
            self._client, descriptor.table_name, transaction
        ):
            return False

        if descriptor.view is not None:
            await self._client.non_query(self.view_sql(descriptor), transaction=transaction)
            logger.info("Created view %s from %s", descriptor.table_name, descriptor.view)
            return True

        await run_plan_async(self._client, self.table_plan(descriptor), transaction)
        logger.info(
            "Created table %s (%d columns, %d indices)",
            descriptor.table_name,
            len(descriptor.columns),
            len(descriptor.indices),
        )
        return True


__all__: list[str] = ["SchemaCreator", "ViewResolver", "default_view_resolver"]
