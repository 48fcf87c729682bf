"""
Convergence of live tables towards entity descriptors.

``update(Entity)`` reads the live schema and plans the minimal set of
changes:

1. a missing table is created;
2. views are left alone;
3. columns are compared by name: missing ones are added, ones whose type,
   nullability, key or unique flags differ are re-created (their data is
   discarded), live-only columns stay unless ``strict_drop`` is set;
4. differing multi-column unique groups rebuild the table;
5. the index set is compared as a whole and rebuilt when it differs or
   any column changed.

Planning is a pure function of the entity descriptor and the live
:class:`~entity_sql.schema.descriptors.TableDescriptor`; an unchanged
entity yields an empty plan.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..exceptions import InvalidDescriptorError, MigrationError, SchemaMismatchError
from .descriptors import (
    ColumnDescriptor,
    EntityDescriptor,
    IndexDescriptor,
    SchemaColumnDescriptor,
    TableDescriptor,
    UniqueDescriptor,
    ViewDescriptor,
)
from .migration import MigrationPlan, run_plan, run_plan_async

if TYPE_CHECKING:
    from ..dialects.base import Dialect
    from .creator import SchemaCreator

logger = logging.getLogger(__name__)


def _normalized_type(value: str) -> str:
    return " ".join(value.upper().split())


def column_differs(desired: SchemaColumnDescriptor, live: SchemaColumnDescriptor) -> bool:
    """Whether the type, nullability, key or unique flags differ."""
    return (
        _normalized_type(desired.type) != _normalized_type(live.type)
        or (desired.not_null or desired.primary_key) != (live.not_null or live.primary_key)
        or desired.primary_key != live.primary_key
        or desired.auto_increment != live.auto_increment
        or desired.unique != live.unique
    )


def same_groups(left: tuple[UniqueDescriptor, ...], right: tuple[UniqueDescriptor, ...]) -> bool:
    if len(left) != len(right):
        return False
    return all(any(group.matches(other) for other in right) for group in left)


def _index_key(index: IndexDescriptor) -> tuple[str, tuple[str, ...]]:
    return index.name.lower(), tuple(c.lower() for c in index.columns)


def same_indices(left: tuple[IndexDescriptor, ...], right: tuple[IndexDescriptor, ...]) -> bool:
    return {_index_key(i) for i in left} == {_index_key(i) for i in right}


def _with_column(table: TableDescriptor, column: SchemaColumnDescriptor) -> TableDescriptor:
    return TableDescriptor(
        name=table.name,
        columns=(*table.columns, column),
        uniques=table.uniques,
        indices=table.indices,
    )


class SchemaUpdater:
    """Plans and applies schema migrations for entity types."""

    def __init__(
        self,
        client: Any,
        descriptors: Callable[[type[Any]], EntityDescriptor],
        creator: SchemaCreator,
        strict_drop: bool = False,
    ) -> None:
        self._client = client
        self._descriptors = descriptors
        self._creator = creator
        self._strict_drop = strict_drop

    @property
    def dialect(self) -> Dialect:
        return self._client.dialect

    # -- planning ------------------------------------------------------------------

    def plan(self, descriptor: EntityDescriptor, live: TableDescriptor) -> MigrationPlan:
        """Steps converging ``live`` towards ``descriptor``."""
        dialect = self.dialect
        plan = MigrationPlan()
        current = live

        for column in descriptor.columns:
            existing = current.find_column(column.name)
            if existing is None:
                logger.info("Adding column %s.%s", descriptor.table_name, column.name)
                plan.extend(dialect.add_column(current, column))
                current = _with_column(current, dialect.schema_column(column, adding=True))
            elif column_differs(dialect.schema_column(column), existing):
                logger.warning(
                    "Altering column %s.%s (%s -> %s); existing data in this column is discarded",
                    descriptor.table_name,
                    column.name,
                    existing.type,
                    dialect.map_type(column.python_type),
                )
                plan.extend(dialect.alter_column(current, column))
                current = _with_column(
                    current.without_column(column.name),
                    dialect.schema_column(column, adding=True),
                )

        if self._strict_drop:
            wanted = {c.name.lower() for c in descriptor.columns}
            for live_column in live.columns:
                if live_column.name.lower() in wanted:
                    continue
                logger.warning(
                    "Dropping column %s.%s not present on %s",
                    descriptor.table_name,
                    live_column.name,
                    descriptor.entity_type.__name__,
                )
                plan.extend(dialect.remove_column(current, live_column.name))
                current = current.without_column(live_column.name)

        if not same_groups(current.uniques, descriptor.uniques):
            logger.info("Rebuilding %s to update unique constraints", descriptor.table_name)
            target = TableDescriptor(
                name=current.name,
                columns=current.columns,
                uniques=descriptor.uniques,
                indices=current.indices,
            )
            plan.extend(dialect.rebuild_table(current, target))
            current = target

        if plan or not same_indices(live.indices, descriptor.indices):
            plan.extend(self._reindex(descriptor, live.indices))
        return plan

    def _reindex(
        self, descriptor: EntityDescriptor, live_indices: tuple[IndexDescriptor, ...]
    ) -> MigrationPlan:
        dialect = self.dialect
        table = descriptor.table_name
        plan = MigrationPlan()
        names = {i.name for i in live_indices} | {i.name for i in descriptor.indices}
        for name in sorted(names):
            plan.add(dialect.drop_index(table, name), description=f"drop index {name} on {table}")
        return plan.extend(self._creator.index_plan(table, descriptor))

    def removal_plan(
        self, descriptor: EntityDescriptor, live: TableDescriptor, column: str
    ) -> MigrationPlan:
        existing = live.find_column(column)
        if existing is None:
            raise SchemaMismatchError(f"Column '{column}' does not exist on '{live.name}'")
        if existing.primary_key:
            raise MigrationError(
                f"Column '{existing.name}' is the primary key of '{live.name}' and cannot be removed"
            )
        plan = self.dialect.remove_column(live, existing.name)
        dropped = existing.name.lower()
        remaining = tuple(
            i for i in descriptor.indices if dropped not in {c.lower() for c in i.columns}
        )
        reduced = dataclasses.replace(descriptor, indices=remaining)
        return plan.extend(self._reindex(reduced, live.indices))

    def alteration_plan(
        self, descriptor: EntityDescriptor, live: TableDescriptor, column: ColumnDescriptor
    ) -> MigrationPlan:
        if live.find_column(column.name) is None:
            raise SchemaMismatchError(f"Column '{column.name}' does not exist on '{live.name}'")
        logger.warning(
            "Altering column %s.%s; existing data in this column is discarded",
            live.name,
            column.name,
        )
        plan = self.dialect.alter_column(live, column)
        return plan.extend(self._reindex(descriptor, live.indices))

    # -- execution -------------------------------------------------------------------

    def _live_table(self, descriptor: EntityDescriptor, schema: Any) -> TableDescriptor | None:
        if descriptor.view is not None or isinstance(schema, ViewDescriptor):
            logger.debug("Skipping schema update of view %s", descriptor.table_name)
            return None
        if not isinstance(schema, TableDescriptor):
            raise InvalidDescriptorError(
                f"Cannot migrate '{descriptor.table_name}' described by {type(schema).__name__}"
            )
        return schema

    def update(self, entity_type: type[Any], transaction: Any = None) -> MigrationPlan:
        """Converge the live schema of ``entity_type``; returns the executed plan."""
        descriptor = self._descriptors(entity_type)
        if not self.dialect.table_exists(self._client, descriptor.table_name, transaction):
            self._creator.create(entity_type, transaction)
            return MigrationPlan()

        live = self._live_table(
            descriptor,
            self.dialect.read_schema(self._client, descriptor.table_name, transaction),
        )
        if live is None:
            return MigrationPlan()

        plan = self.plan(descriptor, live)
        if plan:
            logger.info(
                "Updating schema of %s (%d step(s))", descriptor.table_name, len(plan)
            )
            run_plan(self._client, plan, transaction)
        return plan

    async def update_async(
        self, entity_type: type[Any], transaction: Any = None
    ) -> MigrationPlan:
        descriptor = self._descriptors(entity_type)
        if not await self.dialect.table_exists_async(
            self._client, descriptor.table_name, transaction
        ):
            await self._creator.create_async(entity_type, transaction)
            return MigrationPlan()

        live = self._live_table(
            descriptor,
            await self.dialect.read_schema_async(
                self._client, descriptor.table_name, transaction
            ),
        )
        if live is None:
            return MigrationPlan()

        plan = self.plan(descriptor, live)
        if plan:
            logger.info(
                "Updating schema of %s (%d step(s))", descriptor.table_name, len(plan)
            )
            await run_plan_async(self._client, plan, transaction)
        return plan

    def _read_table(self, descriptor: EntityDescriptor, transaction: Any) -> TableDescriptor:
        schema = self.dialect.read_schema(self._client, descriptor.table_name, transaction)
        if not isinstance(schema, TableDescriptor):
            raise SchemaMismatchError(f"'{descriptor.table_name}' is not a table")
        return schema

    async def _read_table_async(
        self, descriptor: EntityDescriptor, transaction: Any
    ) -> TableDescriptor:
        schema = await self.dialect.read_schema_async(
            self._client, descriptor.table_name, transaction
        )
        if not isinstance(schema, TableDescriptor):
            raise SchemaMismatchError(f"'{descriptor.table_name}' is not a table")
        return schema

    def remove_column(self, entity_type: type[Any], column: str, transaction: Any = None) -> None:
        descriptor = self._descriptors(entity_type)
        live = self._read_table(descriptor, transaction)
        run_plan(self._client, self.removal_plan(descriptor, live, column), transaction)

    async def remove_column_async(
        self, entity_type: type[Any], column: str, transaction: Any = None
    ) -> None:
        descriptor = self._descriptors(entity_type)
        live = await self._read_table_async(descriptor, transaction)
        await run_plan_async(
            self._client, self.removal_plan(descriptor, live, column), transaction
        )

    def alter_column(self, entity_type: type[Any], field: str, transaction: Any = None) -> None:
        descriptor = self._descriptors(entity_type)
        live = self._read_table(descriptor, transaction)
        plan = self.alteration_plan(descriptor, live, descriptor.get_column(field))
        run_plan(self._client, plan, transaction)

    async def alter_column_async(
        self, entity_type: type[Any], field: str, transaction: Any = None
    ) -> None:
        descriptor = self._descriptors(entity_type)
        live = await self._read_table_async(descriptor, transaction)
        plan = self.alteration_plan(descriptor, live, descriptor.get_column(field))
        await run_plan_async(self._client, plan, transaction)


__all__: list[str] = [
    "SchemaUpdater",
    "column_differs",
    "same_groups",
    "same_indices",
]
