"""
Entry point used by calling code.

Usage::

    engine = create_engine("sqlite:///app.db")
    manager = EntityManager(SQLAlchemyClient(engine))
    manager.model(Company).unique("name").index("by_url", "url")
    manager.update_schema(Company)

    company = fields(Company)
    rows = manager.load(Company, company.name).where(company.employees > 10).execute()

    with manager.transaction() as tx:
        manager.insert_entities([Company(name="acme")], transaction=tx)

Every schema and whole-entity operation has an ``_async`` twin used with
an :class:`~entity_sql.clients.AsyncSQLAlchemyClient`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager, AbstractContextManager
from dataclasses import dataclass
from typing import Any, TypeVar

from .exceptions import ConfigurationError
from .operations import entities as entity_operations
from .operations.delete import DeleteOperation
from .operations.insert import InsertValuesOperation
from .operations.load import LoadOperation
from .operations.load_data import LoadDataOperation
from .operations.tables import CreateTableOperation, InsertDataOperation, UpdateDataOperation
from .operations.truncate import TruncateOptions, truncate, truncate_async
from .operations.update import UpdateValuesOperation
from .schema.cache import EntityDescriptorCache, EntityModel, default_cache
from .schema.creator import SchemaCreator, ViewResolver
from .schema.descriptors import EntityDescriptor, SchemaDescriptor
from .schema.migration import MigrationPlan
from .schema.updater import SchemaUpdater

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ManagerOptions:
    """
    Attributes:
        strict_drop: Let ``update_schema`` drop live columns that no longer
            exist on the entity. Off by default: migrations are additive.
        view_resolver: ``(entity_type, resource) -> sql`` used to read view
            definitions. Defaults to a package resource lookup.
        descriptor_cache: Cache of entity descriptors. Defaults to the
            process-wide cache.
    """

    strict_drop: bool = False
    view_resolver: ViewResolver | None = None
    descriptor_cache: EntityDescriptorCache | None = None


class EntityManager:
    """Entry point bundling a client with descriptors, builders and schema operations."""

    def __init__(self, client: Any, options: ManagerOptions | None = None) -> None:
        self.client = client
        self.options = options or ManagerOptions()
        self.descriptors = self.options.descriptor_cache or default_cache
        self._creator = SchemaCreator(client, self.descriptors.get, self.options.view_resolver)
        self._updater = SchemaUpdater(
            client, self.descriptors.get, self._creator, strict_drop=self.options.strict_drop
        )

    @property
    def dialect(self) -> Any:
        return self.client.dialect

    def descriptor(self, entity_type: type[Any]) -> EntityDescriptor:
        return self.descriptors.get(entity_type)

    def model(self, entity_type: type[T]) -> EntityModel[T]:
        """Accessor for declaring uniques, indices and key flags before schema creation."""
        return EntityModel(self.descriptors, entity_type)

    def _require_sync(self, operation: str) -> None:
        if getattr(self.client, "is_async", False):
            raise ConfigurationError(f"{operation}() needs a synchronous client; use {operation}_async()")

    def _require_async(self, operation: str) -> None:
        if not getattr(self.client, "is_async", False):
            raise ConfigurationError(f"{operation}_async() needs an asynchronous client; use {operation}()")

    # -- schema ----------------------------------------------------------------------

    def create(self, entity_type: type[Any], transaction: Any = None) -> bool:
        self._require_sync("create")
        return self._creator.create(entity_type, transaction)

    async def create_async(self, entity_type: type[Any], transaction: Any = None) -> bool:
        self._require_async("create")
        return await self._creator.create_async(entity_type, transaction)

    def update_schema(self, entity_type: type[Any], transaction: Any = None) -> MigrationPlan:
        self._require_sync("update_schema")
        return self._updater.update(entity_type, transaction)

    async def update_schema_async(
        self, entity_type: type[Any], transaction: Any = None
    ) -> MigrationPlan:
        self._require_async("update_schema")
        return await self._updater.update_async(entity_type, transaction)

    def _table_name(self, target: type[Any] | str) -> str:
        if isinstance(target, str):
            if not target:
                raise ConfigurationError("A table name must not be empty")
            return target
        return self.descriptor(target).table_name

    def exists(self, target: type[Any] | str, transaction: Any = None) -> bool:
        """Whether a table or view exists for an entity type or under a bare name."""
        self._require_sync("exists")
        return self.dialect.table_exists(self.client, self._table_name(target), transaction)

    async def exists_async(self, target: type[Any] | str, transaction: Any = None) -> bool:
        self._require_async("exists")
        return await self.dialect.table_exists_async(
            self.client, self._table_name(target), transaction
        )

    def schema(self, entity_type: type[Any], transaction: Any = None) -> SchemaDescriptor:
        """Introspect the live table or view backing ``entity_type``."""
        self._require_sync("schema")
        return self.dialect.read_schema(
            self.client, self.descriptor(entity_type).table_name, transaction
        )

    async def schema_async(
        self, entity_type: type[Any], transaction: Any = None
    ) -> SchemaDescriptor:
        self._require_async("schema")
        return await self.dialect.read_schema_async(
            self.client, self.descriptor(entity_type).table_name, transaction
        )

    def _drop_operation(self, entity_type: type[Any]) -> Any:
        descriptor = self.descriptor(entity_type)
        if descriptor.view is not None:
            return self.dialect.drop_view(descriptor.table_name)
        return self.dialect.drop_table(descriptor.table_name)

    def drop(self, entity_type: type[Any], transaction: Any = None) -> None:
        self._require_sync("drop")
        operation = self._drop_operation(entity_type)
        self.client.non_query(operation.command_text, transaction=transaction)
        logger.info("Dropped %s", self.descriptor(entity_type).table_name)

    async def drop_async(self, entity_type: type[Any], transaction: Any = None) -> None:
        self._require_async("drop")
        operation = self._drop_operation(entity_type)
        await self.client.non_query(operation.command_text, transaction=transaction)
        logger.info("Dropped %s", self.descriptor(entity_type).table_name)

    def remove_column(self, entity_type: type[Any], column: str, transaction: Any = None) -> None:
        self._require_sync("remove_column")
        self._updater.remove_column(entity_type, column, transaction)

    async def remove_column_async(
        self, entity_type: type[Any], column: str, transaction: Any = None
    ) -> None:
        self._require_async("remove_column")
        await self._updater.remove_column_async(entity_type, column, transaction)

    def alter_column(self, entity_type: type[Any], field: str, transaction: Any = None) -> None:
        """Re-create a column from its current descriptor; its data is discarded."""
        self._require_sync("alter_column")
        self._updater.alter_column(entity_type, field, transaction)

    async def alter_column_async(
        self, entity_type: type[Any], field: str, transaction: Any = None
    ) -> None:
        self._require_async("alter_column")
        await self._updater.alter_column_async(entity_type, field, transaction)

    # -- builders ----------------------------------------------------------------------

    def load(self, entity_type: type[T], *fields: Any) -> LoadOperation[T]:
        """Load selected fields (all columns when none are given)."""
        return LoadOperation(self.client, self.descriptors.get, entity_type, *fields)

    def load_entities(self, entity_type: type[T]) -> LoadOperation[T]:
        """Load operation selecting every column, for ``execute_entities()``."""
        return LoadOperation(self.client, self.descriptors.get, entity_type)

    def load_data(self, table: str, *columns: str) -> LoadDataOperation:
        return LoadDataOperation(self.client, table, *columns)

    def insert(self, entity_type: type[Any]) -> InsertValuesOperation:
        return InsertValuesOperation(self.client, self.descriptors.get, entity_type)

    def update(self, entity_type: type[Any]) -> UpdateValuesOperation:
        return UpdateValuesOperation(self.client, self.descriptors.get, entity_type)

    def delete(self, entity_type: type[Any]) -> DeleteOperation:
        return DeleteOperation(self.client, self.descriptors.get, entity_type)

    def create_table(self, table: str) -> CreateTableOperation:
        """Declare a table column by column, without an entity type."""
        return CreateTableOperation(self.client, table)

    def insert_data(self, table: str) -> InsertDataOperation:
        return InsertDataOperation(self.client, table)

    def update_data(self, table: str) -> UpdateDataOperation:
        return UpdateDataOperation(self.client, table)

    def truncate(
        self,
        entity_type: type[Any],
        options: TruncateOptions | None = None,
        transaction: Any = None,
    ) -> None:
        self._require_sync("truncate")
        truncate(self.client, self.descriptor(entity_type), options, transaction)

    async def truncate_async(
        self,
        entity_type: type[Any],
        options: TruncateOptions | None = None,
        transaction: Any = None,
    ) -> None:
        self._require_async("truncate")
        await truncate_async(self.client, self.descriptor(entity_type), options, transaction)

    # -- whole entities ------------------------------------------------------------------

    def insert_entities(self, entities: Sequence[Any], transaction: Any = None) -> list[Any]:
        self._require_sync("insert_entities")
        return entity_operations.insert_entities(
            self.client, self.descriptors.get, entities, transaction
        )

    async def insert_entities_async(
        self, entities: Sequence[Any], transaction: Any = None
    ) -> list[Any]:
        self._require_async("insert_entities")
        return await entity_operations.insert_entities_async(
            self.client, self.descriptors.get, entities, transaction
        )

    def update_entities(self, entities: Sequence[Any], transaction: Any = None) -> int:
        self._require_sync("update_entities")
        return entity_operations.update_entities(
            self.client, self.descriptors.get, entities, transaction
        )

    async def update_entities_async(
        self, entities: Sequence[Any], transaction: Any = None
    ) -> int:
        self._require_async("update_entities")
        return await entity_operations.update_entities_async(
            self.client, self.descriptors.get, entities, transaction
        )

    def delete_entities(self, entities: Sequence[Any], transaction: Any = None) -> int:
        self._require_sync("delete_entities")
        return entity_operations.delete_entities(
            self.client, self.descriptors.get, entities, transaction
        )

    async def delete_entities_async(
        self, entities: Sequence[Any], transaction: Any = None
    ) -> int:
        self._require_async("delete_entities")
        return await entity_operations.delete_entities_async(
            self.client, self.descriptors.get, entities, transaction
        )

    def save(self, entity: T, transaction: Any = None) -> T:
        self._require_sync("save")
        return entity_operations.save(self.client, self.descriptors.get, entity, transaction)

    async def save_async(self, entity: T, transaction: Any = None) -> T:
        self._require_async("save")
        return await entity_operations.save_async(
            self.client, self.descriptors.get, entity, transaction
        )

    # -- raw access ----------------------------------------------------------------------

    def transaction(self) -> AbstractContextManager[Any] | AbstractAsyncContextManager[Any]:
        """Open a client transaction (``with`` or ``async with`` depending on the client)."""
        return self.client.transaction()

    def execute(self, command: str, *parameters: Any, transaction: Any = None) -> int:
        """Execute a raw non-query command with positional parameters."""
        self._require_sync("execute")
        return self.client.non_query(command, parameters, transaction=transaction)

    async def execute_async(
        self, command: str, *parameters: Any, transaction: Any = None
    ) -> int:
        self._require_async("execute")
        return await self.client.non_query(command, parameters, transaction=transaction)


__all__: list[str] = ["EntityManager", "ManagerOptions"]
