"""
Whole-entity operations.

Thin wrappers over the builders: every entity is written with one shared
prepared operation inside a single transaction, and rows are turned back
into entities with :func:`materialize`.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel

from ..exceptions import ConfigurationError
from ..expressions.ast import Field, Parameter
from .delete import DeleteOperation
from .insert import InsertValuesOperation
from .prepared import PreparedInsert, PreparedNonQuery
from .update import UpdateValuesOperation

if TYPE_CHECKING:
    from ..dialects.base import Dialect
    from ..schema.descriptors import ColumnDescriptor, EntityDescriptor
    from .builder import DescriptorLookup

T = TypeVar("T")


def materialize(descriptor: EntityDescriptor, dialect: Dialect, row: dict[str, Any]) -> Any:
    """Build an entity from a result row keyed by column name."""
    lowered = {key.lower(): value for key, value in row.items()}
    values: dict[str, Any] = {}
    for column in descriptor.columns:
        if column.name in row:
            raw = row[column.name]
        elif column.name.lower() in lowered:
            raw = lowered[column.name.lower()]
        else:
            continue
        values[column.field_name] = dialect.from_db_value(raw, column.python_type)
    return descriptor.entity_type(**values)


def entity_values(
    descriptor: EntityDescriptor,
    entity: Any,
    columns: Sequence[ColumnDescriptor] | None = None,
) -> list[Any]:
    """Attribute values of ``entity`` in column order."""
    return [getattr(entity, c.field_name) for c in (columns or descriptor.columns)]


def _is_frozen(entity: Any) -> bool:
    if isinstance(entity, BaseModel):
        return bool(type(entity).model_config.get("frozen"))
    params = getattr(type(entity), "__dataclass_params__", None)
    return bool(params and params.frozen)


def _entity_type(entities: Sequence[Any]) -> type[Any]:
    types = {type(e) for e in entities}
    if len(types) != 1:
        raise ConfigurationError(
            "Whole-entity operations require entities of a single type, got "
            + ", ".join(sorted(t.__name__ for t in types))
        )
    return types.pop()


def _key(descriptor: EntityDescriptor) -> ColumnDescriptor:
    key = descriptor.primary_key
    if key is None:
        raise ConfigurationError(
            f"'{descriptor.entity_type.__name__}' has no primary key; "
            "update and delete by entity require one"
        )
    return key


def _generated_key(descriptor: EntityDescriptor) -> ColumnDescriptor | None:
    key = descriptor.primary_key
    return key if key is not None and key.auto_increment else None


def _insert_columns(descriptor: EntityDescriptor) -> list[ColumnDescriptor]:
    generated = _generated_key(descriptor)
    return [c for c in descriptor.columns if c is not generated]


def _prepare_insert(
    client: Any, descriptors: DescriptorLookup, entity_type: type[Any]
) -> tuple[PreparedInsert, list[ColumnDescriptor]]:
    descriptor = descriptors(entity_type)
    columns = _insert_columns(descriptor)
    builder = InsertValuesOperation(client, descriptors, entity_type).columns(
        *(c.name for c in columns)
    )
    if _generated_key(descriptor) is not None:
        builder.return_id()
    return builder.prepare(), columns


def _prepare_update(
    client: Any, descriptors: DescriptorLookup, entity_type: type[Any]
) -> tuple[PreparedNonQuery, list[ColumnDescriptor]]:
    descriptor = descriptors(entity_type)
    key = _key(descriptor)
    columns = [c for c in descriptor.columns if c is not key]
    if not columns:
        raise ConfigurationError(
            f"'{entity_type.__name__}' has no columns besides its primary key to update"
        )
    builder = UpdateValuesOperation(client, descriptors, entity_type)
    for column in columns:
        builder.set_expression(column.name, Parameter(column.name))
    builder.where(Field(key.name, entity_type) == Parameter(key.name))
    return builder.prepare(), [*columns, key]


def _prepare_delete(
    client: Any, descriptors: DescriptorLookup, entity_type: type[Any]
) -> PreparedNonQuery:
    key = _key(descriptors(entity_type))
    return (
        DeleteOperation(client, descriptors, entity_type)
        .where(Field(key.name, entity_type) == Parameter(key.name))
        .prepare()
    )


def _assign_key(descriptor: EntityDescriptor, entity: Any, value: Any) -> None:
    key = _generated_key(descriptor)
    if key is None or value is None or _is_frozen(entity):
        return
    setattr(entity, key.field_name, value)


def _needs_insert(descriptor: EntityDescriptor, entity: Any) -> bool:
    key = _generated_key(descriptor)
    return key is not None and not getattr(entity, key.field_name)


# -- synchronous ------------------------------------------------------------------


def _in_transaction(client: Any, transaction: Any, action: Any) -> Any:
    if transaction is not None:
        return action(transaction)
    with client.transaction() as scoped:
        return action(scoped)


def insert_entities(
    client: Any,
    descriptors: DescriptorLookup,
    entities: Sequence[Any],
    transaction: Any = None,
) -> list[Any]:
    """
    Insert entities; returns generated keys (or affected-row counts when
    the entity has no auto-increment key). Generated keys are written back
    onto mutable entities.
    """
    if not entities:
        return []
    entity_type = _entity_type(entities)
    descriptor = descriptors(entity_type)
    prepared, columns = _prepare_insert(client, descriptors, entity_type)

    def run(tx: Any) -> list[Any]:
        results = []
        for entity in entities:
            result = prepared.execute(
                *entity_values(descriptor, entity, columns), transaction=tx
            )
            _assign_key(descriptor, entity, result)
            results.append(result)
        return results

    return _in_transaction(client, transaction, run)


def update_entities(
    client: Any,
    descriptors: DescriptorLookup,
    entities: Sequence[Any],
    transaction: Any = None,
) -> int:
    """Update entities by primary key; returns the total affected rows."""
    if not entities:
        return 0
    entity_type = _entity_type(entities)
    descriptor = descriptors(entity_type)
    prepared, columns = _prepare_update(client, descriptors, entity_type)

    def run(tx: Any) -> int:
        return sum(
            prepared.execute(*entity_values(descriptor, e, columns), transaction=tx)
            for e in entities
        )

    return _in_transaction(client, transaction, run)


def delete_entities(
    client: Any,
    descriptors: DescriptorLookup,
    entities: Sequence[Any],
    transaction: Any = None,
) -> int:
    """Delete entities by primary key; returns the total affected rows."""
    if not entities:
        return 0
    entity_type = _entity_type(entities)
    descriptor = descriptors(entity_type)
    key = _key(descriptor)
    prepared = _prepare_delete(client, descriptors, entity_type)

    def run(tx: Any) -> int:
        return sum(
            prepared.execute(getattr(e, key.field_name), transaction=tx) for e in entities
        )

    return _in_transaction(client, transaction, run)


def save(
    client: Any, descriptors: DescriptorLookup, entity: T, transaction: Any = None
) -> T:
    """
    Insert ``entity`` when its auto-increment key is unset, otherwise
    update it, inserting when no row was updated.
    """
    descriptor = descriptors(type(entity))

    def run(tx: Any) -> T:
        if _needs_insert(descriptor, entity):
            insert_entities(client, descriptors, [entity], tx)
        elif update_entities(client, descriptors, [entity], tx) == 0:
            insert_entities(client, descriptors, [entity], tx)
        return entity

    return _in_transaction(client, transaction, run)


# -- asynchronous -----------------------------------------------------------------


async def insert_entities_async(
    client: Any,
    descriptors: DescriptorLookup,
    entities: Sequence[Any],
    transaction: Any = None,
) -> list[Any]:
    if not entities:
        return []
    entity_type = _entity_type(entities)
    descriptor = descriptors(entity_type)
    prepared, columns = _prepare_insert(client, descriptors, entity_type)

    async def run(tx: Any) -> list[Any]:
        results = []
        for entity in entities:
            result = await prepared.execute_async(
                *entity_values(descriptor, entity, columns), transaction=tx
            )
            _assign_key(descriptor, entity, result)
            results.append(result)
        return results

    if transaction is not None:
        return await run(transaction)
    async with client.transaction() as scoped:
        return await run(scoped)


async def update_entities_async(
    client: Any,
    descriptors: DescriptorLookup,
    entities: Sequence[Any],
    transaction: Any = None,
) -> int:
    if not entities:
        return 0
    entity_type = _entity_type(entities)
    descriptor = descriptors(entity_type)
    prepared, columns = _prepare_update(client, descriptors, entity_type)

    async def run(tx: Any) -> int:
        total = 0
        for entity in entities:
            total += await prepared.execute_async(
                *entity_values(descriptor, entity, columns), transaction=tx
            )
        return total

    if transaction is not None:
        return await run(transaction)
    async with client.transaction() as scoped:
        return await run(scoped)


async def delete_entities_async(
    client: Any,
    descriptors: DescriptorLookup,
    entities: Sequence[Any],
    transaction: Any = None,
) -> int:
    if not entities:
        return 0
    entity_type = _entity_type(entities)
    key = _key(descriptors(entity_type))
    prepared = _prepare_delete(client, descriptors, entity_type)

    async def run(tx: Any) -> int:
        total = 0
        for entity in entities:
            total += await prepared.execute_async(
                getattr(entity, key.field_name), transaction=tx
            )
        return total

    if transaction is not None:
        return await run(transaction)
    async with client.transaction() as scoped:
        return await run(scoped)


async def save_async(
    client: Any, descriptors: DescriptorLookup, entity: T, transaction: Any = None
) -> T:
    descriptor = descriptors(type(entity))

    async def run(tx: Any) -> T:
        if _needs_insert(descriptor, entity):
            await insert_entities_async(client, descriptors, [entity], tx)
        elif await update_entities_async(client, descriptors, [entity], tx) == 0:
            await insert_entities_async(client, descriptors, [entity], tx)
        return entity

    if transaction is not None:
        return await run(transaction)
    async with client.transaction() as scoped:
        return await run(scoped)


__all__: list[str] = [
    "delete_entities",
    "delete_entities_async",
    "entity_values",
    "insert_entities",
    "insert_entities_async",
    "materialize",
    "save",
    "save_async",
    "update_entities",
    "update_entities_async",
]
