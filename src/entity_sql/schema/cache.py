"""
Descriptor derivation and caching.

Entity types are pydantic models or dataclasses. Column flags come from a
:class:`~entity_sql.schema.descriptors.Column` marker in ``Annotated``
metadata (or a dataclass field's ``metadata["column"]``)::

    class ValueModel(BaseModel):
        id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
        string: str | None = None

Descriptors are derived lazily on first reference and cached per type.
:class:`EntityModel` lets calling code declare uniqueness groups, indices
and key flags before the first schema creation; every change swaps in a
new immutable descriptor.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import types
from collections.abc import Iterator
from typing import Annotated, Any, Generic, TypeVar, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from ..exceptions import MappingError
from .descriptors import (
    Column,
    ColumnDescriptor,
    EntityDescriptor,
    IndexDescriptor,
    UniqueDescriptor,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def unwrap_optional(annotation: Any) -> Any:
    """Return ``X`` for ``X | None`` / ``Optional[X]``; other types unchanged."""
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _split_annotated(annotation: Any) -> tuple[Any, Column | None]:
    if get_origin(annotation) is Annotated:
        base, *extras = get_args(annotation)
        marker = next((e for e in extras if isinstance(e, Column)), None)
        return base, marker
    return annotation, None


def _iter_fields(entity_type: type[Any]) -> Iterator[tuple[str, Any, Column | None]]:
    """Yield ``(field_name, annotation, marker)`` in declaration order."""
    if isinstance(entity_type, type) and issubclass(entity_type, BaseModel):
        for name, info in entity_type.model_fields.items():
            marker = next((m for m in info.metadata if isinstance(m, Column)), None)
            annotation, inner = _split_annotated(info.annotation)
            yield name, annotation, marker or inner
        return

    if dataclasses.is_dataclass(entity_type):
        hints = get_type_hints(entity_type, include_extras=True)
        for f in dataclasses.fields(entity_type):
            annotation, marker = _split_annotated(hints.get(f.name, f.type))
            yield f.name, annotation, marker or f.metadata.get("column")
        return

    raise MappingError(
        f"'{getattr(entity_type, '__name__', entity_type)}' is not a pydantic model "
        "or dataclass and cannot be mapped"
    )


def build_descriptor(entity_type: type[Any]) -> EntityDescriptor:
    """Derive an :class:`EntityDescriptor` from the structural shape of a type."""
    columns: list[ColumnDescriptor] = []
    indices: dict[str, list[str]] = {}

    for field_name, annotation, marker in _iter_fields(entity_type):
        marker = marker or Column()
        if marker.ignore:
            continue

        name = marker.name or field_name
        columns.append(
            ColumnDescriptor(
                name=name,
                field_name=field_name,
                python_type=unwrap_optional(annotation),
                primary_key=marker.primary_key,
                auto_increment=marker.auto_increment,
                not_null=marker.not_null,
                unique=marker.unique,
                default=marker.default,
            )
        )

        if marker.index:
            names = (marker.index,) if isinstance(marker.index, str) else marker.index
            for index_name in names:
                indices.setdefault(index_name, []).append(name)

    descriptor = EntityDescriptor(
        entity_type=entity_type,
        table_name=getattr(entity_type, "__tablename__", None)
        or entity_type.__name__.lower(),
        columns=tuple(columns),
        indices=tuple(IndexDescriptor(n, tuple(c)) for n, c in indices.items()),
        view=getattr(entity_type, "__view__", None),
    )
    validate_descriptor(descriptor)
    return descriptor


def validate_descriptor(descriptor: EntityDescriptor) -> None:
    """
    Check descriptor invariants.

    Raises:
        MappingError: On duplicate column names, more than one primary key,
            or an auto-increment column that is not the primary key.
    """
    entity_name = descriptor.entity_type.__name__
    seen: set[str] = set()
    for column in descriptor.columns:
        key = column.name.lower()
        if key in seen:
            raise MappingError(f"Duplicate column '{column.name}' on '{entity_name}'")
        seen.add(key)
        if column.auto_increment and not column.primary_key:
            raise MappingError(
                f"Column '{column.name}' on '{entity_name}' is auto-increment "
                "but not the primary key"
            )

    keys = [c.name for c in descriptor.columns if c.primary_key]
    if len(keys) > 1:
        raise MappingError(
            f"'{entity_name}' declares more than one primary key: {', '.join(keys)}"
        )

    for group in (*descriptor.uniques, *descriptor.indices):
        for name in group.columns:
            if name.lower() not in seen:
                raise MappingError(
                    f"Constraint on '{entity_name}' references unknown column '{name}'"
                )


class EntityDescriptorCache:
    """
    Process-wide cache of entity descriptors keyed by type identity.

    Descriptors are built lazily on first reference and never invalidated
    except through :meth:`replace` (used by :class:`EntityModel`) or
    :meth:`clear`.
    """

    def __init__(self) -> None:
        self._descriptors: dict[type[Any], EntityDescriptor] = {}
        self._lock = threading.Lock()

    def get(self, entity_type: type[Any]) -> EntityDescriptor:
        descriptor = self._descriptors.get(entity_type)
        if descriptor is not None:
            return descriptor

        with self._lock:
            descriptor = self._descriptors.get(entity_type)
            if descriptor is None:
                descriptor = build_descriptor(entity_type)
                self._descriptors[entity_type] = descriptor
                logger.debug(
                    "Built descriptor for %s (table=%s, columns=%d)",
                    entity_type.__name__,
                    descriptor.table_name,
                    len(descriptor.columns),
                )
            return descriptor

    __call__ = get

    def replace(self, descriptor: EntityDescriptor) -> None:
        validate_descriptor(descriptor)
        with self._lock:
            self._descriptors[descriptor.entity_type] = descriptor

    def clear(self) -> None:
        with self._lock:
            self._descriptors.clear()

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._descriptors


default_cache = EntityDescriptorCache()


def _field_name(field: Any) -> str:
    return field if isinstance(field, str) else field.name


class EntityModel(Generic[T]):
    """
    Mutable accessor onto the cached descriptor of an entity type.

    Example::

        manager.model(ValueModel).unique("integer", "string").index("by_name", "name")
    """

    def __init__(self, cache: EntityDescriptorCache, entity_type: type[T]) -> None:
        self._cache = cache
        self._entity_type = entity_type

    @property
    def descriptor(self) -> EntityDescriptor:
        return self._cache.get(self._entity_type)

    def _replace_columns(
        self, names: list[str], **changes: Any
    ) -> tuple[ColumnDescriptor, ...]:
        descriptor = self.descriptor
        targets = {descriptor.get_column(n).name for n in names}
        return tuple(
            dataclasses.replace(c, **changes) if c.name in targets else c
            for c in descriptor.columns
        )

    def _update(self, **changes: Any) -> EntityModel[T]:
        self._cache.replace(dataclasses.replace(self.descriptor, **changes))
        return self

    def unique(self, *fields: Any) -> EntityModel[T]:
        """
        Declare a uniqueness group.

        A single field is flagged unique on the column itself; it never
        becomes a table-level group.
        """
        if not fields:
            raise MappingError("unique() requires at least one field")
        names = [_field_name(f) for f in fields]
        if len(names) == 1:
            return self._update(columns=self._replace_columns(names, unique=True))

        descriptor = self.descriptor
        group = UniqueDescriptor(tuple(descriptor.get_column(n).name for n in names))
        if any(group.matches(u) for u in descriptor.uniques):
            return self
        return self._update(uniques=(*descriptor.uniques, group))

    def index(self, name: str, *fields: Any) -> EntityModel[T]:
        if not fields:
            raise MappingError("index() requires at least one field")
        descriptor = self.descriptor
        index = IndexDescriptor(
            name, tuple(descriptor.get_column(_field_name(f)).name for f in fields)
        )
        others = tuple(i for i in descriptor.indices if i.name != name)
        return self._update(indices=(*others, index))

    def primary_key(self, field: Any, *, auto_increment: bool = False) -> EntityModel[T]:
        target = self.descriptor.get_column(_field_name(field)).name
        columns = tuple(
            dataclasses.replace(
                c,
                primary_key=c.name == target,
                auto_increment=auto_increment if c.name == target else False,
            )
            for c in self.descriptor.columns
        )
        return self._update(columns=columns)

    def not_null(self, *fields: Any) -> EntityModel[T]:
        names = [_field_name(f) for f in fields]
        return self._update(columns=self._replace_columns(names, not_null=True))

    def default(self, field: Any, value: Any) -> EntityModel[T]:
        names = [_field_name(field)]
        return self._update(columns=self._replace_columns(names, default=value))

    def table(self, name: str) -> EntityModel[T]:
        return self._update(table_name=name)


__all__: list[str] = [
    "EntityDescriptorCache",
    "EntityModel",
    "build_descriptor",
    "default_cache",
    "unwrap_optional",
    "validate_descriptor",
]
