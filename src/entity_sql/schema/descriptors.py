"""
Structural descriptors for entities and live database objects.

``EntityDescriptor`` describes the desired shape of a mapped type.
``TableDescriptor`` / ``ViewDescriptor`` describe what introspection
found in a live database. All descriptors are immutable; changes are
expressed by building a new descriptor with :func:`dataclasses.replace`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..exceptions import UnknownFieldError


@dataclass(frozen=True)
class Column:
    """
    Column marker placed in ``typing.Annotated`` metadata.

    Example::

        class Company(BaseModel):
            id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
            name: Annotated[str, Column(unique=True, not_null=True)] = ""
            url: Annotated[str | None, Column(index="url")] = None
    """

    name: str | None = None
    primary_key: bool = False
    auto_increment: bool = False
    not_null: bool = False
    unique: bool = False
    default: Any = None
    index: str | tuple[str, ...] | None = None
    ignore: bool = False


@dataclass(frozen=True)
class ColumnDescriptor:
    """Desired column of an entity."""

    name: str
    field_name: str
    python_type: Any
    primary_key: bool = False
    auto_increment: bool = False
    not_null: bool = False
    unique: bool = False
    default: Any = None


@dataclass(frozen=True)
class UniqueDescriptor:
    """Group of columns enforced jointly unique."""

    columns: tuple[str, ...]

    def matches(self, other: UniqueDescriptor) -> bool:
        return {c.lower() for c in self.columns} == {c.lower() for c in other.columns}


@dataclass(frozen=True)
class IndexDescriptor:
    """Named index over one or more columns."""

    name: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class EntityDescriptor:
    """
    Desired schema of a mapped type.

    Built once per type by :class:`~entity_sql.schema.cache.EntityDescriptorCache`.
    """

    entity_type: type[Any]
    table_name: str
    columns: tuple[ColumnDescriptor, ...]
    uniques: tuple[UniqueDescriptor, ...] = ()
    indices: tuple[IndexDescriptor, ...] = ()
    view: str | None = None

    @property
    def primary_key(self) -> ColumnDescriptor | None:
        return next((c for c in self.columns if c.primary_key), None)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def find_column(self, name: str) -> ColumnDescriptor | None:
        """Find a column by column name or entity field name."""
        for column in self.columns:
            if column.name == name or column.field_name == name:
                return column
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None

    def get_column(self, name: str) -> ColumnDescriptor:
        column = self.find_column(name)
        if column is None:
            raise UnknownFieldError(
                name,
                self.entity_type.__name__,
                [c.field_name for c in self.columns],
            )
        return column


@dataclass(frozen=True)
class SchemaColumnDescriptor:
    """Column found in a live table. ``type`` is the raw database type."""

    name: str
    type: str
    primary_key: bool = False
    auto_increment: bool = False
    not_null: bool = False
    unique: bool = False
    default: str | None = None


@dataclass(frozen=True)
class SchemaDescriptor:
    """Base for introspected database objects."""

    name: str


@dataclass(frozen=True)
class TableDescriptor(SchemaDescriptor):
    """Table found in a live database."""

    columns: tuple[SchemaColumnDescriptor, ...] = ()
    uniques: tuple[UniqueDescriptor, ...] = ()
    indices: tuple[IndexDescriptor, ...] = ()

    def find_column(self, name: str) -> SchemaColumnDescriptor | None:
        lowered = name.lower()
        return next((c for c in self.columns if c.name.lower() == lowered), None)

    def without_column(self, name: str) -> TableDescriptor:
        """Return a copy without the column (and groups that referenced it)."""
        lowered = name.lower()
        return TableDescriptor(
            name=self.name,
            columns=tuple(c for c in self.columns if c.name.lower() != lowered),
            uniques=tuple(
                u for u in self.uniques if lowered not in {c.lower() for c in u.columns}
            ),
            indices=tuple(
                i for i in self.indices if lowered not in {c.lower() for c in i.columns}
            ),
        )


@dataclass(frozen=True)
class ViewDescriptor(SchemaDescriptor):
    """View found in a live database. Views are never migrated."""

    sql: str = field(default="")


__all__: list[str] = [
    "Column",
    "ColumnDescriptor",
    "EntityDescriptor",
    "IndexDescriptor",
    "SchemaColumnDescriptor",
    "SchemaDescriptor",
    "TableDescriptor",
    "UniqueDescriptor",
    "ViewDescriptor",
]
