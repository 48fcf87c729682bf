"""
SQLite dialect.

SQLite has no ``DROP COLUMN`` with constraints, no ``ADD COLUMN`` for key
or unique columns and no ``ADD CONSTRAINT``; all of those are expressed
as table rebuilds. The schema is recovered by reverse-parsing the DDL
stored in ``sqlite_master``.
"""

from __future__ import annotations

import dataclasses
import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from ..exceptions import SchemaMismatchError, TypeNotFoundError, UnsupportedFunctionError
from ..expressions.functions import DBFunctionType
from ..operations.prepared import PreparedOperation
from ..schema.descriptors import (
    ColumnDescriptor,
    EntityDescriptor,
    IndexDescriptor,
    SchemaColumnDescriptor,
    SchemaDescriptor,
    TableDescriptor,
    UniqueDescriptor,
    ViewDescriptor,
)
from ..schema.migration import MigrationPlan
from .base import Dialect, Query, index_name

if TYPE_CHECKING:
    from ..clients.base import Rows
    from ..expressions.compiler import ExpressionCompiler
    from ..expressions.functions import Function
    from ..operations.preparator import OperationPreparator

_IDENTIFIER = r'(?:"(?:[^"]|"")+"|`[^`]+`|\[[^\]]+\]|[^\s(,]+)'

_COLUMN_PATTERN = re.compile(rf"^(?P<name>{_IDENTIFIER})\s*(?P<rest>.*)$", re.DOTALL)
_TYPE_PATTERN = re.compile(
    r"^(?P<type>.*?)(?=\s+(?:PRIMARY|AUTOINCREMENT|UNIQUE|NOT|NULL|DEFAULT|"
    r"CONSTRAINT|CHECK|REFERENCES|COLLATE|GENERATED)\b|$)",
    re.IGNORECASE | re.DOTALL,
)
_DEFAULT_PATTERN = re.compile(
    r"\bDEFAULT\s+(?P<value>'(?:[^']|'')*'|[xX]'[0-9A-Fa-f]*'|\([^)]*\)|[^\s,]+)",
    re.IGNORECASE,
)
_INDEX_PATTERN = re.compile(
    rf"^CREATE\s+(?:UNIQUE\s+)?INDEX\s+(?:IF\s+NOT\s+EXISTS\s+)?(?P<index>{_IDENTIFIER})"
    rf"\s+ON\s+(?P<table>{_IDENTIFIER})\s*\((?P<columns>.+)\)\s*$",
    re.IGNORECASE | re.DOTALL,
)
_TABLE_CONSTRAINT = re.compile(r"^(?:CONSTRAINT|PRIMARY|UNIQUE|CHECK|FOREIGN)\b", re.IGNORECASE)


def unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if len(identifier) >= 2:
        first, last = identifier[0], identifier[-1]
        if first == last == '"':
            return identifier[1:-1].replace('""', '"')
        if (first, last) in (("`", "`"), ("[", "]"), ("'", "'")):
            return identifier[1:-1]
    return identifier


def split_top_level(text: str, separator: str = ",") -> list[str]:
    """Split ``text`` at ``separator`` outside of quotes and parentheses."""
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    current: list[str] = []
    for char in text:
        if quote:
            if char == quote:
                quote = None
        elif char in "'\"`":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def _group_columns(definition: str) -> tuple[str, ...]:
    inner = definition[definition.index("(") + 1 : definition.rindex(")")]
    return tuple(unquote(c) for c in split_top_level(inner))


def parse_column(definition: str) -> SchemaColumnDescriptor:
    """Parse one column definition of a ``CREATE TABLE`` statement."""
    match = _COLUMN_PATTERN.match(definition.strip())
    if match is None:
        raise SchemaMismatchError(f"Unable to parse column definition '{definition}'")

    rest = match.group("rest")
    default_match = _DEFAULT_PATTERN.search(rest)
    default = default_match.group("value") if default_match else None
    if default_match:
        rest = rest[: default_match.start()] + rest[default_match.end() :]

    type_match = _TYPE_PATTERN.match(rest.strip())
    column_type = type_match.group("type").strip() if type_match else ""
    flags = rest.upper()
    return SchemaColumnDescriptor(
        name=unquote(match.group("name")),
        type=column_type,
        primary_key=re.search(r"\bPRIMARY\s+KEY\b", flags) is not None,
        auto_increment="AUTOINCREMENT" in flags,
        unique=re.search(r"\bUNIQUE\b", flags) is not None,
        not_null=re.search(r"\bNOT\s+NULL\b", flags) is not None,
        default=default,
    )


def parse_table_sql(name: str, sql: str) -> TableDescriptor:
    """
    Reverse-parse a ``CREATE TABLE`` statement.

    Table-level ``UNIQUE(...)`` clauses may appear anywhere in the column
    list, since ``ALTER TABLE ADD COLUMN`` appends after them.
    """
    body = sql[sql.index("(") + 1 : sql.rindex(")")]
    columns: list[SchemaColumnDescriptor] = []
    uniques: list[UniqueDescriptor] = []
    primary: set[str] = set()

    for part in split_top_level(body):
        if not _TABLE_CONSTRAINT.match(part):
            columns.append(parse_column(part))
            continue
        clause = re.sub(r"^CONSTRAINT\s+\S+\s+", "", part, flags=re.IGNORECASE)
        upper = clause.upper()
        if upper.startswith("UNIQUE"):
            group = _group_columns(clause)
            if len(group) == 1:
                target = group[0].lower()
                columns = [
                    _with(c, unique=True) if c.name.lower() == target else c
                    for c in columns
                ]
            else:
                uniques.append(UniqueDescriptor(group))
        elif upper.startswith("PRIMARY"):
            primary.update(c.lower() for c in _group_columns(clause))

    if primary:
        columns = [
            _with(c, primary_key=True) if c.name.lower() in primary else c for c in columns
        ]
    return TableDescriptor(name=name, columns=tuple(columns), uniques=tuple(uniques))


def _with(column: SchemaColumnDescriptor, **changes: Any) -> SchemaColumnDescriptor:
    return dataclasses.replace(column, **changes)


def parse_index_sql(table: str, sql: str) -> IndexDescriptor | None:
    """
    Parse an index created by this library.

    Returns ``None`` for indices not following the ``idx_<table>_<name>``
    convention.
    """
    match = _INDEX_PATTERN.match(sql.strip())
    if match is None:
        return None
    full_name = unquote(match.group("index"))
    prefix = index_name(table, "")
    if not full_name.startswith(prefix):
        return None
    columns = tuple(unquote(c) for c in split_top_level(match.group("columns")))
    return IndexDescriptor(full_name[len(prefix) :], columns)


class SQLiteDialect(Dialect):
    """Dialect for SQLite (pysqlite / aiosqlite drivers)."""

    name = "sqlite"
    auto_increment = "AUTOINCREMENT"
    requires_writer_lock = True

    type_names = {
        bool: "BOOLEAN",
        int: "INTEGER",
        float: "FLOAT",
        str: "TEXT",
        bytes: "BLOB",
        datetime: "TIMESTAMP",
        date: "DATE",
        time: "TEXT",
        timedelta: "INTEGER",
        UUID: "BLOB",
        Decimal: "DECIMAL",
    }
    representations = {
        datetime: str,
        date: str,
        time: str,
        timedelta: int,
        UUID: bytes,
        Decimal: str,
    }

    def placeholder(self, index: int) -> str:
        return "?"

    def render_function(self, function: Function, compiler: ExpressionCompiler) -> None:
        preparator = compiler.preparator
        kind = function.kind
        if kind is DBFunctionType.COUNT:
            if function.argument is None:
                preparator.append_text("COUNT(*)")
            else:
                self._call(compiler, "COUNT", function.argument)
        elif kind is DBFunctionType.RANDOM:
            preparator.append_text("RANDOM()")
        elif kind is DBFunctionType.ROWID:
            preparator.append_text("ROWID")
        elif kind is DBFunctionType.LENGTH and function.argument is not None:
            self._call(compiler, "LENGTH", function.argument)
        elif kind is DBFunctionType.LAST_INSERT_ID:
            preparator.append_text("last_insert_rowid()")
        elif kind is DBFunctionType.ALL:
            preparator.append_text("*")
        else:
            raise UnsupportedFunctionError(function, self.name)

    def render_pagination(
        self, preparator: OperationPreparator, limit: int | None, offset: int | None
    ) -> None:
        if limit is None and offset is None:
            return
        preparator.append_text("LIMIT")
        if offset is not None:
            preparator.append_text(str(offset), ",", str(limit if limit is not None else -1))
        else:
            preparator.append_text(str(limit))

    # -- introspection ----------------------------------------------------------

    def table_exists_query(self, name: str) -> Query:
        return (
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view') AND name = ?",
            (name,),
        )

    def object_query(self, name: str) -> Query:
        return ("SELECT type, tbl_name, sql FROM sqlite_master WHERE name = ?", (name,))

    def parse_object_kind(self, name: str, rows: Rows) -> str:
        if not rows:
            raise TypeNotFoundError(name)
        kind = rows[0]["type"]
        if kind not in ("table", "view"):
            raise SchemaMismatchError(f"'{name}' is a {kind}, not a table or view")
        return kind

    def detail_queries(self, name: str, kind: str) -> dict[str, Query]:
        if kind != "table":
            return {}
        return {
            "indices": (
                "SELECT name, sql FROM sqlite_master WHERE type = 'index' AND tbl_name = ?",
                (name,),
            )
        }

    def parse_schema(
        self, name: str, kind: str, rows: Rows, details: dict[str, Rows]
    ) -> SchemaDescriptor:
        row = rows[0]
        if kind == "view":
            return ViewDescriptor(name=row["tbl_name"], sql=row["sql"] or "")

        table = parse_table_sql(row["tbl_name"], row["sql"])
        indices = []
        for index_row in details.get("indices", []):
            # autoindexes backing constraints carry no sql
            if not index_row["sql"]:
                continue
            index = parse_index_sql(table.name, index_row["sql"])
            if index is not None:
                indices.append(index)
        return TableDescriptor(
            name=table.name,
            columns=table.columns,
            uniques=table.uniques,
            indices=tuple(indices),
        )

    # -- DDL ---------------------------------------------------------------------

    def truncate(
        self, descriptor: EntityDescriptor, reset_identity: bool = False
    ) -> list[PreparedOperation]:
        operations = [PreparedOperation(f"DELETE FROM {self.quote(descriptor.table_name)}")]
        key = descriptor.primary_key
        if reset_identity and key is not None and key.auto_increment:
            operations.append(
                PreparedOperation(
                    "DELETE FROM sqlite_sequence WHERE name = ?", (descriptor.table_name,)
                )
            )
        return operations

    def insert_id(
        self, preparator: OperationPreparator, descriptor: EntityDescriptor
    ) -> PreparedOperation | None:
        return PreparedOperation("SELECT last_insert_rowid()")

    # -- migration primitives ----------------------------------------------------

    def add_column(self, table: TableDescriptor, column: ColumnDescriptor) -> MigrationPlan:
        if column.primary_key or column.unique:
            target = TableDescriptor(
                name=table.name,
                columns=(*table.columns, self.schema_column(column, adding=True)),
                uniques=table.uniques,
                indices=table.indices,
            )
            return self.rebuild_table(table, target)
        return super().add_column(table, column)

    def remove_column(self, table: TableDescriptor, column: str) -> MigrationPlan:
        return self.rebuild_table(table, table.without_column(column))


__all__: list[str] = [
    "SQLiteDialect",
    "parse_column",
    "parse_index_sql",
    "parse_table_sql",
    "split_top_level",
    "unquote",
]
