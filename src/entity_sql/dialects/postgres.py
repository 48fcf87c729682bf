"""
PostgreSQL dialect.

Schema information is read from ``information_schema`` and ``pg_indexes``
in the current schema. DDL is transactional, so migration plans roll back
atomically and need no compensation.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from ..exceptions import SchemaMismatchError, TypeNotFoundError, UnsupportedFunctionError
from ..expressions.ast import ArithmeticOperator
from ..expressions.functions import DBFunctionType
from ..operations.prepared import PreparedOperation
from ..schema.descriptors import (
    EntityDescriptor,
    IndexDescriptor,
    SchemaColumnDescriptor,
    SchemaDescriptor,
    TableDescriptor,
    UniqueDescriptor,
    ViewDescriptor,
)
from .base import Dialect, Query, index_name

if TYPE_CHECKING:
    from ..clients.base import Rows
    from ..expressions.compiler import ExpressionCompiler
    from ..expressions.functions import Function
    from ..operations.preparator import OperationPreparator

_INDEX_COLUMNS = re.compile(r"\((?P<columns>[^()]+)\)\s*$")


class PostgreSQLDialect(Dialect):
    """Dialect for PostgreSQL (psycopg2 / asyncpg-compatible drivers using ``%s``)."""

    name = "postgresql"
    auto_increment = "GENERATED BY DEFAULT AS IDENTITY"
    requires_writer_lock = False

    type_names = {
        bool: "boolean",
        int: "bigint",
        float: "double precision",
        str: "text",
        bytes: "bytea",
        datetime: "timestamp without time zone",
        date: "date",
        time: "time without time zone",
        timedelta: "bigint",
        UUID: "uuid",
        Decimal: "numeric",
    }
    representations = {
        timedelta: int,
        UUID: str,
    }

    def placeholder(self, index: int) -> str:
        return "%s"

    def arithmetic_operator(self, operator: ArithmeticOperator) -> str:
        # '%' is the driver's placeholder marker
        if operator is ArithmeticOperator.MOD:
            return "%%"
        return operator.value

    def render_bool(self, value: bool) -> str:
        return "TRUE" if value else "FALSE"

    def render_bytes(self, value: bytes) -> str:
        return f"'\\x{value.hex()}'::bytea"

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
        elif kind is DBFunctionType.LENGTH and function.argument is not None:
            self._call(compiler, "LENGTH", function.argument)
        elif kind is DBFunctionType.LAST_INSERT_ID:
            preparator.append_text("LASTVAL()")
        elif kind is DBFunctionType.ALL:
            preparator.append_text("*")
        else:
            raise UnsupportedFunctionError(function, self.name)

    def render_pagination(
        self, preparator: OperationPreparator, limit: int | None, offset: int | None
    ) -> None:
        if limit is not None:
            preparator.append_text("LIMIT", str(limit))
        if offset is not None:
            preparator.append_text("OFFSET", str(offset))

    # -- introspection ----------------------------------------------------------

    def table_exists_query(self, name: str) -> Query:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = %s",
            (name,),
        )

    def object_query(self, name: str) -> Query:
        return (
            "SELECT table_name, table_type FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = %s",
            (name,),
        )

    def parse_object_kind(self, name: str, rows: Rows) -> str:
        if not rows:
            raise TypeNotFoundError(name)
        table_type = rows[0]["table_type"]
        if table_type == "BASE TABLE":
            return "table"
        if table_type == "VIEW":
            return "view"
        raise SchemaMismatchError(f"'{name}' is a {table_type}, not a table or view")

    def detail_queries(self, name: str, kind: str) -> dict[str, Query]:
        if kind == "view":
            return {
                "view": (
                    "SELECT view_definition FROM information_schema.views "
                    "WHERE table_schema = current_schema() AND table_name = %s",
                    (name,),
                )
            }
        return {
            "columns": (
                "SELECT column_name, data_type, is_nullable, column_default, is_identity "
                "FROM information_schema.columns "
                "WHERE table_schema = current_schema() AND table_name = %s "
                "ORDER BY ordinal_position",
                (name,),
            ),
            "constraints": (
                "SELECT tc.constraint_name, tc.constraint_type, kcu.column_name "
                "FROM information_schema.table_constraints tc "
                "JOIN information_schema.key_column_usage kcu "
                "ON tc.constraint_name = kcu.constraint_name "
                "AND tc.table_schema = kcu.table_schema "
                "AND tc.table_name = kcu.table_name "
                "WHERE tc.table_schema = current_schema() AND tc.table_name = %s "
                "AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE') "
                "ORDER BY tc.constraint_name, kcu.ordinal_position",
                (name,),
            ),
            "indices": (
                "SELECT indexname, indexdef FROM pg_indexes "
                "WHERE schemaname = current_schema() AND tablename = %s",
                (name,),
            ),
        }

    def parse_schema(
        self, name: str, kind: str, rows: Rows, details: dict[str, Rows]
    ) -> SchemaDescriptor:
        if kind == "view":
            definition = details.get("view") or [{}]
            return ViewDescriptor(name=name, sql=definition[0].get("view_definition") or "")

        groups: dict[str, tuple[str, list[str]]] = {}
        for row in details.get("constraints", []):
            _, members = groups.setdefault(row["constraint_name"], (row["constraint_type"], []))
            members.append(row["column_name"])

        primary = {
            c.lower()
            for constraint_type, members in groups.values()
            if constraint_type == "PRIMARY KEY"
            for c in members
        }
        single_unique = {
            members[0].lower()
            for constraint_type, members in groups.values()
            if constraint_type == "UNIQUE" and len(members) == 1
        }
        uniques = tuple(
            UniqueDescriptor(tuple(members))
            for constraint_type, members in groups.values()
            if constraint_type == "UNIQUE" and len(members) > 1
        )

        columns = tuple(
            SchemaColumnDescriptor(
                name=row["column_name"],
                type=row["data_type"],
                primary_key=row["column_name"].lower() in primary,
                auto_increment=row.get("is_identity") == "YES",
                not_null=row["is_nullable"] == "NO",
                unique=row["column_name"].lower() in single_unique,
                default=row["column_default"],
            )
            for row in details.get("columns", [])
        )

        prefix = index_name(name, "")
        indices = []
        for row in details.get("indices", []):
            full_name = row["indexname"]
            match = _INDEX_COLUMNS.search(row["indexdef"])
            if not full_name.startswith(prefix) or match is None:
                continue
            indices.append(
                IndexDescriptor(
                    full_name[len(prefix) :],
                    tuple(c.strip().strip('"') for c in match.group("columns").split(",")),
                )
            )

        return TableDescriptor(
            name=name, columns=columns, uniques=uniques, indices=tuple(indices)
        )

    # -- DDL ---------------------------------------------------------------------

    def truncate(
        self, descriptor: EntityDescriptor, reset_identity: bool = False
    ) -> list[PreparedOperation]:
        statement = f"TRUNCATE TABLE {self.quote(descriptor.table_name)}"
        if reset_identity:
            statement += " RESTART IDENTITY"
        return [PreparedOperation(statement)]

    def insert_id(
        self, preparator: OperationPreparator, descriptor: EntityDescriptor
    ) -> PreparedOperation | None:
        key = descriptor.primary_key
        if key is None:
            preparator.append_text("RETURNING LASTVAL()")
        else:
            preparator.append_text("RETURNING", self.quote(key.name))
        return None


__all__: list[str] = ["PostgreSQLDialect"]
