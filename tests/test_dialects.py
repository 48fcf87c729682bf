"""Dialect type mapping, value conversion, DDL generation and DDL parsing."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

import pytest
from models import Company, Point, Status, ValueModel

from entity_sql import (
    ConfigurationError,
    ConverterCollection,
    PostgreSQLDialect,
    SQLiteDialect,
    UnsupportedTypeError,
    ValueConverter,
    default_converters,
    get_dialect,
)
from entity_sql.dialects import registered_dialects
from entity_sql.dialects.base import ticks_to_timedelta, timedelta_to_ticks
from entity_sql.dialects.sqlite import (
    parse_column,
    parse_index_sql,
    parse_table_sql,
    split_top_level,
)
from entity_sql.schema import IndexDescriptor, TableDescriptor, UniqueDescriptor


def test_registry_lookup_and_suggestion():
    assert isinstance(get_dialect("SQLite"), SQLiteDialect)
    assert isinstance(get_dialect("postgresql"), PostgreSQLDialect)
    assert registered_dialects() == ["postgresql", "sqlite"]

    with pytest.raises(ConfigurationError, match="Did you mean: sqlite"):
        get_dialect("sqlit")


def test_quote_escapes_identifier_quote():
    assert SQLiteDialect().quote('we"ird') == '"we""ird"'


@pytest.mark.parametrize(
    ("python_type", "sqlite_type", "postgres_type"),
    [
        (bool, "BOOLEAN", "boolean"),
        (int, "INTEGER", "bigint"),
        (float, "FLOAT", "double precision"),
        (str, "TEXT", "text"),
        (bytes, "BLOB", "bytea"),
        (datetime, "TIMESTAMP", "timestamp without time zone"),
        (date, "DATE", "date"),
        (timedelta, "INTEGER", "bigint"),
        (UUID, "BLOB", "uuid"),
        (Decimal, "DECIMAL", "numeric"),
        (Status, "TEXT", "text"),
        (int | None, "INTEGER", "bigint"),
    ],
)
def test_type_mapping(python_type, sqlite_type, postgres_type):
    assert SQLiteDialect().map_type(python_type) == sqlite_type
    assert PostgreSQLDialect().map_type(python_type) == postgres_type


def test_unsupported_type():
    with pytest.raises(UnsupportedTypeError) as exc_info:
        SQLiteDialect().map_type(list)
    assert exc_info.value.to_dict() == {
        "error": "UNSUPPORTED_TYPE",
        "type": "list",
        "dialect": "sqlite",
    }


def test_timedelta_ticks():
    value = timedelta(days=1, seconds=2, microseconds=3)
    ticks = timedelta_to_ticks(value)

    assert ticks == (86_402 * 10_000_000) + 30
    assert ticks_to_timedelta(ticks) == value


def test_value_conversion_sqlite():
    dialect = SQLiteDialect()
    token = UUID("12345678-1234-5678-1234-567812345678")

    assert dialect.to_db_value(token) == token.bytes
    assert dialect.to_db_value(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02 03:04:05"
    assert dialect.to_db_value(Decimal("1.50")) == "1.50"
    assert dialect.to_db_value(Status.ACTIVE) == "active"
    assert dialect.to_db_value(True) is True

    assert dialect.from_db_value(token.bytes, UUID) == token
    assert dialect.from_db_value("2024-01-02 03:04:05", datetime) == datetime(2024, 1, 2, 3, 4, 5)
    assert dialect.from_db_value("2024-01-02", date | None) == date(2024, 1, 2)
    assert dialect.from_db_value("10:30:00", time) == time(10, 30)
    assert dialect.from_db_value(1, bool) is True
    assert dialect.from_db_value(1.5, Decimal) == Decimal("1.5")
    assert dialect.from_db_value("retired", Status) is Status.RETIRED
    assert dialect.from_db_value(None, int) is None


def test_value_conversion_postgres():
    dialect = PostgreSQLDialect()
    token = UUID("12345678-1234-5678-1234-567812345678")

    assert dialect.to_db_value(token) == str(token)
    assert dialect.to_db_value(timedelta(seconds=1)) == 10_000_000
    # the driver adapts these natively
    assert dialect.to_db_value(date(2024, 1, 2)) == date(2024, 1, 2)


def test_render_literal():
    sqlite = SQLiteDialect()
    postgres = PostgreSQLDialect()

    assert sqlite.render_literal("it's") == "'it''s'"
    assert sqlite.render_literal(False) == "0"
    assert postgres.render_literal(False) == "FALSE"
    assert sqlite.render_literal(b"\x01\xff") == "X'01FF'"
    assert sqlite.render_literal(None) == "NULL"


def test_zero_values():
    dialect = SQLiteDialect()
    assert dialect.zero_value(int) == 0
    assert dialect.zero_value(str | None) == ""
    assert dialect.zero_value(Status) is Status.ACTIVE


def test_create_table_sqlite(cache):
    dialect = SQLiteDialect()
    operation = dialect.create_table(dialect.table_layout(cache.get(Company)))

    assert operation.command_text == (
        'CREATE TABLE "company" ("id" INTEGER PRIMARY KEY AUTOINCREMENT, '
        '"name" TEXT NOT NULL, "employees" INTEGER, "url" TEXT)'
    )


def test_create_table_postgres_with_unique_group(cache):
    dialect = PostgreSQLDialect()
    cache.replace(
        _with_uniques(cache.get(Company), UniqueDescriptor(("name", "url")))
    )
    operation = dialect.create_table(dialect.table_layout(cache.get(Company)))

    assert operation.command_text == (
        'CREATE TABLE "company" ("id" bigint PRIMARY KEY GENERATED BY DEFAULT AS IDENTITY, '
        '"name" text NOT NULL, "employees" bigint, "url" text, UNIQUE("name", "url"))'
    )


def _with_uniques(descriptor, *groups):
    from dataclasses import replace

    return replace(descriptor, uniques=groups)


def test_index_ddl():
    dialect = SQLiteDialect()
    create = dialect.create_index("company", IndexDescriptor("by_url", ("url", "name")))

    assert create.command_text == 'CREATE INDEX "idx_company_by_url" ON "company" ("url", "name")'
    assert dialect.drop_index("company", "by_url").command_text == (
        'DROP INDEX IF EXISTS "idx_company_by_url"'
    )


def test_add_not_null_column_gets_zero_default(cache):
    dialect = SQLiteDialect()
    table = TableDescriptor(name="company")
    column = cache.get(Company).get_column("name")

    plan = dialect.add_column(table, column)
    assert plan.commands == ['ALTER TABLE "company" ADD COLUMN "name" TEXT NOT NULL DEFAULT \'\'']


def test_sqlite_adds_unique_column_by_rebuild(cache):
    dialect = SQLiteDialect()
    descriptor = cache.get(ValueModel)
    live = dialect.table_layout(descriptor)
    column = _replace_column(descriptor.get_column("string"), name="extra", unique=True)

    commands = dialect.add_column(live, column).commands
    assert commands[0] == 'DROP TABLE IF EXISTS "valuemodel__rebuild"'
    assert commands[1].startswith('CREATE TABLE "valuemodel__rebuild" (')
    assert '"extra" TEXT UNIQUE' in commands[1]
    assert commands[2].startswith('INSERT INTO "valuemodel__rebuild" ("id", "integer"')
    assert '"extra"' not in commands[2]
    assert commands[3:] == [
        'DROP TABLE IF EXISTS "valuemodel"',
        'ALTER TABLE "valuemodel__rebuild" RENAME TO "valuemodel"',
    ]


def _replace_column(column, **changes):
    from dataclasses import replace

    return replace(column, **changes)


def test_rebuild_steps_carry_undo_for_staging(cache):
    dialect = SQLiteDialect()
    live = dialect.table_layout(cache.get(Company))
    steps = list(dialect.rebuild_table(live, live.without_column("url")))

    assert steps[1].undo is not None
    assert steps[1].undo.command_text == 'DROP TABLE IF EXISTS "company__rebuild"'
    assert '"url"' not in steps[2].operation.command_text


def test_truncate_operations(cache):
    descriptor = cache.get(Company)

    sqlite_ops = SQLiteDialect().truncate(descriptor, reset_identity=True)
    assert [op.command_text for op in sqlite_ops] == [
        'DELETE FROM "company"',
        "DELETE FROM sqlite_sequence WHERE name = ?",
    ]
    assert sqlite_ops[1].parameters == ("company",)
    assert len(SQLiteDialect().truncate(descriptor)) == 1

    postgres_ops = PostgreSQLDialect().truncate(descriptor, reset_identity=True)
    assert postgres_ops[0].command_text == 'TRUNCATE TABLE "company" RESTART IDENTITY'


def test_split_top_level():
    assert split_top_level("a, b(c, d), 'e,f', \"g,h\"") == ["a", "b(c, d)", "'e,f'", '"g,h"']


def test_parse_column():
    column = parse_column("\"note\" TEXT NOT NULL DEFAULT 'a, NOT NULL'")

    assert column.name == "note"
    assert column.type == "TEXT"
    assert column.not_null is True
    assert column.default == "'a, NOT NULL'"

    key = parse_column('"id" INTEGER PRIMARY KEY AUTOINCREMENT')
    assert (key.type, key.primary_key, key.auto_increment) == ("INTEGER", True, True)

    assert parse_column("amount DECIMAL(10, 2)").type == "DECIMAL(10, 2)"


def test_parse_table_sql():
    table = parse_table_sql(
        "t",
        'CREATE TABLE "t" ("id" INTEGER PRIMARY KEY AUTOINCREMENT, '
        "\"name\" TEXT NOT NULL DEFAULT 'a, b', UNIQUE(\"name\", \"id\"), "
        '"code" TEXT, "extra" BLOB, UNIQUE("code"))',
    )

    assert [c.name for c in table.columns] == ["id", "name", "code", "extra"]
    assert table.uniques == (UniqueDescriptor(("name", "id")),)
    assert table.find_column("code").unique is True
    assert table.find_column("extra").type == "BLOB"
    assert table.find_column("name").default == "'a, b'"


def test_parse_table_level_primary_key():
    table = parse_table_sql("t", "CREATE TABLE t (a INTEGER, b TEXT, PRIMARY KEY (a))")
    assert table.find_column("a").primary_key is True
    assert table.find_column("b").primary_key is False


def test_parse_index_sql():
    index = parse_index_sql("t", 'CREATE INDEX "idx_t_by_name" ON "t" ("name", "id")')
    assert index == IndexDescriptor("by_name", ("name", "id"))

    assert parse_index_sql("t", "CREATE INDEX other ON t (x)") is None


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
def test_render_literal_rejects_non_finite_floats(value):
    with pytest.raises(ConfigurationError, match="non-finite"):
        SQLiteDialect().render_literal(value)


def test_custom_converter_takes_precedence():
    converters = ConverterCollection()
    converters.register(ValueConverter(Point, str, to_db=str, from_db=Point.parse))
    dialect = SQLiteDialect(converters)

    assert dialect.map_type(Point | None) == "TEXT"
    assert dialect.representation_type(Point) is str
    assert dialect.to_db_value(Point(1, 2)) == "1,2"
    assert dialect.from_db_value("1,2", Point) == Point(1, 2)
    assert dialect.render_literal(Point(0, 5)) == "'0,5'"

    converters.unregister(Point)
    with pytest.raises(UnsupportedTypeError):
        dialect.map_type(Point)


def test_converter_lookup_follows_subclasses():
    class Shifted(Point):
        pass

    converters = ConverterCollection()
    converters.register(ValueConverter(Point, str, to_db=str, from_db=Point.parse))

    assert converters.get(Shifted).python_type is Point
    assert not converters.has(int)
    assert SQLiteDialect().converters is default_converters
