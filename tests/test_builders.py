"""Statement text produced by the operation builders and prepared operations."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from models import Company, Employee

from entity_sql import (
    ConfigurationError,
    EntityManager,
    ManagerOptions,
    Parameter,
    PostgreSQLDialect,
    asc,
    count,
    desc,
    fields,
)
from entity_sql.operations import PreparedOperation
from entity_sql.operations.preparator import join_fragments

company = fields(Company)
employee = fields(Employee)


@pytest.fixture
def pg_manager(cache):
    client = SimpleNamespace(dialect=PostgreSQLDialect(), is_async=False)
    return EntityManager(client, ManagerOptions(descriptor_cache=cache))


def test_join_fragments_spacing():
    assert join_fragments(["f(", "a", ",", "b", ")", "x"]) == "f(a, b) x"
    assert join_fragments(["", "SELECT", "", "1"]) == "SELECT 1"


def test_preparator_parameter_order(preparator):
    preparator.append_text("SELECT").append_field("name", "j1").append_text("FROM", '"company"')
    preparator.append_text("WHERE").append_field("id").append_text("=").append_parameter(7)
    preparator.append_text("AND").append_field("url").append_text("<>").append_parameter("x")

    operation = preparator.get_operation()
    assert operation.command_text == (
        'SELECT j1."name" FROM "company" WHERE "id" = ? AND "url" <> ?'
    )
    assert operation.parameters == (7, "x")


def test_load_all_columns(manager):
    assert str(manager.load(Company)) == (
        'SELECT "id", "name", "employees", "url" FROM "company"'
    )


def test_load_full_statement(manager):
    prepared = (
        manager.load(Company, "name")
        .where(company.employees > 10)
        .where(company.url != None)  # noqa: E711
        .order_by(desc("name"), asc(company.id))
        .limit(5)
        .offset(10)
        .prepare()
    )
    assert prepared.command_text == (
        'SELECT "name" FROM "company" WHERE "employees" > ? AND "url" IS NOT NULL '
        'ORDER BY "name" DESC, "id" ASC LIMIT 10, 5'
    )
    assert prepared.parameters == (10,)


def test_offset_without_limit_on_sqlite(manager):
    assert str(manager.load(Company, "id").offset(3)).endswith("LIMIT 3, -1")


def test_postgres_pagination(pg_manager):
    text = str(pg_manager.load(Company, "id").where(company.id > 1).limit(5).offset(10))
    assert text == 'SELECT "id" FROM "company" WHERE "id" > %s LIMIT 5 OFFSET 10'


def test_group_by_having_distinct(manager):
    text = str(
        manager.load(Company, company.url, count())
        .distinct()
        .group_by(company.url)
        .having(count() > 1)
    )
    assert text == (
        'SELECT DISTINCT "url", COUNT(*) FROM "company" GROUP BY "url" HAVING COUNT(*) > ?'
    )


def test_join(manager):
    operation = manager.load(Company, company.name, employee.name).join(
        Employee, company.id == employee.company_id, "left"
    )
    assert operation.joins[0].alias == "j1"
    assert str(operation) == (
        'SELECT "company"."name", j1."name" FROM "company" '
        'LEFT JOIN "employee" AS j1 ON "company"."id" = j1."company_id"'
    )


def test_subquery_membership(manager):
    subquery = manager.load(Employee, employee.company_id).where(employee.name == "bob")
    prepared = manager.load(Company, "name").where(company.id.in_(subquery)).prepare()

    assert prepared.command_text == (
        'SELECT "name" FROM "company" WHERE "id" IN '
        '(SELECT "company_id" FROM "employee" WHERE "name" = ?)'
    )
    assert prepared.parameters == ("bob",)


@pytest.mark.parametrize(
    "configure",
    [
        lambda op: op.order_by(),
        lambda op: op.group_by(),
        lambda op: op.limit(-1),
        lambda op: op.offset("3"),
        lambda op: op.where("name = 'x'"),
        lambda op: op.join(Employee, company.id == employee.company_id, "cross"),
    ],
)
def test_load_fails_fast(manager, configure):
    with pytest.raises(ConfigurationError):
        configure(manager.load(Company))


def test_having_requires_group_by(manager):
    operation = manager.load(Company, count()).having(count() > 1)
    with pytest.raises(ConfigurationError, match="group_by"):
        operation.prepare()


def test_insert_with_parameter_slots(manager):
    prepared = manager.insert(Company).columns("name", company.employees).prepare()

    assert prepared.command_text == 'INSERT INTO "company" ("name", "employees") VALUES (?, ?)'
    assert prepared.operation.parameter_names == ["name", "employees"]


def test_insert_values_count_checked(manager):
    with pytest.raises(ConfigurationError):
        manager.insert(Company).columns("name", "employees").values("acme")


def test_insert_requires_columns(manager):
    with pytest.raises(ConfigurationError):
        manager.insert(Company).prepare()


def test_postgres_insert_returns_key(pg_manager):
    prepared = pg_manager.insert(Company).columns("name").return_id().prepare()
    assert prepared.command_text == 'INSERT INTO "company" ("name") VALUES (%s) RETURNING "id"'


def test_update_statement(manager):
    prepared = (
        manager.update(Company)
        .set(name="x")
        .set_expression("employees", company.employees + 1)
        .where(company.id == 7)
        .prepare()
    )
    assert prepared.command_text == (
        'UPDATE "company" SET "name" = ?, "employees" = "employees" + ? WHERE "id" = ?'
    )
    assert prepared.parameters == ("x", 1, 7)


def test_update_requires_assignment(manager):
    with pytest.raises(ConfigurationError):
        manager.update(Company).where(company.id == 1).prepare()


def test_delete_statement(manager):
    assert str(manager.delete(Company).where(company.id == 3)) == (
        'DELETE FROM "company" WHERE "id" = ?'
    )
    assert str(manager.delete(Company)) == 'DELETE FROM "company"'


def test_load_data_statement(manager):
    prepared = (
        manager.load_data("company", "id", "name")
        .where("employees", ">=", 10)
        .where("url", "is not", None, link="or")
        .prepare()
    )
    assert prepared.command_text == (
        'SELECT "id", "name" FROM "company" WHERE "employees" >= ? OR "url" IS NOT NULL'
    )
    assert prepared.parameters == (10,)


@pytest.mark.parametrize(
    ("operator", "value"),
    [("; DROP TABLE company; --", 1), ("IS", 5), ("BETWEEN", 1)],
)
def test_load_data_operator_whitelist(manager, operator, value):
    with pytest.raises(ConfigurationError):
        manager.load_data("company").where("id", operator, value)


def test_bind_named_and_positional():
    operation = PreparedOperation("x = ? AND y = ?", (Parameter("x"), 5))

    assert operation.bind(x=1) == (1, 5)
    assert operation.bind(7, 8) == (7, 8)
    with pytest.raises(ConfigurationError, match="'x'"):
        operation.bind()
    with pytest.raises(ConfigurationError, match="expects 2"):
        operation.bind(1)


def test_joining_same_type_twice_is_rejected(manager):
    operation = manager.load(Company).join(Employee, company.id == employee.company_id)

    with pytest.raises(ConfigurationError, match="already joined"):
        operation.join(Employee, employee.name == company.name)
    assert len(operation.joins) == 1


def test_insert_data_statement(manager):
    prepared = manager.insert_data("audit").columns("message", "level").prepare()

    assert prepared.command_text == 'INSERT INTO "audit" ("message", "level") VALUES (?, ?)'
    assert prepared.operation.parameter_names == ["message", "level"]

    fixed = manager.insert_data("audit").columns("message", "level").values("hi", Parameter("n"))
    assert fixed.prepare().parameters[0] == "hi"


def test_update_data_statement(manager):
    prepared = (
        manager.update_data("audit")
        .set(message="edited")
        .set_value("log level", 3)
        .where("id", "=", 9)
        .where("message", "is", None, link="or")
        .prepare()
    )

    assert prepared.command_text == (
        'UPDATE "audit" SET "message" = ?, "log level" = ? WHERE "id" = ? OR "message" IS NULL'
    )
    assert prepared.parameters == ("edited", 3, 9)


@pytest.mark.parametrize(
    "configure",
    [
        lambda manager: manager.insert_data(""),
        lambda manager: manager.insert_data("audit").prepare(),
        lambda manager: manager.insert_data("audit").columns("a").values(1, 2),
        lambda manager: manager.update_data("audit").prepare(),
        lambda manager: manager.update_data("audit").set(a=1).where("a", "BETWEEN", 1),
    ],
)
def test_table_builders_fail_fast(manager, configure):
    with pytest.raises(ConfigurationError):
        configure(manager)


def test_create_table_plan(manager):
    plan = (
        manager.create_table("audit")
        .column("id", int, primary_key=True, auto_increment=True)
        .column("message", str, not_null=True)
        .column("level", int, default=1)
        .column("source", str)
        .unique("message", "source")
        .index("by_level", "level")
        .plan()
    )

    assert plan.commands == [
        'CREATE TABLE "audit" ("id" INTEGER PRIMARY KEY AUTOINCREMENT, '
        '"message" TEXT NOT NULL, "level" INTEGER DEFAULT 1, "source" TEXT, '
        'UNIQUE("message", "source"))',
        'CREATE INDEX "idx_audit_by_level" ON "audit" ("level")',
    ]


@pytest.mark.parametrize(
    "configure",
    [
        lambda table: table.plan(),
        lambda table: table.column("a", int).column("A", str),
        lambda table: table.column("a", int, auto_increment=True),
        lambda table: table.column("a", int, primary_key=True).column("b", int, primary_key=True),
        lambda table: table.column("a", int).unique("a"),
        lambda table: table.column("a", int).index("by_b", "b"),
    ],
)
def test_create_table_fails_fast(manager, configure):
    with pytest.raises(ConfigurationError):
        configure(manager.create_table("audit"))
