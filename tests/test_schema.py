"""Schema creation, introspection and convergence against a live SQLite database."""

from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest
from models import BigCompany, Company, EvolvingV1, EvolvingV2, EvolvingV3, Pair, Tagged
from sqlalchemy.exc import IntegrityError

from entity_sql import (
    EntityManager,
    ManagerOptions,
    MigrationError,
    SchemaMismatchError,
    SQLiteDialect,
    TypeNotFoundError,
    fields,
)
from entity_sql.schema import (
    SchemaCreator,
    SchemaUpdater,
    TableDescriptor,
    UniqueDescriptor,
    ViewDescriptor,
)
from entity_sql.schema.updater import column_differs


def _names(manager, entity_type) -> list[str]:
    return [c.name for c in manager.schema(entity_type).columns]


def test_create_and_exists(manager):
    assert manager.exists(Company) is False
    assert manager.create(Company) is True
    assert manager.exists(Company) is True
    # second creation reports the existing object
    assert manager.create(Company) is False


def test_introspection_matches_layout(manager, cache):
    manager.model(Tagged).unique("full_name", "code")
    manager.create(Tagged)

    live = manager.schema(Tagged)
    layout = SQLiteDialect().table_layout(cache.get(Tagged))

    assert isinstance(live, TableDescriptor)
    assert [c.name for c in live.columns] == [c.name for c in layout.columns]
    for desired in layout.columns:
        assert not column_differs(desired, live.find_column(desired.name))
    assert live.uniques == (UniqueDescriptor(("name", "code")),)
    assert [i.name for i in live.indices] == ["by_name"]


def test_plan_of_matching_table_is_empty(cache):
    dialect = SQLiteDialect()
    client = SimpleNamespace(dialect=dialect)
    creator = SchemaCreator(client, cache.get)
    updater = SchemaUpdater(client, cache.get, creator)
    descriptor = cache.get(EvolvingV2)

    assert not updater.plan(descriptor, dialect.table_layout(descriptor))


def test_update_creates_missing_table_and_is_idempotent(manager):
    assert not manager.update_schema(EvolvingV1)
    assert manager.exists(EvolvingV1)
    assert len(manager.update_schema(EvolvingV1)) == 0


def test_additive_migration_preserves_rows(manager):
    manager.update_schema(EvolvingV1)
    manager.insert_entities([EvolvingV1(name="first"), EvolvingV1(name="second")])

    plan = manager.update_schema(EvolvingV2)

    assert plan
    assert _names(manager, EvolvingV2) == ["id", "name", "rank", "code", "label"]
    rows = manager.load_entities(EvolvingV2).order_by("id").execute_entities()
    assert [(r.id, r.name, r.rank, r.code) for r in rows] == [
        (1, "first", 0, None),
        (2, "second", 0, None),
    ]
    live = manager.schema(EvolvingV2)
    assert live.find_column("code").unique is True
    assert live.find_column("rank").not_null is True
    assert [i.name for i in live.indices] == ["by_label"]

    # converged: nothing left to do
    assert len(manager.update_schema(EvolvingV2)) == 0


def test_unique_column_is_enforced_after_migration(manager):
    manager.update_schema(EvolvingV1)
    manager.update_schema(EvolvingV2)
    manager.insert_entities([EvolvingV2(code="a")])

    with pytest.raises(IntegrityError):
        manager.insert_entities([EvolvingV2(code="a")])


def test_changed_column_is_recreated_with_warning(manager, caplog):
    manager.update_schema(EvolvingV1)
    manager.insert_entities([EvolvingV1(name="first")])

    with caplog.at_level(logging.WARNING, logger="entity_sql.schema.updater"):
        assert manager.update_schema(EvolvingV3)

    assert any("discarded" in record.getMessage() for record in caplog.records)
    assert manager.schema(EvolvingV3).find_column("name").type == "INTEGER"
    rows = manager.load(EvolvingV3).execute()
    assert rows == [{"id": 1, "name": None}]
    assert len(manager.update_schema(EvolvingV3)) == 0


def test_live_only_columns_are_kept_by_default(manager):
    manager.update_schema(EvolvingV2)
    manager.update_schema(EvolvingV1)

    assert _names(manager, EvolvingV1) == ["id", "name", "rank", "code", "label"]
    # the index set no longer matches the entity and is rebuilt
    assert manager.schema(EvolvingV1).indices == ()


def test_strict_drop_removes_live_only_columns(client, cache):
    manager = EntityManager(client, ManagerOptions(descriptor_cache=cache))
    manager.update_schema(EvolvingV2)
    manager.insert_entities([EvolvingV2(name="kept", rank=3, code="x")])

    strict = EntityManager(client, ManagerOptions(descriptor_cache=cache, strict_drop=True))
    strict.update_schema(EvolvingV1)

    assert _names(strict, EvolvingV1) == ["id", "name"]
    assert strict.load(EvolvingV1).execute() == [{"id": 1, "name": "kept"}]
    assert len(strict.update_schema(EvolvingV1)) == 0


def test_failed_unique_rebuild_leaves_original_intact(manager):
    manager.create(Pair)
    manager.insert_entities([Pair(a=1, b=1), Pair(a=1, b=1), Pair(a=2, b=1)])
    manager.model(Pair).unique("a", "b")

    with pytest.raises(IntegrityError):
        manager.update_schema(Pair)

    assert manager.schema(Pair).uniques == ()
    assert len(manager.load(Pair).execute()) == 3

    pair = fields(Pair)
    manager.delete(Pair).where(pair.id == 2).execute()
    manager.update_schema(Pair)

    assert manager.schema(Pair).uniques == (UniqueDescriptor(("a", "b")),)
    assert len(manager.load(Pair).execute()) == 2
    with pytest.raises(IntegrityError):
        manager.insert_entities([Pair(a=2, b=1)])


def test_remove_column(manager):
    manager.create(EvolvingV2)
    manager.insert_entities([EvolvingV2(name="n", label="l")])

    manager.remove_column(EvolvingV2, "label")

    live = manager.schema(EvolvingV2)
    assert [c.name for c in live.columns] == ["id", "name", "rank", "code"]
    assert live.indices == ()
    assert manager.load_data("evolving", "name").execute() == [{"name": "n"}]


def test_remove_column_errors(manager):
    manager.create(EvolvingV1)

    with pytest.raises(SchemaMismatchError):
        manager.remove_column(EvolvingV1, "missing")
    with pytest.raises(MigrationError):
        manager.remove_column(EvolvingV1, "id")


def test_alter_column_discards_data(manager):
    manager.create(EvolvingV2)
    manager.insert_entities([EvolvingV2(name="n", label="l")])

    manager.alter_column(EvolvingV2, "label")

    assert manager.load_data("evolving", "name", "label").execute() == [
        {"name": "n", "label": None}
    ]
    assert [i.name for i in manager.schema(EvolvingV2).indices] == ["by_label"]


def test_schema_of_missing_table(manager):
    with pytest.raises(TypeNotFoundError):
        manager.schema(Company)


def test_views_are_created_from_resources_and_never_migrated(manager):
    manager.create(Company)
    manager.insert_entities(
        [Company(name="small", employees=5), Company(name="large", employees=500)]
    )

    assert manager.create(BigCompany) is True
    assert isinstance(manager.schema(BigCompany), ViewDescriptor)
    assert len(manager.update_schema(BigCompany)) == 0
    assert manager.load_entities(BigCompany).execute_entities() == [
        BigCompany(id=2, name="large")
    ]

    manager.drop(BigCompany)
    assert manager.exists(BigCompany) is False


def test_custom_view_resolver(client, cache):
    calls = []

    def resolve(entity_type, resource):
        calls.append((entity_type, resource))
        return 'CREATE VIEW "big_company" AS SELECT 1 AS "id", \'x\' AS "name"'

    manager = EntityManager(client, ManagerOptions(descriptor_cache=cache, view_resolver=resolve))
    manager.create(BigCompany)

    assert calls == [(BigCompany, "big_company.sql")]
    assert manager.load(BigCompany).execute() == [{"id": 1, "name": "x"}]


def test_drop_table(manager):
    manager.create(Company)
    manager.drop(Company)
    assert manager.exists(Company) is False
