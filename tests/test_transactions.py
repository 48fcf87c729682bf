"""Transactions and the single-writer lock."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
from models import Company
from sqlalchemy import create_engine

from entity_sql import (
    EntityDescriptorCache,
    EntityManager,
    ManagerOptions,
    PostgreSQLDialect,
    SQLAlchemyClient,
    TransactionError,
    count,
)


def _lock_is_free(client) -> bool:
    """Try to take the writer lock from another thread."""

    def try_acquire() -> bool:
        acquired = client._lock.acquire(blocking=False)
        if acquired:
            client._lock.release()
        return acquired

    with ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(try_acquire).result()


def test_transaction_holds_writer_lock(client):
    assert _lock_is_free(client)
    with client.transaction():
        assert not _lock_is_free(client)
    assert _lock_is_free(client)


def test_lock_released_after_exception(client):
    with pytest.raises(RuntimeError), client.transaction():
        raise RuntimeError("boom")

    assert _lock_is_free(client)


def test_dialect_without_writer_lock_never_locks():
    dialect = PostgreSQLDialect()
    lock = MagicMock()
    begin = MagicMock(return_value="tx")

    assert dialect.begin_transaction(lock, begin) == "tx"
    dialect.end_transaction(lock)

    lock.acquire.assert_not_called()
    lock.release.assert_not_called()


def test_failed_begin_releases_lock(dialect):
    lock = MagicMock()

    with pytest.raises(ValueError):
        dialect.begin_transaction(lock, MagicMock(side_effect=ValueError("no connection")))

    lock.acquire.assert_called_once()
    lock.release.assert_called_once()


def test_ended_transaction_handle_is_rejected(client):
    with client.transaction() as tx:
        assert tx.active
    assert not tx.active

    with pytest.raises(TransactionError):
        client.non_query("SELECT 1", transaction=tx)


def test_rollback_discards_writes(client):
    client.non_query('CREATE TABLE "t" ("v" INTEGER)')

    with pytest.raises(RuntimeError), client.transaction() as tx:
        client.non_query('INSERT INTO "t" ("v") VALUES (?)', (1,), transaction=tx)
        assert client.scalar('SELECT COUNT(*) FROM "t"', transaction=tx) == 1
        raise RuntimeError("boom")

    assert client.scalar('SELECT COUNT(*) FROM "t"') == 0


def test_commit_persists_writes(client):
    client.non_query('CREATE TABLE "t" ("v" INTEGER)')

    with client.transaction() as tx:
        client.non_query('INSERT INTO "t" ("v") VALUES (?)', (1,), transaction=tx)
        client.non_query('INSERT INTO "t" ("v") VALUES (?)', (2,), transaction=tx)

    assert sorted(client.set('SELECT "v" FROM "t"')) == [1, 2]


def test_concurrent_writers_are_serialized(tmp_path):
    """Read-then-insert in many threads only stays consistent under the writer lock."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'writers.db'}",
        connect_args={"check_same_thread": False},
    )
    manager = EntityManager(
        SQLAlchemyClient(engine), ManagerOptions(descriptor_cache=EntityDescriptorCache())
    )
    manager.create(Company)

    def write(_: int) -> None:
        with manager.transaction() as tx:
            seen = manager.load(Company, count()).execute_scalar(transaction=tx)
            manager.insert_entities([Company(name=f"c{seen}")], transaction=tx)

    try:
        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(write, range(40)))

        names = set(manager.load_data("company", "name").execute_set())
        assert names == {f"c{i}" for i in range(40)}
    finally:
        engine.dispose()


def test_write_outside_own_transaction_is_rejected(client):
    client.non_query('CREATE TABLE "t" ("v" INTEGER)')

    with client.transaction() as tx:
        with pytest.raises(TransactionError, match="transaction="):
            client.non_query('INSERT INTO "t" ("v") VALUES (1)')
        with pytest.raises(TransactionError), client.transaction():
            pass
        assert client.scalar('SELECT COUNT(*) FROM "t"') == 0
        client.non_query('INSERT INTO "t" ("v") VALUES (?)', (2,), transaction=tx)

    assert client.scalar('SELECT COUNT(*) FROM "t"') == 1
    assert _lock_is_free(client)
