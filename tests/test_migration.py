"""Migration plans: ordered execution and compensation of completed steps."""

from __future__ import annotations

import logging
from contextlib import contextmanager

import pytest

from entity_sql.schema import MigrationPlan, run_plan, run_plan_async


class RecordingClient:
    """Client double recording commands and failing on selected ones."""

    is_async = False

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.commands: list[str] = []
        self.fail_on = fail_on or set()
        self.transactions = 0

    @contextmanager
    def transaction(self):
        self.transactions += 1
        yield object()

    def non_query(self, command, parameters=(), transaction=None):
        if command in self.fail_on:
            raise RuntimeError(f"failed: {command}")
        self.commands.append(command)
        return 0


class AsyncRecordingClient(RecordingClient):
    is_async = True

    def transaction(self):
        client = self

        class _Scope:
            async def __aenter__(self):
                client.transactions += 1
                return object()

            async def __aexit__(self, *exc_info):
                return False

        return _Scope()

    async def non_query(self, command, parameters=(), transaction=None):
        return RecordingClient.non_query(self, command, parameters, transaction)


def _plan() -> MigrationPlan:
    return (
        MigrationPlan()
        .add("create a", "drop a", "create a")
        .add("update b")
        .add("create c", "drop c")
        .add("explode")
    )


def test_plan_collects_commands():
    plan = _plan()
    assert len(plan) == 4
    assert plan.commands == ["create a", "update b", "create c", "explode"]
    assert not MigrationPlan()


def test_run_plan_executes_in_one_transaction():
    client = RecordingClient()
    run_plan(client, _plan())

    assert client.commands == ["create a", "update b", "create c", "explode"]
    assert client.transactions == 1


def test_run_plan_uses_given_transaction():
    client = RecordingClient()
    run_plan(client, _plan(), transaction=object())
    assert client.transactions == 0


def test_empty_plan_is_a_no_op():
    client = RecordingClient()
    run_plan(client, MigrationPlan())
    assert client.transactions == 0


def test_failure_compensates_in_reverse_and_reraises():
    client = RecordingClient(fail_on={"explode"})

    with pytest.raises(RuntimeError, match="explode"):
        run_plan(client, _plan())

    assert client.commands == ["create a", "update b", "create c", "drop c", "drop a"]


def test_failed_compensation_is_logged(caplog):
    client = RecordingClient(fail_on={"explode", "drop c"})

    with caplog.at_level(logging.WARNING, logger="entity_sql.schema.migration"):
        with pytest.raises(RuntimeError, match="explode"):
            run_plan(client, _plan())

    assert client.commands[-1] == "drop a"
    assert any("Failed to compensate" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio()
async def test_async_failure_compensates():
    client = AsyncRecordingClient(fail_on={"explode"})

    with pytest.raises(RuntimeError):
        await run_plan_async(client, _plan())

    assert client.commands[-2:] == ["drop c", "drop a"]
    assert client.transactions == 1
