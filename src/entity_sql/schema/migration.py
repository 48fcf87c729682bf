"""
Migration plans.

Dialects express schema changes as a :class:`MigrationPlan`: an ordered
list of DDL/DML steps, each optionally paired with a compensating undo
operation. :func:`run_plan` / :func:`run_plan_async` execute a plan inside
a transaction. When a step fails, the steps that already completed are
compensated in reverse order and the original error is re-raised.

Compensation matters for engines whose drivers commit DDL outside the
surrounding transaction (pysqlite); engines with transactional DDL simply
roll back.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from ..operations.prepared import PreparedOperation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationStep:
    """A single operation with an optional compensating undo."""

    operation: PreparedOperation
    undo: PreparedOperation | None = None
    description: str = ""


@dataclass
class MigrationPlan:
    """Ordered steps produced by the dialect migration primitives."""

    steps: list[MigrationStep] = field(default_factory=list)

    def add(
        self,
        operation: PreparedOperation | str,
        undo: PreparedOperation | str | None = None,
        description: str = "",
    ) -> MigrationPlan:
        self.steps.append(
            MigrationStep(_as_operation(operation), _as_operation(undo), description)
        )
        return self

    def extend(self, other: MigrationPlan) -> MigrationPlan:
        self.steps.extend(other.steps)
        return self

    @property
    def commands(self) -> list[str]:
        return [step.operation.command_text for step in self.steps]

    def __iter__(self) -> Iterator[MigrationStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def __bool__(self) -> bool:
        return bool(self.steps)


def _as_operation(value: Any) -> Any:
    if isinstance(value, str):
        return PreparedOperation(value)
    return value


def run_plan(client: Any, plan: MigrationPlan, transaction: Any = None) -> None:
    """Execute ``plan`` on a synchronous client."""
    if not plan:
        return
    if transaction is not None:
        _apply(client, plan, transaction)
        return
    with client.transaction() as scoped:
        _apply(client, plan, scoped)


def _apply(client: Any, plan: MigrationPlan, transaction: Any) -> None:
    completed: list[MigrationStep] = []
    for step in plan:
        logger.debug("Migration step: %s", step.description or step.operation.command_text)
        try:
            client.non_query(
                step.operation.command_text,
                step.operation.parameters,
                transaction=transaction,
            )
        except Exception:
            _compensate(client, completed, transaction)
            raise
        completed.append(step)


def _compensate(client: Any, completed: list[MigrationStep], transaction: Any) -> None:
    for step in reversed(completed):
        if step.undo is None:
            continue
        try:
            client.non_query(
                step.undo.command_text, step.undo.parameters, transaction=transaction
            )
        except Exception as exc:
            logger.warning(
                "Failed to compensate migration step '%s': %s",
                step.description or step.operation.command_text,
                exc,
            )


async def run_plan_async(
    client: Any, plan: MigrationPlan, transaction: Any = None
) -> None:
    """Execute ``plan`` on an asynchronous client."""
    if not plan:
        return
    if transaction is not None:
        await _apply_async(client, plan, transaction)
        return
    async with client.transaction() as scoped:
        await _apply_async(client, plan, scoped)


async def _apply_async(client: Any, plan: MigrationPlan, transaction: Any) -> None:
    completed: list[MigrationStep] = []
    for step in plan:
        logger.debug("Migration step: %s", step.description or step.operation.command_text)
        try:
            await client.non_query(
                step.operation.command_text,
                step.operation.parameters,
                transaction=transaction,
            )
        except Exception:
            await _compensate_async(client, completed, transaction)
            raise
        completed.append(step)


async def _compensate_async(
    client: Any, completed: list[MigrationStep], transaction: Any
) -> None:
    for step in reversed(completed):
        if step.undo is None:
            continue
        try:
            await client.non_query(
                step.undo.command_text, step.undo.parameters, transaction=transaction
            )
        except Exception as exc:
            logger.warning(
                "Failed to compensate migration step '%s': %s",
                step.description or step.operation.command_text,
                exc,
            )


__all__: list[str] = [
    "MigrationPlan",
    "MigrationStep",
    "run_plan",
    "run_plan_async",
]
