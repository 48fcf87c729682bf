"""Removal of all rows of an entity table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..schema.descriptors import EntityDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TruncateOptions:
    """
    Attributes:
        reset_identity: Restart the auto-increment sequence, so the next
            inserted row receives key 1.
    """

    reset_identity: bool = False


def truncate(
    client: Any,
    descriptor: EntityDescriptor,
    options: TruncateOptions | None = None,
    transaction: Any = None,
) -> None:
    options = options or TruncateOptions()
    operations = client.dialect.truncate(descriptor, options.reset_identity)
    logger.debug(
        "Truncating %s (reset_identity=%s)", descriptor.table_name, options.reset_identity
    )
    if transaction is not None:
        for operation in operations:
            client.non_query(operation.command_text, operation.parameters, transaction=transaction)
        return
    with client.transaction() as scoped:
        for operation in operations:
            client.non_query(operation.command_text, operation.parameters, transaction=scoped)


async def truncate_async(
    client: Any,
    descriptor: EntityDescriptor,
    options: TruncateOptions | None = None,
    transaction: Any = None,
) -> None:
    options = options or TruncateOptions()
    operations = client.dialect.truncate(descriptor, options.reset_identity)
    logger.debug(
        "Truncating %s (reset_identity=%s)", descriptor.table_name, options.reset_identity
    )
    if transaction is not None:
        for operation in operations:
            await client.non_query(
                operation.command_text, operation.parameters, transaction=transaction
            )
        return
    async with client.transaction() as scoped:
        for operation in operations:
            await client.non_query(
                operation.command_text, operation.parameters, transaction=scoped
            )


__all__: list[str] = ["TruncateOptions", "truncate", "truncate_async"]
