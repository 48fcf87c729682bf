"""Schema model, descriptor cache, creation, migration and update."""

from __future__ import annotations

from .cache import EntityDescriptorCache, EntityModel, build_descriptor, default_cache
from .creator import SchemaCreator, default_view_resolver
from .descriptors import (
    Column,
    ColumnDescriptor,
    EntityDescriptor,
    IndexDescriptor,
    SchemaColumnDescriptor,
    SchemaDescriptor,
    TableDescriptor,
    UniqueDescriptor,
    ViewDescriptor,
)
from .migration import MigrationPlan, MigrationStep, run_plan, run_plan_async
from .updater import SchemaUpdater

__all__: list[str] = [
    "Column",
    "ColumnDescriptor",
    "EntityDescriptor",
    "EntityDescriptorCache",
    "EntityModel",
    "IndexDescriptor",
    "MigrationPlan",
    "MigrationStep",
    "SchemaColumnDescriptor",
    "SchemaCreator",
    "SchemaDescriptor",
    "SchemaUpdater",
    "TableDescriptor",
    "UniqueDescriptor",
    "ViewDescriptor",
    "build_descriptor",
    "default_cache",
    "default_view_resolver",
    "run_plan",
    "run_plan_async",
]
