"""Shared fixtures: an in-memory SQLite engine, clients and managers."""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from entity_sql import (
    EntityDescriptorCache,
    EntityManager,
    ManagerOptions,
    OperationPreparator,
    SQLAlchemyClient,
    SQLiteDialect,
)


@pytest.fixture
def engine():
    """Single shared in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def client(engine):
    return SQLAlchemyClient(engine)


@pytest.fixture
def cache():
    """Fresh descriptor cache so model() changes never leak between tests."""
    return EntityDescriptorCache()


@pytest.fixture
def manager(client, cache):
    return EntityManager(client, ManagerOptions(descriptor_cache=cache))


@pytest.fixture
def dialect():
    return SQLiteDialect()


@pytest.fixture
def preparator(dialect):
    return OperationPreparator(dialect)
