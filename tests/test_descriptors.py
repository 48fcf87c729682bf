"""Descriptor derivation, validation and the EntityModel accessor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

import pytest
from models import Company, Tagged, ValueModel
from pydantic import BaseModel

from entity_sql import Column, EntityDescriptorCache, MappingError, UnknownFieldError
from entity_sql.schema import EntityModel, IndexDescriptor, UniqueDescriptor, build_descriptor


def test_pydantic_model_descriptor():
    descriptor = build_descriptor(Company)

    assert descriptor.table_name == "company"
    assert descriptor.column_names == ["id", "name", "employees", "url"]
    assert descriptor.primary_key is not None
    assert descriptor.primary_key.name == "id"
    assert descriptor.primary_key.auto_increment is True
    assert descriptor.get_column("name").not_null is True


def test_optional_is_unwrapped_but_not_null_is_explicit():
    descriptor = build_descriptor(Company)
    url = descriptor.get_column("url")

    assert url.python_type is str
    assert url.not_null is False
    # a non-optional annotation does not imply NOT NULL either
    assert descriptor.get_column("employees").not_null is False


def test_dataclass_markers_names_and_ignore():
    descriptor = build_descriptor(Tagged)

    assert descriptor.table_name == "tagged"
    assert descriptor.column_names == ["id", "name", "code"]
    assert descriptor.get_column("full_name").name == "name"
    assert descriptor.get_column("code").unique is True
    assert descriptor.indices == (IndexDescriptor("by_name", ("name",)),)


def test_find_column_is_case_insensitive_fallback():
    descriptor = build_descriptor(ValueModel)
    assert descriptor.find_column("INTEGER") is descriptor.get_column("integer")
    assert descriptor.find_column("missing") is None


def test_unknown_field_suggests_close_names():
    descriptor = build_descriptor(Company)

    with pytest.raises(UnknownFieldError) as exc_info:
        descriptor.get_column("nmae")

    assert "name" in exc_info.value.suggestions
    payload = exc_info.value.to_dict()
    assert payload["error"] == "UNKNOWN_FIELD"
    assert payload["entity"] == "Company"


def test_two_primary_keys_rejected():
    class Broken(BaseModel):
        a: Annotated[int, Column(primary_key=True)] = 0
        b: Annotated[int, Column(primary_key=True)] = 0

    with pytest.raises(MappingError, match="more than one primary key"):
        build_descriptor(Broken)


def test_auto_increment_requires_primary_key():
    @dataclass
    class Broken:
        a: Annotated[int, Column(auto_increment=True)] = 0

    with pytest.raises(MappingError, match="auto-increment"):
        build_descriptor(Broken)


def test_duplicate_column_names_rejected():
    @dataclass
    class Broken:
        a: int = 0
        b: Annotated[int, Column(name="A")] = 0

    with pytest.raises(MappingError, match="Duplicate column"):
        build_descriptor(Broken)


def test_plain_class_cannot_be_mapped():
    class Plain:
        a: int = 0

    with pytest.raises(MappingError, match="cannot be mapped"):
        build_descriptor(Plain)


def test_cache_returns_same_descriptor():
    cache = EntityDescriptorCache()
    assert cache.get(Company) is cache(Company)
    assert Company in cache


def test_entity_model_single_unique_sets_column_flag():
    cache = EntityDescriptorCache()
    EntityModel(cache, Company).unique("name")

    descriptor = cache.get(Company)
    assert descriptor.get_column("name").unique is True
    assert descriptor.uniques == ()


def test_entity_model_unique_group_and_index():
    cache = EntityDescriptorCache()
    model = EntityModel(cache, ValueModel)
    model.unique("integer", "string").index("by_string", "string")
    # declaring the same group again is a no-op
    model.unique("string", "integer")

    descriptor = cache.get(ValueModel)
    assert descriptor.uniques == (UniqueDescriptor(("integer", "string")),)
    assert descriptor.indices == (IndexDescriptor("by_string", ("string",)),)


def test_entity_model_replaces_descriptor_immutably():
    cache = EntityDescriptorCache()
    before = cache.get(Company)

    EntityModel(cache, Company).not_null("url").default("employees", 1).table("companies")

    after = cache.get(Company)
    assert after is not before
    assert before.table_name == "company"
    assert after.table_name == "companies"
    assert after.get_column("url").not_null is True
    assert after.get_column("employees").default == 1


def test_entity_model_primary_key_moves_flag():
    cache = EntityDescriptorCache()
    EntityModel(cache, ValueModel).primary_key("integer")

    descriptor = cache.get(ValueModel)
    assert descriptor.primary_key is not None
    assert descriptor.primary_key.name == "integer"
    assert descriptor.get_column("id").primary_key is False
    assert descriptor.get_column("id").auto_increment is False


def test_entity_model_rejects_unknown_field():
    cache = EntityDescriptorCache()
    with pytest.raises(UnknownFieldError):
        EntityModel(cache, Company).index("by_missing", "missing")
