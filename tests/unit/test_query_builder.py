"""Unit tests for the QueryBuilder."""

import pytest

from hybridapi.application.services import QueryBuilder
from hybridapi.domain.entities import Filter, FilterGroup, FilterOperator, HybridMode, Pagination
from hybridapi.domain.exceptions import ValidationError

from tests.support.engine import make_world
from tests.support.entities import Article, Product


# ── Building ──


def test_building_methods_return_same_instance():
    query = QueryBuilder(Product)
    assert query.where("name", "lamp") is query
    assert query.order_by("name") is query
    assert query.limit(5) is query
    assert query.select("id") is query


def test_where_accepts_symbols_and_aliases():
    query = QueryBuilder(Product).where("price", ">=", 1).where("name", "!=", "x").where("stock", "not in", [1])
    operators = [f.operator for f in query.descriptor().filters]
    assert operators == [FilterOperator.GTE, FilterOperator.NE, FilterOperator.NOT_IN]


@pytest.mark.parametrize(
    "build",
    [
        lambda q: q.where("price", "~", 1),
        lambda q: q.where("price"),
        lambda q: q.where("", 1),
        lambda q: q.where_in("tags", "red"),
        lambda q: q.order_by("name", "sideways"),
        lambda q: q.limit(-1),
        lambda q: q.offset("3"),
        lambda q: q.for_page(0),
        lambda q: q.array_style("tags", "semicolon"),
        lambda q: q.where_group(lambda sub: sub.where("a", 1), "xor"),
        lambda q: q.apply("no_such_filter"),
    ],
)
def test_malformed_input_fails_at_build_time(build):
    with pytest.raises(ValidationError):
        build(QueryBuilder(Product))


def test_membership_values_are_frozen_into_tuples():
    query = QueryBuilder(Product).where_in("id", {3, 1, 2})
    assert query.descriptor().filters == (Filter("id", FilterOperator.IN, (1, 2, 3)),)


def test_where_group_builds_nested_condition():
    query = QueryBuilder(Product).where_group(lambda q: q.where("a", 1).where("b", 2), "and")
    (group,) = query.descriptor().filters
    assert isinstance(group, FilterGroup)
    assert group.boolean == "and"
    assert len(group.conditions) == 2


def test_empty_group_is_ignored():
    query = QueryBuilder(Product).where_group(lambda q: None)
    assert query.descriptor().filters == ()


def test_limit_after_for_page_switches_to_limit_offset():
    query = QueryBuilder(Product).for_page(2, 10).limit(5)
    assert query.descriptor().pagination == Pagination(limit=5)


def test_named_filters():
    query = QueryBuilder(Article).apply("published").apply("priced_above", 10)
    assert query.descriptor().filters == (
        Filter("published", FilterOperator.EQ, True),
        Filter("price", FilterOperator.GT, 10),
    )


def test_clone_is_independent():
    query = QueryBuilder(Product).where("a", 1)
    copy = query.clone().where("b", 2)
    assert len(query.descriptor().filters) == 1
    assert len(copy.descriptor().filters) == 2


# ── Terminal operations ──


@pytest.mark.asyncio
async def test_nothing_is_sent_before_a_terminal_call():
    world = make_world()
    query = world.service.query(Product).where("active", True).order_by("name")
    assert world.api.calls == []

    await query.get()
    assert len(world.api.calls) == 1
    assert world.api.calls[0]["params"] == {"active": "true", "sort": "name", "order": "asc"}


@pytest.mark.asyncio
async def test_builder_is_frozen_after_execution():
    world = make_world()
    query = world.service.query(Product)
    await query.get()
    assert query.is_frozen
    with pytest.raises(ValidationError):
        query.where("a", 1)
    assert not query.clone().is_frozen


@pytest.mark.asyncio
async def test_unbound_builder_cannot_execute():
    with pytest.raises(ValidationError):
        await QueryBuilder(Product).get()


@pytest.mark.asyncio
async def test_first_requests_a_single_record_keeping_offset():
    world = make_world()
    world.api.seed("products", [{"id": 1, "name": "a"}])
    found = await world.service.query(Product).offset(4).first()
    assert found.id == 1
    assert world.api.calls[-1]["params"] == {"limit": "1", "offset": "4"}


@pytest.mark.asyncio
async def test_paginate_returns_page_with_total():
    world = make_world()
    world.api.seed("products", [{"id": i} for i in range(1, 4)])
    page = await world.service.query(Product).paginate(page=1, per_page=2)
    assert page.total == 3
    assert page.per_page == 2
    assert world.api.calls[-1]["params"] == {"limit": "2", "offset": "0"}


@pytest.mark.asyncio
async def test_count_and_exists():
    world = make_world()
    world.api.seed("products", [{"id": 1}, {"id": 2}])
    assert await world.service.query(Product).count() == 2
    assert world.api.calls[-1]["params"] == {"aggregate[count]": "*"}
    assert await world.service.query(Product).exists() is True


@pytest.mark.asyncio
async def test_aggregate_needs_field_except_count():
    world = make_world()
    with pytest.raises(ValidationError):
        await world.service.query(Product).aggregate("sum")


@pytest.mark.asyncio
async def test_unknown_mode_override_is_rejected():
    world = make_world()
    with pytest.raises(ValidationError):
        await world.service.query(Product).get(mode="sideways")


@pytest.mark.asyncio
async def test_mode_override_reaches_router():
    world = make_world()
    world.store.put("product", {"id": 9, "name": "local"})
    items = await world.service.query(Product).get(mode=HybridMode.LOCAL_ONLY)
    assert [p.name for p in items] == ["local"]
    assert world.api.calls == []
