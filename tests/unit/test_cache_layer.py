"""Unit tests for the cache layer and its backends."""

import pytest

from hybridapi.application.services import CacheLayer
from hybridapi.domain.entities import CacheEntry, identity_tag, type_tag
from hybridapi.infrastructure.cache import MemoryCacheBackend, TieredCacheBackend

from tests.support.engine import make_world
from tests.support.entities import Article, Author, Customer, Product
from tests.support.fakes import FakeClock, make_settings


def _layer(**overrides):
    clock = FakeClock()
    backend = MemoryCacheBackend()
    return CacheLayer(backend, make_settings(**overrides), clock=clock), backend, clock


# ── Freshness ──


@pytest.mark.asyncio
async def test_entry_is_fresh_until_exactly_its_ttl():
    cache, _, clock = _layer()
    await cache.put("sig", {"v": 1}, ttl=10)

    clock.advance(9.999)
    assert await cache.get("sig") == {"v": 1}

    clock.advance(0.001)
    assert await cache.get("sig") is None


@pytest.mark.asyncio
async def test_stale_entry_is_evicted_on_read():
    cache, backend, clock = _layer()
    await cache.put("sig", [1], ttl=1)
    clock.advance(5)
    assert await cache.get("sig") is None
    assert await backend.get("sig") is None


@pytest.mark.asyncio
async def test_remember_fetches_once_while_fresh():
    cache, _, clock = _layer()
    calls = []

    async def fetch():
        calls.append(1)
        return {"n": len(calls)}

    assert await cache.remember("sig", fetch, ttl=30) == {"n": 1}
    assert await cache.remember("sig", fetch, ttl=30) == {"n": 1}
    clock.advance(31)
    assert await cache.remember("sig", fetch, ttl=30) == {"n": 2}
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_remember_does_not_store_failures():
    cache, backend, _ = _layer()

    async def fetch():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await cache.remember("sig", fetch, ttl=30)
    assert (await backend.stats(0)).entries == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides, ttl", [({"cache_enabled": False}, 30), ({}, 0)])
async def test_disabled_cache_or_zero_ttl_bypasses_storage(overrides, ttl):
    cache, backend, _ = _layer(**overrides)
    calls = []

    async def fetch():
        calls.append(1)
        return "payload"

    await cache.remember("sig", fetch, ttl=ttl)
    await cache.remember("sig", fetch, ttl=ttl)
    assert len(calls) == 2
    assert (await backend.stats(0)).entries == 0


@pytest.mark.asyncio
async def test_payload_is_stored_as_json_safe_copy():
    cache, _, _ = _layer()
    payload = {"items": [{"id": 1}]}
    await cache.put("sig", payload, ttl=30)
    payload["items"].append({"id": 2})
    assert await cache.get("sig") == {"items": [{"id": 1}]}


# ── TTL resolution ──


def test_ttl_precedence():
    cache, _, _ = _layer(cache_default_ttl=60.0, entities={"customer": {"cache_ttl": 5}})
    assert cache.resolve_ttl(Customer, 1.5) == 1.5
    assert cache.resolve_ttl(Customer) == 5.0
    assert cache.resolve_ttl(Product) == 60.0

    plain, _, _ = _layer(cache_default_ttl=60.0)
    assert plain.resolve_ttl(Customer) == 120.0


def test_signatures_are_deterministic_and_distinct():
    cache, _, _ = _layer()
    a = cache.signature_for_query("product", "/products", {"b": "2", "a": "1"})
    b = cache.signature_for_query("product", "/products", {"a": "1", "b": "2"})
    assert a == b
    assert a != cache.signature_for_query("product", "/products", {"a": "1"})
    assert cache.signature_for_identity("product", 1) == cache.signature_for_identity("product", "1")
    assert cache.signature_for_identity("product", 1) != cache.signature_for_identity("article", 1)


# ── Invalidation ──


@pytest.mark.asyncio
async def test_invalidate_by_tag_or_signature():
    cache, _, _ = _layer()
    await cache.put("a", 1, 30, {"type:product"})
    await cache.put("b", 2, 30, {"type:product", "entity:product:2"})
    await cache.put("c", 3, 30, {"type:article"})

    assert await cache.invalidate("type:product") == 2
    assert await cache.invalidate("c") == 1
    assert await cache.invalidate("missing") == 0


@pytest.mark.asyncio
async def test_invalidate_entity_covers_related_entities():
    cache, _, _ = _layer()
    await cache.put("article-list", [], 30, {type_tag("article")})
    await cache.put("article-7", {}, 30, {identity_tag("article", 7)})
    await cache.put("product-list", [], 30, {type_tag("product")})

    author = Author({"id": 1, "article_ids": [7]})
    await cache.invalidate_entity(author)

    assert await cache.get("article-list") is None
    assert await cache.get("article-7") is None
    assert await cache.get("product-list") == []


@pytest.mark.asyncio
async def test_writes_invalidate_only_their_entity_type():
    world = make_world()
    world.api.seed("products", [{"id": 1, "name": "lamp"}])
    world.api.seed("articles", [{"id": 1, "title": "hello"}])

    await world.service.all(Product)
    await world.service.all(Article)
    await world.service.find(Product, 1)
    await world.service.all(Product)
    assert len(world.api.calls_to("GET")) == 3

    await world.service.create(Product, {"name": "desk"})

    products = await world.service.all(Product)
    assert sorted(p.name for p in products) == ["desk", "lamp"]
    await world.service.all(Article)
    await world.service.find(Product, 1)
    # product list and product 1 were refetched, articles came from cache
    assert len(world.api.calls_to("GET")) == 5


@pytest.mark.asyncio
async def test_update_invalidates_cached_single_entity():
    world = make_world()
    world.api.seed("products", [{"id": 1, "name": "lamp"}])
    product = await world.service.find(Product, 1)
    await world.service.update(product, {"name": "desk lamp"})
    assert (await world.service.find(Product, 1)).name == "desk lamp"


# ── Maintenance ──


@pytest.mark.asyncio
async def test_purge_and_stats():
    cache, _, clock = _layer()
    await cache.put("short", 1, 5, {"t"})
    await cache.put("long", 2, 50, {"t"})
    clock.advance(10)

    stats = await cache.stats()
    assert (stats.entries, stats.fresh, stats.expired, stats.tags) == (2, 1, 1, 1)
    assert await cache.purge_expired() == 1
    assert (await cache.stats()).entries == 1
    assert await cache.clear() == 1


@pytest.mark.asyncio
async def test_warm_up_serves_finds_without_remote_calls():
    world = make_world()
    stored = await world.engine.cache.warm_up(
        Customer, [{"customer_id": "c-1", "customer_name": "Ada"}, {"customer_name": "no id"}]
    )
    assert stored == 1

    customer = await world.service.find(Customer, "c-1", mode="remote_only")
    assert customer.name == "Ada"
    assert world.api.calls == []


# ── Backends ──


def _entry(key, tags=(), created_at=0.0, ttl=100.0):
    return CacheEntry(key=key, payload={"key": key}, created_at=created_at, ttl=ttl, tags=frozenset(tags))


@pytest.mark.asyncio
async def test_memory_backend_evicts_oldest_beyond_capacity():
    backend = MemoryCacheBackend(max_entries=2)
    await backend.set(_entry("a", {"x"}))
    await backend.set(_entry("b"))
    await backend.set(_entry("c"))
    assert await backend.get("a") is None
    assert await backend.get("c") is not None
    assert await backend.delete_tag("x") == 0


@pytest.mark.asyncio
async def test_memory_backend_replacing_entry_updates_tag_index():
    backend = MemoryCacheBackend()
    await backend.set(_entry("a", {"old"}))
    await backend.set(_entry("a", {"new"}))
    assert await backend.delete_tag("old") == 0
    assert await backend.delete_tag("new") == 1


@pytest.mark.asyncio
async def test_tiered_backend_back_fills_faster_tiers():
    fast, slow = MemoryCacheBackend(), MemoryCacheBackend()
    tiered = TieredCacheBackend([fast, slow])
    await slow.set(_entry("k", {"t"}))

    assert (await tiered.get("k")).payload == {"key": "k"}
    assert await fast.get("k") is not None

    assert await tiered.delete_tag("t") == 1
    assert await fast.get("k") is None
    assert await slow.get("k") is None


@pytest.mark.asyncio
async def test_tiered_backend_writes_everywhere_and_reports_last_tier():
    fast, slow = MemoryCacheBackend(max_entries=1), MemoryCacheBackend()
    tiered = TieredCacheBackend([fast, slow])
    await tiered.set(_entry("a"))
    await tiered.set(_entry("b"))
    assert (await tiered.stats(0)).entries == 2
    assert await tiered.clear() == 2


def test_tiered_backend_needs_a_tier():
    with pytest.raises(ValueError):
        TieredCacheBackend([])
