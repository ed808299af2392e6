import json
from unittest.mock import AsyncMock

from conftest import FakeClock

from tripscout.services.cache_service import RedisCache, TieredCache, TTLCache


def test_entry_readable_until_ttl_then_absent():
    clock = FakeClock()
    cache = TTLCache(default_ttl=300, clock=clock)
    cache.set("flight:mumbai:goa", ["a"])

    clock.advance(299.9)
    assert cache.get("flight:mumbai:goa") == ["a"]

    clock.advance(0.1)
    assert cache.get("flight:mumbai:goa") is None
    assert len(cache) == 0


def test_per_entry_ttl_overrides_default():
    clock = FakeClock()
    cache = TTLCache(default_ttl=300, clock=clock)
    cache.set("short", 1, ttl=10)
    cache.set("long", 2)

    clock.advance(10)
    assert cache.get("short") is None
    assert cache.get("long") == 2


def test_delete_and_clear():
    cache = TTLCache(default_ttl=60, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.delete("a")
    assert cache.get("a") is None
    cache.clear()
    assert len(cache) == 0


async def test_redis_cache_disabled_without_url():
    cache = RedisCache("")
    assert await cache.get("anything") is None
    assert await cache.set("anything", {"x": 1}, ttl=60) is False


async def test_redis_cache_round_trips_json_through_client():
    client = AsyncMock()
    client.get.return_value = json.dumps({"x": 1})
    cache = RedisCache(client=client)

    assert await cache.set("k", {"x": 1}, ttl=900) is True
    client.set.assert_awaited_once_with("k", json.dumps({"x": 1}), ex=900)
    assert await cache.get("k") == {"x": 1}


async def test_redis_errors_are_treated_as_miss():
    client = AsyncMock()
    client.get.side_effect = ConnectionError("redis down")
    client.set.side_effect = ConnectionError("redis down")
    cache = RedisCache(client=client)

    assert await cache.get("k") is None
    assert await cache.set("k", [1], ttl=10) is False


async def test_tiered_cache_backfills_local_from_persisted():
    clock = FakeClock()
    client = AsyncMock()
    client.get.return_value = json.dumps([1, 2, 3])
    tiered = TieredCache("results", TTLCache(300, clock=clock), persisted=RedisCache(client=client))

    assert await tiered.get("key") == [1, 2, 3]
    client.get.assert_awaited_once_with("tripscout:results:key")

    client.get.reset_mock()
    assert await tiered.get("key") == [1, 2, 3]
    client.get.assert_not_awaited()


async def test_tiered_cache_writes_both_tiers():
    client = AsyncMock()
    tiered = TieredCache(
        "results",
        TTLCache(300, clock=FakeClock()),
        persisted=RedisCache(client=client),
        persisted_ttl=900,
    )
    await tiered.set("key", ["v"])

    assert tiered.local.get("key") == ["v"]
    client.set.assert_awaited_once_with("tripscout:results:key", json.dumps(["v"]), ex=900)


async def test_tiered_cache_discards_undecodable_entries():
    client = AsyncMock()
    client.get.return_value = json.dumps({"not": "a list"})

    def decode(raw):
        if not isinstance(raw, list):
            raise ValueError("bad entry")
        return raw

    tiered = TieredCache(
        "results", TTLCache(300, clock=FakeClock()), persisted=RedisCache(client=client), decode=decode
    )
    assert await tiered.get("key") is None
