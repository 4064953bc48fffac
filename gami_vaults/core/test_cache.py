from __future__ import annotations

import asyncio

import pytest

from gami_vaults.core.cache import CacheEntry, CacheKeys, TTLCache


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(clock=clock)


def test_entry_expiry_is_strictly_after_ttl():
    entry = CacheEntry(data=1, stored_at=10.0, ttl=5.0)
    assert not entry.is_expired(15.0)
    assert entry.is_expired(15.001)


def test_get_after_ttl_returns_none(cache, clock):
    cache.set("k", "v", ttl_s=0.1)
    clock.advance(0.05)
    assert cache.get("k") == "v"
    clock.advance(0.1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_lookup_distinguishes_cached_none(cache):
    cache.set("k", None, ttl_s=10)
    assert cache.lookup("k") == (True, None)
    assert cache.lookup("missing") == (False, None)


def test_has_delete_clear(cache):
    cache.set("a", 1, ttl_s=10)
    cache.set("b", 2, ttl_s=10)
    assert cache.has("a")
    assert cache.delete("a") is True
    assert cache.delete("a") is False
    cache.clear()
    assert not cache.has("b")


def test_sweep_removes_only_expired(cache, clock):
    cache.set("short", 1, ttl_s=1)
    cache.set("long", 2, ttl_s=100)
    clock.advance(5)
    assert cache.sweep() == 1
    assert cache.stats() == {"size": 1, "keys": ["long"]}


def test_mutable_values_are_copied(cache):
    items = [1, 2]
    cache.set("list", items, ttl_s=10)
    items.append(3)
    got = cache.get("list")
    assert got == [1, 2]
    got.append(4)
    assert cache.get("list") == [1, 2]


def test_set_overwrites_and_restarts_ttl(cache, clock):
    cache.set("k", 1, ttl_s=10)
    clock.advance(8)
    cache.set("k", 2, ttl_s=10)
    clock.advance(8)
    assert cache.get("k") == 2


@pytest.mark.asyncio
async def test_sweep_loop_runs_until_closed(clock):
    cache = TTLCache(clock=clock, sweep_interval_s=0.01)
    cache.set("k", 1, ttl_s=1)
    clock.advance(2)
    async with cache:
        assert cache.running
        for _ in range(50):
            if len(cache) == 0:
                break
            await asyncio.sleep(0.01)
        assert len(cache) == 0
    assert not cache.running


@pytest.mark.asyncio
async def test_start_is_idempotent_and_close_without_start(clock):
    cache = TTLCache(clock=clock)
    await cache.close()
    cache.start()
    task = cache._sweep_task
    cache.start()
    assert cache._sweep_task is task
    await cache.close()
    assert task.cancelled()


def test_cache_keys():
    assert CacheKeys.vaults([8453, 1]) == "vaults:1,8453"
    assert CacheKeys.vaults([1], "lagoon") == "vaults:1:lagoon"
    assert CacheKeys.vault(1, "0xABC") == "vault:1:0xabc"
    assert CacheKeys.redemptions(1, "0xA", "0xB") == "redemptions:1:0xa:0xb"
    assert CacheKeys.historical(1, "0xA", "7d") == "historical:1:0xa:7d"
    assert CacheKeys.stats([1]) == "stats:1"
    assert CacheKeys.portfolio(8453, "0xAB") == "portfolio:8453:0xab"
    assert CacheKeys.activity(1, "0xCD") == "activity:1:0xcd"
