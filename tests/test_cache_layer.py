"""
Tests for the read-through cache layer and its degradation behaviour.
"""

import asyncio
import json
import time

import pytest

from app.cache.keys import board_tasks_key, task_comments_key, task_mutation_keys
from app.cache.layer import CacheLayer

from conftest import FailingRedis, HangingRedis, UnreachableRedis


def counting_loader(value):
    calls = {"count": 0}

    async def loader():
        calls["count"] += 1
        await asyncio.sleep(0.01)
        return value

    return loader, calls


class TestKeys:
    def test_keys_are_deterministic(self):
        assert board_tasks_key(5) == board_tasks_key(5) == "board:5:tasks"
        assert task_comments_key(9) == "task:9:comments"

    def test_mutation_keys_same_board(self):
        assert task_mutation_keys(9, 5) == ["board:5:tasks", "task:9:comments"]
        assert task_mutation_keys(9, 5, 5) == ["board:5:tasks", "task:9:comments"]

    def test_mutation_keys_board_move(self):
        assert task_mutation_keys(9, 5, 6) == [
            "board:5:tasks",
            "task:9:comments",
            "board:6:tasks",
        ]


class TestReadThrough:
    @pytest.mark.asyncio
    async def test_miss_loads_and_populates_with_default_ttl(self, cache, fake_redis):
        loader, calls = counting_loader([{"id": 1}])

        value = await cache.get("board:1:tasks", loader=loader)

        assert value == [{"id": 1}]
        assert calls["count"] == 1
        assert json.loads(fake_redis.store["test:board:1:tasks"]) == [{"id": 1}]
        assert fake_redis.ttls["test:board:1:tasks"] == 60

    @pytest.mark.asyncio
    async def test_hit_skips_loader(self, cache):
        loader, calls = counting_loader([{"id": 1}])

        first = await cache.get("board:1:tasks", loader=loader)
        second = await cache.get("board:1:tasks", loader=loader)

        assert first == second
        assert calls["count"] == 1
        assert cache.stats["hits"] == 1
        assert cache.stats["misses"] == 1

    @pytest.mark.asyncio
    async def test_empty_list_is_cached(self, cache):
        loader, calls = counting_loader([])

        assert await cache.get("task:3:comments", loader=loader) == []
        assert await cache.get("task:3:comments", loader=loader) == []
        assert calls["count"] == 1

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self, cache, fake_redis):
        loader, calls = counting_loader(None)

        assert await cache.get("board:1:tasks", loader=loader) is None
        assert fake_redis.store == {}

    @pytest.mark.asyncio
    async def test_explicit_ttl(self, cache, fake_redis):
        await cache.set("board:2:tasks", [1, 2], ttl=5)
        assert fake_redis.ttls["test:board:2:tasks"] == 5
        assert await cache.get("board:2:tasks") == [1, 2]

    @pytest.mark.asyncio
    async def test_concurrent_misses_load_once(self, cache):
        loader, calls = counting_loader([{"id": 1}])

        results = await asyncio.gather(
            *(cache.get("board:1:tasks", loader=loader) for _ in range(5))
        )

        assert calls["count"] == 1
        assert all(result == [{"id": 1}] for result in results)

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_a_miss(self, cache, fake_redis):
        fake_redis.store["test:board:1:tasks"] = "{not json"
        loader, calls = counting_loader([{"id": 2}])

        assert await cache.get("board:1:tasks", loader=loader) == [{"id": 2}]
        assert calls["count"] == 1


class TestInvalidation:
    @pytest.mark.asyncio
    async def test_invalidate_removes_keys(self, cache, fake_redis):
        await cache.set("board:1:tasks", [1])
        await cache.set("task:4:comments", [2])
        await cache.set("board:2:tasks", [3])

        await cache.invalidate("board:1:tasks", "task:4:comments", "board:1:tasks")

        assert list(fake_redis.store) == ["test:board:2:tasks"]
        assert cache.stats["invalidations"] == 2

    @pytest.mark.asyncio
    async def test_invalidate_nothing_is_noop(self, cache):
        await cache.invalidate()
        assert cache.stats["invalidations"] == 0


class TestDegradation:
    @pytest.mark.asyncio
    async def test_unreachable_at_startup_passes_through(self, settings):
        layer = CacheLayer(settings, redis=UnreachableRedis())
        await layer.init_cache()
        loader, calls = counting_loader([1])

        assert not layer.available
        assert await layer.get("k", loader=loader) == [1]
        assert await layer.get("k", loader=loader) == [1]
        assert calls["count"] == 2
        await layer.set("k", [1])
        await layer.invalidate("k")
        assert await layer.ping() is False

    @pytest.mark.asyncio
    async def test_failing_operations_are_swallowed(self, settings):
        layer = CacheLayer(settings, redis=FailingRedis())
        await layer.init_cache()
        loader, calls = counting_loader([1])

        assert await layer.get("k", loader=loader) == [1]
        await layer.set("k", [2])
        await layer.invalidate("k")

        assert calls["count"] == 1
        assert layer.stats["errors"] >= 3

    @pytest.mark.asyncio
    async def test_slow_backend_is_bounded_by_timeout(self, settings):
        layer = CacheLayer(settings, redis=HangingRedis())
        await layer.init_cache()
        loader, _ = counting_loader([1])

        started = time.monotonic()
        assert await layer.get("k", loader=loader) == [1]
        await layer.invalidate("k")
        assert time.monotonic() - started < 2

    @pytest.mark.asyncio
    async def test_loader_errors_propagate(self, cache):
        async def loader():
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError):
            await cache.get("k", loader=loader)

    @pytest.mark.asyncio
    async def test_close_switches_to_pass_through(self, cache):
        await cache.close()
        loader, calls = counting_loader([1])
        await cache.get("k", loader=loader)
        await cache.get("k", loader=loader)
        assert calls["count"] == 2
