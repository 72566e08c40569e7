import asyncio

from conftest import make_job

from job_aggregator.cache import MemoryCache, ResponseCache, create_cache
from job_aggregator.config import Settings
from job_aggregator.errors import CacheError
from job_aggregator.models import AggregatorResult, JobSearchFilters, JobSearchResponse


class Ticker:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


class FailingBackend(MemoryCache):
    async def get(self, key):
        raise CacheError("GET failed")

    async def set(self, key, value, ttl_seconds):
        raise CacheError("SET failed")


def response():
    return JobSearchResponse(
        jobs=[make_job("1")],
        total_count=1,
        page=1,
        total_pages=1,
        aggregator_results={"adzuna": AggregatorResult(count=1, success=True)},
    )


class TestMemoryCache:
    def test_entries_expire(self):
        ticker = Ticker()
        backend = MemoryCache(clock=ticker)

        async def go():
            await backend.set("k", "v", ttl_seconds=60)
            ticker.t = 59
            fresh = await backend.get("k")
            ticker.t = 60
            return fresh, await backend.get("k")

        assert asyncio.run(go()) == ("v", None)

    def test_zero_ttl_never_expires(self):
        ticker = Ticker()
        backend = MemoryCache(clock=ticker)

        async def go():
            await backend.set("k", "v", ttl_seconds=0)
            ticker.t = 10**9
            return await backend.get("k")

        assert asyncio.run(go()) == "v"

    def test_expired_entries_swept_on_write(self):
        ticker = Ticker()
        backend = MemoryCache(clock=ticker, sweep_interval=60)

        async def go():
            for i in range(500):
                await backend.set(f"k{i}", "v", ttl_seconds=10)
            ticker.t = 10_000
            await backend.set("fresh", "v", ttl_seconds=10)

        asyncio.run(go())
        assert len(backend) == 1

    def test_live_entries_survive_sweep(self):
        ticker = Ticker()
        backend = MemoryCache(clock=ticker, sweep_interval=1)

        async def go():
            await backend.set("short", "v", ttl_seconds=5)
            await backend.set("long", "v", ttl_seconds=500)
            await backend.set("forever", "v", ttl_seconds=0)
            ticker.t = 100
            await backend.set("new", "v", ttl_seconds=5)
            return await backend.get("long"), await backend.get("short")

        assert asyncio.run(go()) == ("v", None)
        assert len(backend) == 3


class TestResponseCache:
    def test_round_trip_by_filters(self):
        cache = ResponseCache(MemoryCache())
        filters = JobSearchFilters(keywords="python")

        async def go():
            stored = await cache.store_response(filters, response())
            return stored, await cache.get_response(filters), await cache.get_response(JobSearchFilters())

        stored, hit, miss = asyncio.run(go())
        assert stored is True
        assert hit == response()
        assert miss is None

    def test_backend_errors_are_misses(self):
        cache = ResponseCache(FailingBackend())

        async def go():
            return (
                await cache.store_response(JobSearchFilters(), response()),
                await cache.get_response(JobSearchFilters()),
            )

        assert asyncio.run(go()) == (False, None)

    def test_unreadable_entry_discarded(self):
        backend = MemoryCache()
        cache = ResponseCache(backend)
        filters = JobSearchFilters()

        async def go():
            await backend.set(filters.cache_key(), "{not json", 60)
            first = await cache.get_response(filters)
            await backend.set(filters.cache_key(), "[1, 2]", 60)
            return first, await cache.get_response(filters)

        assert asyncio.run(go()) == (None, None)


def test_create_cache_without_redis_url_uses_memory():
    settings = Settings(
        database_path=":memory:",
        redis_url="",
        cache_ttl_seconds=120,
        storage_ttl_days=30,
        cleanup_interval_hours=24,
        aggregators=(),
    )
    cache = create_cache(settings)
    assert isinstance(cache.backend, MemoryCache)
    assert cache.ttl_seconds == 120
