"""
Job aggregation service.

Runs: cache check → parallel source fetch → dedupe → persist → filter/paginate
→ cache write. Every stage degrades instead of failing: a broken source
contributes nothing but an error entry, a store failure leaves results
unpersisted, a cache failure only costs the cache.

Store calls are blocking sqlite3 work and run in a worker thread so a slow
write never stalls the adapters sharing the loop.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Literal, Sequence

import httpx

from job_aggregator.cache import ResponseCache, create_cache
from job_aggregator.config import Settings, load_settings
from job_aggregator.dedup import deduplicate_jobs
from job_aggregator.errors import PersistenceError
from job_aggregator.housekeeping import cleanup_old_jobs
from job_aggregator.log import get_logger
from job_aggregator.models import (
    AUTO_APPLY_STATUSES,
    AggregatorResult,
    AggregatorStats,
    Job,
    JobSearchFilters,
    JobSearchResponse,
    SourceResult,
)
from job_aggregator.query import apply_filters, paginate, total_pages
from job_aggregator.sources import SourceAdapter, get_sources
from job_aggregator.store import JobStore

log = get_logger(__name__)

SearchMode = Literal["live", "stored", "both"]

HEALTH_CHECK_FILTERS = JobSearchFilters(keywords="software engineer", limit=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobAggregationService:
    def __init__(
        self,
        sources: Sequence[SourceAdapter],
        store: JobStore,
        cache: ResponseCache,
        *,
        http_client: httpx.AsyncClient | None = None,
        storage_ttl_days: int = 30,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        # declared order; fan-in and dedup precedence follow it
        self.sources: tuple[SourceAdapter, ...] = tuple(sources)
        self.store = store
        self.cache = cache
        self.storage_ttl_days = storage_ttl_days
        self._clock = clock or _utcnow
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(follow_redirects=True)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> JobAggregationService:
        settings = settings or load_settings()
        store = JobStore(settings.database_path)
        store.init_db()
        return cls(
            get_sources(settings.aggregators),
            store,
            create_cache(settings),
            storage_ttl_days=settings.storage_ttl_days,
        )

    async def __aenter__(self) -> JobAggregationService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
        await self.cache.close()

    # -- live aggregation --------------------------------------------------

    async def _fetch_all(self, filters: JobSearchFilters) -> list[SourceResult]:
        """Fan out to every source and collect results in declared order."""
        log.info("Searching %d source(s) in parallel...", len(self.sources))
        outcomes = await asyncio.gather(
            *(source.fetch(filters, self._client) for source in self.sources),
            return_exceptions=True,
        )
        results: list[SourceResult] = []
        for source, outcome in zip(self.sources, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                log.error("[%s] FAILED: %s", source.name, outcome)
                outcome = SourceResult(source=source.name, success=False, error=str(outcome))
            results.append(outcome)
        return results

    async def _persist(self, jobs: list[Job]) -> None:
        try:
            await asyncio.to_thread(self.store.upsert_jobs, jobs)
        except PersistenceError as exc:
            log.error("Storing %d jobs failed, serving unpersisted results: %s", len(jobs), exc)

    async def search_jobs(self, filters: JobSearchFilters) -> JobSearchResponse:
        """Live search across all sources, served from cache when possible."""
        cached = await self.cache.get_response(filters)
        if cached is not None:
            log.debug("Cache hit for %s", filters.cache_key())
            return cached

        results = await self._fetch_all(filters)

        collected = [job for result in results if result.success for job in result.jobs]
        unique = deduplicate_jobs(collected)

        await self._persist(unique)

        filtered = apply_filters(unique, filters, now=self._clock())
        page_jobs, total = paginate(filtered, filters)

        response = JobSearchResponse(
            jobs=page_jobs,
            total_count=total,
            page=filters.page_number,
            total_pages=total_pages(total, filters.page_size),
            aggregator_results={
                r.source: AggregatorResult(count=len(r.jobs), success=r.success, error=r.error)
                for r in results
            },
        )

        await self.cache.store_response(filters, response)
        log.info(
            "Search complete — fetched=%d, unique=%d, matched=%d, sources_ok=%d/%d",
            len(collected),
            len(unique),
            total,
            sum(1 for r in results if r.success),
            len(results),
        )
        return response

    # -- stored catalog ------------------------------------------------------

    async def get_stored_jobs(self, filters: JobSearchFilters) -> JobSearchResponse:
        """Browse the store without calling any source."""
        try:
            if filters.has_only_pagination():
                jobs, total = await asyncio.to_thread(self.store.recent_jobs, filters)
            else:
                jobs, total = await asyncio.to_thread(self.store.search, filters)
        except PersistenceError as exc:
            log.error("Reading stored jobs failed: %s", exc)
            return JobSearchResponse.empty()

        return JobSearchResponse(
            jobs=jobs,
            total_count=total,
            page=filters.page_number,
            total_pages=total_pages(total, filters.page_size),
        )

    async def find_jobs(self, filters: JobSearchFilters, mode: SearchMode = "both") -> JobSearchResponse:
        """``stored``, ``live``, or ``both``: stored first, live when nothing is stored."""
        if mode == "stored":
            return await self.get_stored_jobs(filters)
        if mode == "live":
            return await self.search_jobs(filters)
        response = await self.get_stored_jobs(filters)
        if not response.jobs:
            response = await self.search_jobs(filters)
        return response

    async def get_job(self, job_id: str) -> Job | None:
        try:
            return await asyncio.to_thread(self.store.get_job, job_id)
        except PersistenceError as exc:
            log.error("Loading job %s failed: %s", job_id, exc)
            return None

    async def update_auto_apply_status(
        self, job_id: str, status: str, notes: str | None = None
    ) -> bool:
        if status not in AUTO_APPLY_STATUSES:
            log.warning("Rejected auto-apply status %r for job %s", status, job_id)
            return False
        try:
            updated = await asyncio.to_thread(
                self.store.update_auto_apply_status, job_id, status, notes
            )
        except PersistenceError as exc:
            log.error("Updating auto-apply status for %s failed: %s", job_id, exc)
            return False
        if not updated:
            log.warning("Auto-apply status update: job %s not found", job_id)
        return updated

    async def get_aggregator_stats(self) -> list[AggregatorStats]:
        try:
            return await asyncio.to_thread(self.store.aggregator_stats)
        except PersistenceError as exc:
            log.error("Aggregator stats failed: %s", exc)
            return []

    # -- operations ----------------------------------------------------------

    async def check_aggregator_health(self) -> dict[str, AggregatorResult]:
        """Hit every source with a small fixed query, bypassing cache and store."""
        results = await self._fetch_all(HEALTH_CHECK_FILTERS)
        return {
            r.source: AggregatorResult(count=len(r.jobs), success=r.success, error=r.error)
            for r in results
        }

    async def cleanup_old_jobs(self, retention_days: int | None = None) -> int:
        days = self.storage_ttl_days if retention_days is None else retention_days
        return await asyncio.to_thread(cleanup_old_jobs, self.store, days, self._clock())
