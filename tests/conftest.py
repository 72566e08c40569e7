import asyncio
import os
from datetime import datetime, timezone

os.environ.setdefault("LOG_TO_FILE", "false")

import httpx
import pytest

from job_aggregator.cache import MemoryCache, ResponseCache
from job_aggregator.config import AggregatorConfig
from job_aggregator.models import Job, JobSearchFilters
from job_aggregator.sources.base import SourceAdapter
from job_aggregator.store import JobStore

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeSource(SourceAdapter):
    """In-process adapter: returns canned jobs or raises, and counts calls."""

    name = "fake"

    def __init__(self, name, jobs=None, error=None, delay=0.0, enabled=True, deadline=5.0):
        super().__init__(AggregatorConfig(name=name, enabled=enabled, deadline=deadline))
        self.name = name
        self.jobs = jobs or []
        self.error = error
        self.delay = delay
        self.calls = 0

    async def _fetch_jobs(self, filters, client):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [Job.from_dict(j.to_dict()) for j in self.jobs]

    def map_job(self, hit):
        return Job.from_dict(hit)


def make_job(external_id="1", source="adzuna", **overrides) -> Job:
    fields = {
        "external_id": external_id,
        "source": source,
        "title": f"Engineer {external_id}",
        "company": "Acme",
        "location": "London",
        "description_snippet": "Build things",
        "apply_url": f"https://jobs.example/{source}/{external_id}",
        "posted_date": "2026-10-18T09:00:00Z",
    }
    fields.update(overrides)
    return Job(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock):
    s = JobStore(tmp_path / "jobs.db", clock=clock)
    s.init_db()
    yield s
    s.close()


@pytest.fixture
def cache():
    return ResponseCache(MemoryCache(), ttl_seconds=1800)


@pytest.fixture
def http_client():
    def handler(request):
        raise AssertionError(f"unexpected network call: {request.url}")

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def filters():
    return JobSearchFilters()
