"""Base class for source adapters.

An adapter turns ``JobSearchFilters`` into one request against a third-party
job API and maps the payload into canonical ``Job`` values. ``fetch`` never
raises: every failure comes back as ``SourceResult(success=False)`` so a
single broken source cannot sink the batch.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

from job_aggregator.config import AggregatorConfig
from job_aggregator.errors import ConfigurationMissing, SourceUnavailable
from job_aggregator.log import get_logger
from job_aggregator.models import Job, JobSearchFilters, SourceResult

log = get_logger(__name__)

# Retried inside an adapter call. Other HTTP statuses are answers, not retried.
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (httpx.TransportError, OSError)
RETRYABLE_STATUSES: tuple[int, ...] = (429, 503)


class SourceAdapter(ABC):
    name: ClassVar[str]
    required_credentials: ClassVar[tuple[str, ...]] = ()
    user_agent: ClassVar[str] = "job-aggregator/1.0"

    def __init__(self, config: AggregatorConfig) -> None:
        self.config = config

    @property
    def configured(self) -> bool:
        return self.config.enabled and all(
            self.config.credential(key) for key in self.required_credentials
        )

    async def fetch(self, filters: JobSearchFilters, client: httpx.AsyncClient) -> SourceResult:
        try:
            if not self.configured:
                raise ConfigurationMissing(f"{self.name} not configured")
            jobs = await asyncio.wait_for(
                self._fetch_jobs(filters, client), timeout=self.config.deadline
            )
        except ConfigurationMissing as exc:
            log.debug("Skipping %s: %s", self.name, exc)
            return SourceResult(source=self.name, success=False, error=str(exc))
        except asyncio.TimeoutError:
            error = f"{self.name} timed out after {self.config.deadline:g}s"
            log.warning("%s", error)
            return SourceResult(source=self.name, success=False, error=error)
        except httpx.HTTPStatusError as exc:
            error = f"{self.name} API error: {exc.response.status_code} {exc.response.reason_phrase}"
            log.warning("%s", error)
            return SourceResult(source=self.name, success=False, error=error)
        except (
            httpx.HTTPError,
            SourceUnavailable,
            OSError,
            ValueError,
            TypeError,
            KeyError,
            AttributeError,
        ) as exc:
            log.warning("%s fetch failed: %s", self.name, exc)
            return SourceResult(source=self.name, success=False, error=str(exc) or type(exc).__name__)

        log.info("[%s] returned %d jobs", self.name, len(jobs))
        return SourceResult(source=self.name, success=True, jobs=jobs)

    def map_jobs(self, hits: Any) -> list[Job]:
        if not isinstance(hits, list):
            raise SourceUnavailable(f"{self.name} payload has no job list")
        jobs: list[Job] = []
        for hit in hits:
            if not isinstance(hit, dict):
                continue
            job = self.map_job(hit)
            if job.external_id and job.title:
                jobs.append(job)
            else:
                log.debug("%s: skipping hit without id/title", self.name)
        return jobs

    @abstractmethod
    async def _fetch_jobs(self, filters: JobSearchFilters, client: httpx.AsyncClient) -> list[Job]:
        """Perform the request and return mapped jobs; may raise."""

    @abstractmethod
    def map_job(self, hit: dict[str, Any]) -> Job:
        """Map one raw payload entry to a canonical Job."""
