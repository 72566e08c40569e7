"""Jooble REST API — POST search with the API key in the path.

Docs: https://jooble.org/api/about
"""
from __future__ import annotations

from typing import Any

import httpx

from job_aggregator.log import get_logger
from job_aggregator.models import Job, JobSearchFilters
from job_aggregator.normalize import (
    clean_text,
    map_job_type,
    map_work_location,
    parse_posted_date,
    parse_salary_range,
)
from job_aggregator.retry import retry
from job_aggregator.sources.base import RETRYABLE_ERRORS, RETRYABLE_STATUSES, SourceAdapter

log = get_logger(__name__)

DEFAULT_KEYWORDS = "software engineer"
DEFAULT_LOCATION = "London"
DEFAULT_RADIUS = "40"


class JoobleSource(SourceAdapter):
    name = "jooble"
    required_credentials = ("api_key",)

    def build_body(self, filters: JobSearchFilters) -> dict[str, Any]:
        # Pagination happens after aggregation, so always ask for the first page.
        body: dict[str, Any] = {
            "keywords": filters.keywords or DEFAULT_KEYWORDS,
            "location": filters.location or DEFAULT_LOCATION,
            "radius": str(filters.radius) if filters.radius else DEFAULT_RADIUS,
            "page": "1",
            "ResultOnPage": str(self.config.option("results_per_page", 50)),
        }
        if filters.salary_min:
            body["salary"] = filters.salary_min
        return body

    @retry(
        max_attempts=2,
        base_delay=1.0,
        max_delay=5.0,
        retryable=RETRYABLE_ERRORS,
        retry_statuses=RETRYABLE_STATUSES,
    )
    async def _request(self, client: httpx.AsyncClient, body: dict[str, Any]) -> dict:
        r = await client.post(
            f"{self.config.base_url}/{self.config.credential('api_key')}",
            json=body,
            headers={"Content-Type": "application/json", "User-Agent": self.user_agent},
            timeout=self.config.timeout,
        )
        r.raise_for_status()
        return r.json()

    async def _fetch_jobs(self, filters: JobSearchFilters, client: httpx.AsyncClient) -> list[Job]:
        body = self.build_body(filters)
        log.debug("Jooble search keywords=%r location=%r", body["keywords"], body["location"])
        data = await self._request(client, body)
        return self.map_jobs(data.get("jobs", []))

    def map_job(self, hit: dict[str, Any]) -> Job:
        salary = clean_text(hit.get("salary")) or None
        salary_min = salary_max = None
        currency = None
        parsed = parse_salary_range(salary)
        if parsed:
            salary_min, salary_max, currency = parsed

        location = clean_text(hit.get("location"))
        return Job(
            external_id=str(hit.get("id") or ""),
            source=self.name,
            title=clean_text(hit.get("title")),
            company=clean_text(hit.get("company")),
            location=location,
            description_snippet=clean_text(hit.get("snippet")),
            apply_url=hit.get("link") or "",
            posted_date=parse_posted_date(hit.get("updated")),
            salary=salary,
            salary_min=salary_min,
            salary_max=salary_max,
            salary_currency=currency,
            job_type=map_job_type(hit.get("type")),
            work_location=map_work_location(location),
        )
