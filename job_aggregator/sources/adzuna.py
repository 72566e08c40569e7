"""Adzuna job search — aggregator with UK coverage by default.

Free tier: 250 requests/day.  Sign up at https://developer.adzuna.com/
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
    to_int_salary,
)
from job_aggregator.retry import retry
from job_aggregator.sources.base import RETRYABLE_ERRORS, RETRYABLE_STATUSES, SourceAdapter

log = get_logger(__name__)

DEFAULT_LOCATION = "london"


def _display_name(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("display_name", "")
    return value or ""


class AdzunaSource(SourceAdapter):
    name = "adzuna"
    required_credentials = ("app_id", "api_key")

    def build_params(self, filters: JobSearchFilters) -> dict[str, Any]:
        params: dict[str, Any] = {
            "app_id": self.config.credential("app_id"),
            "app_key": self.config.credential("api_key"),
            "where": filters.location or DEFAULT_LOCATION,
            "results_per_page": self.config.option("results_per_page", 50),
        }
        if filters.keywords:
            params["what"] = filters.keywords
        if filters.radius:
            params["distance"] = filters.radius
        return params

    @property
    def search_url(self) -> str:
        country = self.config.option("country", "gb")
        return f"{self.config.base_url}/jobs/{country}/search/1"

    @retry(
        max_attempts=2,
        base_delay=1.0,
        max_delay=5.0,
        retryable=RETRYABLE_ERRORS,
        retry_statuses=RETRYABLE_STATUSES,
    )
    async def _request(self, client: httpx.AsyncClient, params: dict[str, Any]) -> dict:
        r = await client.get(
            self.search_url,
            params=params,
            headers={"Accept": "application/json", "User-Agent": self.user_agent},
            timeout=self.config.timeout,
        )
        r.raise_for_status()
        return r.json()

    async def _fetch_jobs(self, filters: JobSearchFilters, client: httpx.AsyncClient) -> list[Job]:
        params = self.build_params(filters)
        log.debug("Adzuna search where=%r what=%r", params["where"], params.get("what"))
        data = await self._request(client, params)
        return self.map_jobs(data.get("results", []))

    def map_job(self, hit: dict[str, Any]) -> Job:
        location = clean_text(_display_name(hit.get("location")))
        salary_min = to_int_salary(hit.get("salary_min"))
        salary_max = to_int_salary(hit.get("salary_max"))
        currency = hit.get("salary_currency") or self.config.option("currency", "GBP")

        salary = None
        if salary_min or salary_max:
            salary = f"{salary_min or ''} - {salary_max or ''} {currency}"

        return Job(
            external_id=str(hit.get("id") or ""),
            source=self.name,
            title=clean_text(hit.get("title")),
            company=clean_text(_display_name(hit.get("company"))),
            location=location,
            description_snippet=clean_text(hit.get("description")),
            apply_url=hit.get("redirect_url") or "",
            posted_date=parse_posted_date(hit.get("created")),
            salary=salary,
            salary_min=salary_min,
            salary_max=salary_max,
            salary_currency=currency,
            job_type=map_job_type(hit.get("contract_time")) or map_job_type(hit.get("contract_type")),
            work_location=map_work_location(location),
        )
