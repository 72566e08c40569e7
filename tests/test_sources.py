"""Source adapters against httpx.MockTransport."""

import asyncio
import json
from types import MappingProxyType

import httpx
import pytest

from conftest import FakeSource, make_job

from job_aggregator.config import AggregatorConfig
from job_aggregator.models import JobSearchFilters
from job_aggregator.sources import AdzunaSource, JoobleSource, get_sources

ADZUNA_HIT = {
    "id": "4242",
    "title": "<strong>Python</strong> Developer",
    "company": {"display_name": "Acme &amp; Sons"},
    "location": {"display_name": "London, UK"},
    "description": "Write &lt;b&gt;great&lt;/b&gt; code",
    "redirect_url": "https://adzuna.example/4242",
    "created": "2026-10-18T09:30:00Z",
    "salary_min": 45000.4,
    "salary_max": 55000,
    "contract_time": "full_time",
}

JOOBLE_HIT = {
    "id": 777,
    "title": "Data Engineer",
    "company": "Globex",
    "location": "Remote",
    "snippet": "Pipelines &amp; <i>ETL</i>",
    "link": "https://jooble.example/777",
    "updated": "2026-10-17T10:00:00.0000000",
    "salary": "50,000 - 65,000 GBP per year",
    "type": "Contract",
}


def adzuna_config(**overrides):
    fields = {
        "name": "adzuna",
        "base_url": "https://api.adzuna.test/v1/api",
        "enabled": True,
        "credentials": MappingProxyType({"app_id": "id-1", "api_key": "key-1"}),
        "options": MappingProxyType({"country": "gb", "results_per_page": 25}),
    }
    fields.update(overrides)
    return AggregatorConfig(**fields)


def jooble_config(**overrides):
    fields = {
        "name": "jooble",
        "base_url": "https://jooble.test/api",
        "enabled": True,
        "credentials": MappingProxyType({"api_key": "secret"}),
    }
    fields.update(overrides)
    return AggregatorConfig(**fields)


def run_fetch(source, handler, filters=None):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await source.fetch(filters or JobSearchFilters(), client)

    return asyncio.run(go())


class TestAdzuna:
    def test_request_and_mapping(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"results": [ADZUNA_HIT, {"title": "no id"}]})

        filters = JobSearchFilters(keywords="python", radius=10, page=3)
        result = run_fetch(AdzunaSource(adzuna_config()), handler, filters)

        assert result.success
        request = seen[0]
        assert request.url.path == "/v1/api/jobs/gb/search/1"
        assert request.url.params["what"] == "python"
        assert request.url.params["where"] == "london"
        assert request.url.params["distance"] == "10"
        assert request.url.params["results_per_page"] == "25"
        assert request.url.params["app_key"] == "key-1"

        [job] = result.jobs
        assert job.external_id == "4242"
        assert job.source == "adzuna"
        assert job.title == "Python Developer"
        assert job.company == "Acme & Sons"
        assert job.location == "London, UK"
        assert job.description_snippet == "Write great code"
        assert (job.salary_min, job.salary_max, job.salary_currency) == (45000, 55000, "GBP")
        assert job.salary == "45000 - 55000 GBP"
        assert job.job_type == "full-time"
        assert job.work_location is None
        assert job.posted_date == "2026-10-18T09:30:00Z"
        assert job.auto_apply_status == "pending_review"

    def test_no_keywords_omits_what(self):
        params = AdzunaSource(adzuna_config()).build_params(JobSearchFilters(location="Leeds"))
        assert "what" not in params
        assert params["where"] == "Leeds"

    def test_http_error_is_a_failed_result(self):
        result = run_fetch(AdzunaSource(adzuna_config()), lambda r: httpx.Response(500))
        assert not result.success
        assert result.jobs == []
        assert result.error == "adzuna API error: 500 Internal Server Error"

    def test_malformed_json_is_a_failed_result(self):
        result = run_fetch(
            AdzunaSource(adzuna_config()), lambda r: httpx.Response(200, content=b"<html>")
        )
        assert not result.success
        assert result.error

    def test_non_list_payload_is_a_failed_result(self):
        result = run_fetch(
            AdzunaSource(adzuna_config()), lambda r: httpx.Response(200, json={"results": "x"})
        )
        assert not result.success


class TestJooble:
    def test_request_and_mapping(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"totalCount": 1, "jobs": [JOOBLE_HIT]})

        filters = JobSearchFilters(salary_min=40000, page=2)
        result = run_fetch(JoobleSource(jooble_config()), handler, filters)

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/secret"
        body = json.loads(request.content)
        assert body == {
            "keywords": "software engineer",
            "location": "London",
            "radius": "40",
            "page": "1",
            "ResultOnPage": "50",
            "salary": 40000,
        }

        [job] = result.jobs
        assert job.external_id == "777"
        assert job.description_snippet == "Pipelines & ETL"
        assert (job.salary_min, job.salary_max, job.salary_currency) == (50000, 65000, "GBP")
        assert job.job_type == "contract"
        assert job.work_location == "remote"
        assert job.posted_date == "2026-10-17T10:00:00Z"

    def test_unparsable_salary_kept_as_text(self):
        job = JoobleSource(jooble_config()).map_job({**JOOBLE_HIT, "salary": "Competitive"})
        assert job.salary == "Competitive"
        assert job.salary_min is None and job.salary_max is None


class TestFetchContract:
    def test_missing_credentials_skip_network(self, http_client):
        source = JoobleSource(jooble_config(credentials=MappingProxyType({})))
        result = asyncio.run(source.fetch(JobSearchFilters(), http_client))
        assert not result.success
        assert result.error == "jooble not configured"

    def test_deadline(self, http_client):
        source = FakeSource("slow", jobs=[make_job()], delay=1.0, deadline=0.05)
        result = asyncio.run(source.fetch(JobSearchFilters(), http_client))
        assert not result.success
        assert "timed out" in result.error

    def test_unexpected_error_contained(self, http_client):
        source = FakeSource("broken", error=KeyError("results"))
        result = asyncio.run(source.fetch(JobSearchFilters(), http_client))
        assert not result.success
        assert result.error


class TestRegistry:
    def test_declared_order_and_skips(self):
        configs = [
            jooble_config(),
            adzuna_config(),
            AggregatorConfig(name="greenhouse", enabled=True),
            AggregatorConfig(name="indeed", enabled=False),
        ]
        sources = get_sources(configs)
        assert [type(s) for s in sources] == [JoobleSource, AdzunaSource]

    def test_disabled_adapter_not_registered(self):
        assert get_sources([adzuna_config(enabled=False)]) == []


@pytest.mark.parametrize("status", [401, 404, 500])
def test_status_codes_not_retried(status):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(status)

    result = run_fetch(JoobleSource(jooble_config()), handler)
    assert not result.success
    assert str(status) in result.error
    assert len(calls) == 1


@pytest.mark.parametrize("status", [429, 503])
def test_throttled_request_retried_after_server_delay(status):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(status, headers={"Retry-After": "0"})
        return httpx.Response(200, json={"jobs": [JOOBLE_HIT]})

    result = run_fetch(JoobleSource(jooble_config()), handler)
    assert result.success
    assert len(result.jobs) == 1
    assert len(calls) == 2


def test_throttling_that_persists_fails_the_source():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, headers={"Retry-After": "0"})

    result = run_fetch(AdzunaSource(adzuna_config()), handler)
    assert not result.success
    assert "429" in result.error
    assert len(calls) == 2
