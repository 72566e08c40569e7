"""Data models for canonical jobs, search filters and search responses."""
from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Literal, Mapping

from job_aggregator import dedup

JobType = Literal["full-time", "part-time", "contract", "internship", "temporary", "freelance"]
WorkLocation = Literal["remote", "hybrid", "onsite"]
AutoApplyStatus = Literal["pending_review", "eligible", "ineligible"]
PostedWithin = Literal["24h", "7d", "30d", "all"]

JOB_TYPES: tuple[str, ...] = ("full-time", "part-time", "contract", "internship", "temporary", "freelance")
WORK_LOCATIONS: tuple[str, ...] = ("remote", "hybrid", "onsite")
AUTO_APPLY_STATUSES: tuple[str, ...] = ("pending_review", "eligible", "ineligible")
POSTED_WITHIN: tuple[str, ...] = ("24h", "7d", "30d", "all")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
CACHE_NAMESPACE = "job_search"


@dataclass
class Job:
    """A canonical job posting, independent of the source it came from.

    ``(external_id, source)`` is the natural key. The fingerprint hashes are
    derived from title/company/location on every access, so they cannot drift
    from the fields they describe.
    """

    external_id: str
    source: str
    title: str
    company: str
    location: str
    description_snippet: str = ""
    apply_url: str = ""
    posted_date: str = ""
    salary: str | None = None
    salary_min: int | None = None
    salary_max: int | None = None
    salary_currency: str | None = None
    job_type: JobType | None = None
    work_location: WorkLocation | None = None
    auto_apply_status: AutoApplyStatus = "pending_review"
    auto_apply_notes: str | None = None
    id: str = ""
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def title_hash(self) -> str:
        return dedup.title_hash(self.title)

    @property
    def company_location_hash(self) -> str:
        return dedup.company_location_hash(self.company, self.location)

    @property
    def fingerprint(self) -> str:
        return f"{self.title_hash}:{self.company_location_hash}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["title_hash"] = self.title_hash
        data["company_location_hash"] = self.company_location_hash
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Job:
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Job:
        """Build a Job from a store row; stored hash columns are ignored."""
        return cls.from_dict(dict(row))


def _coerce_list(value: Any) -> tuple[str, ...]:
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(v).strip() for v in value if str(v).strip())


def _coerce_int(value: Any) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return int(number)


def _coerce_bool(value: Any) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes")


def _coerce_str(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class JobSearchFilters:
    """Immutable per-request search criteria.

    The field order below is the serialization order of the cache key; adding
    a field changes every key, which simply starts a fresh cache generation.
    """

    keywords: str | None = None
    location: str | None = None
    job_type: tuple[str, ...] = ()
    work_location: tuple[str, ...] = ()
    salary_min: int | None = None
    salary_max: int | None = None
    company: str | None = None
    posted_within: PostedWithin | None = None
    auto_apply_eligible: bool | None = None
    page: int | None = None
    limit: int | None = None
    radius: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> JobSearchFilters:
        """Coerce loosely typed (query-string style) values into filters."""
        posted_within = _coerce_str(data.get("posted_within"))
        if posted_within not in POSTED_WITHIN:
            posted_within = None
        return cls(
            keywords=_coerce_str(data.get("keywords")),
            location=_coerce_str(data.get("location")),
            job_type=tuple(t for t in _coerce_list(data.get("job_type")) if t in JOB_TYPES),
            work_location=tuple(
                w for w in _coerce_list(data.get("work_location")) if w in WORK_LOCATIONS
            ),
            salary_min=_coerce_int(data.get("salary_min")),
            salary_max=_coerce_int(data.get("salary_max")),
            company=_coerce_str(data.get("company")),
            posted_within=posted_within,
            auto_apply_eligible=_coerce_bool(data.get("auto_apply_eligible")),
            page=_coerce_int(data.get("page")),
            limit=_coerce_int(data.get("limit")),
            radius=_coerce_int(data.get("radius")),
        )

    def cache_key(self) -> str:
        return f"{CACHE_NAMESPACE}:{json.dumps(asdict(self))}"

    @property
    def page_number(self) -> int:
        return max(self.page or 1, 1)

    @property
    def page_size(self) -> int:
        return min(max(self.limit or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page_number - 1) * self.page_size

    def has_only_pagination(self) -> bool:
        """True when nothing but page/limit (and the live-only radius) is set."""
        return not (
            self.keywords
            or self.location
            or self.job_type
            or self.work_location
            or self.salary_min is not None
            or self.salary_max is not None
            or self.company
            or self.auto_apply_eligible is not None
            or (self.posted_within and self.posted_within != "all")
        )


@dataclass
class SourceResult:
    source: str
    success: bool
    jobs: list[Job] = field(default_factory=list)
    error: str | None = None


@dataclass
class AggregatorResult:
    count: int
    success: bool
    error: str | None = None


@dataclass
class JobSearchResponse:
    jobs: list[Job]
    total_count: int
    page: int
    total_pages: int
    aggregator_results: dict[str, AggregatorResult] = field(default_factory=dict)

    @classmethod
    def empty(cls, page: int = 1) -> JobSearchResponse:
        return cls(jobs=[], total_count=0, page=page, total_pages=0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobs": [job.to_dict() for job in self.jobs],
            "total_count": self.total_count,
            "page": self.page,
            "total_pages": self.total_pages,
            "aggregator_results": {
                source: asdict(result) for source, result in self.aggregator_results.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> JobSearchResponse:
        return cls(
            jobs=[Job.from_dict(j) for j in data.get("jobs", [])],
            total_count=int(data.get("total_count", 0)),
            page=int(data.get("page", 1)),
            total_pages=int(data.get("total_pages", 0)),
            aggregator_results={
                source: AggregatorResult(**result)
                for source, result in (data.get("aggregator_results") or {}).items()
            },
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str) -> JobSearchResponse:
        return cls.from_dict(json.loads(payload))


@dataclass
class AggregatorStats:
    source: str
    total_jobs: int
    eligible_jobs: int
    recent_jobs: int
    avg_salary_min: float | None
    avg_salary_max: float | None
