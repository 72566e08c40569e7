"""Filtering, ordering and pagination of jobs.

The same ``JobSearchFilters`` drive two code paths: a SQL predicate for the
store and an in-memory filter for a freshly aggregated batch.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from job_aggregator.models import Job, JobSearchFilters
from job_aggregator.normalize import format_timestamp

_POSTED_WINDOWS: dict[str, timedelta] = {
    "24h": timedelta(days=1),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

_TERM_RE = re.compile(r"\w+")

KEYWORD_CLAUSE = "seq IN (SELECT rowid FROM jobs_fts WHERE jobs_fts MATCH ?)"


def posted_cutoff(posted_within: str | None, now: datetime | None = None) -> str | None:
    """Oldest acceptable posted date for a window, in canonical form."""
    window = _POSTED_WINDOWS.get(posted_within or "")
    if window is None:
        return None
    now = now or datetime.now(timezone.utc)
    return format_timestamp(now - window)


def fts_query(keywords: str | None) -> str | None:
    """Turn free text into an FTS5 query: every word must match, as a quoted term.

    Punctuation and FTS operators in the input are dropped, so user text can
    never change the query syntax.
    """
    terms = _TERM_RE.findall(keywords or "")
    if not terms:
        return None
    return " ".join(f'"{term}"' for term in terms)


def auto_apply_status_for(eligible: bool | None) -> str | None:
    if eligible is None:
        return None
    return "eligible" if eligible else "ineligible"


def _like(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_predicate(
    filters: JobSearchFilters, now: datetime | None = None
) -> tuple[str, list[Any]]:
    """Return ``(where_clause, params)`` for the jobs table.

    Keyword search is a full-text match against the ``jobs_fts`` index over
    title, company and description: every word must appear, compared after
    case folding and Porter stemming.
    """
    clauses: list[str] = []
    params: list[Any] = []

    match = fts_query(filters.keywords)
    if match:
        clauses.append(KEYWORD_CLAUSE)
        params.append(match)

    if filters.location:
        clauses.append("location LIKE ? ESCAPE '\\'")
        params.append(_like(filters.location))

    if filters.job_type:
        clauses.append(f"job_type IN ({', '.join('?' for _ in filters.job_type)})")
        params.extend(filters.job_type)

    if filters.work_location:
        clauses.append(f"work_location IN ({', '.join('?' for _ in filters.work_location)})")
        params.extend(filters.work_location)

    if filters.salary_min is not None:
        clauses.append("salary_min >= ?")
        params.append(filters.salary_min)

    if filters.salary_max is not None:
        clauses.append("salary_max <= ?")
        params.append(filters.salary_max)

    if filters.company:
        clauses.append("company LIKE ? ESCAPE '\\'")
        params.append(_like(filters.company))

    status = auto_apply_status_for(filters.auto_apply_eligible)
    if status:
        clauses.append("auto_apply_status = ?")
        params.append(status)

    cutoff = posted_cutoff(filters.posted_within, now)
    if cutoff:
        clauses.append("posted_date >= ?")
        params.append(cutoff)

    where = " AND ".join(clauses) if clauses else "1=1"
    return where, params


def sort_by_posted_date(jobs: Iterable[Job]) -> list[Job]:
    # newest first; jobs without a date sink to the end, ties keep input order
    return sorted(jobs, key=lambda j: j.posted_date or "", reverse=True)


def apply_filters(
    jobs: Iterable[Job], filters: JobSearchFilters, now: datetime | None = None
) -> list[Job]:
    """Filter a freshly aggregated batch.

    Keywords, location and radius were already sent to the sources, so they
    are not re-applied here.
    """
    filtered = list(jobs)

    if filters.job_type:
        filtered = [j for j in filtered if j.job_type and j.job_type in filters.job_type]

    if filters.work_location:
        filtered = [
            j for j in filtered if j.work_location and j.work_location in filters.work_location
        ]

    if filters.salary_min is not None:
        filtered = [
            j for j in filtered if j.salary_min is not None and j.salary_min >= filters.salary_min
        ]

    if filters.salary_max is not None:
        filtered = [
            j for j in filtered if j.salary_max is not None and j.salary_max <= filters.salary_max
        ]

    cutoff = posted_cutoff(filters.posted_within, now)
    if cutoff:
        filtered = [j for j in filtered if j.posted_date and j.posted_date >= cutoff]

    if filters.company:
        needle = filters.company.lower()
        filtered = [j for j in filtered if needle in j.company.lower()]

    status = auto_apply_status_for(filters.auto_apply_eligible)
    if status:
        filtered = [j for j in filtered if j.auto_apply_status == status]

    return sort_by_posted_date(filtered)


def total_pages(total_count: int, limit: int) -> int:
    return math.ceil(total_count / limit) if limit > 0 else 0


def paginate(jobs: list[Job], filters: JobSearchFilters) -> tuple[list[Job], int]:
    start = filters.offset
    return jobs[start:start + filters.page_size], len(jobs)
