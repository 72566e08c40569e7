"""Job Store — SQLite persistence for canonical jobs.

Rows are keyed by ``(external_id, source)``; writes are idempotent upserts so
re-aggregating the same payload never creates a second row.

The store is synchronous. One connection is shared by every caller and
serialized by a re-entrant lock, so the async service can run store calls in
worker threads (``asyncio.to_thread``) without blocking the event loop.
"""
from __future__ import annotations

import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, Sequence

from job_aggregator.errors import PersistenceError
from job_aggregator.log import get_logger
from job_aggregator.models import AggregatorStats, Job, JobSearchFilters
from job_aggregator.normalize import format_timestamp
from job_aggregator.query import build_predicate

log = get_logger(__name__)

Clock = Callable[[], datetime]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    seq INTEGER PRIMARY KEY,
    id TEXT NOT NULL UNIQUE,
    external_id TEXT NOT NULL,
    source TEXT NOT NULL,
    title TEXT NOT NULL,
    company TEXT NOT NULL DEFAULT '',
    location TEXT NOT NULL DEFAULT '',
    description_snippet TEXT NOT NULL DEFAULT '',
    apply_url TEXT NOT NULL DEFAULT '',
    posted_date TEXT NOT NULL DEFAULT '',
    salary TEXT,
    salary_min INTEGER,
    salary_max INTEGER,
    salary_currency TEXT,
    job_type TEXT,
    work_location TEXT,
    auto_apply_status TEXT NOT NULL DEFAULT 'pending_review',
    auto_apply_notes TEXT,
    title_hash TEXT NOT NULL,
    company_location_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (external_id, source)
);
CREATE INDEX IF NOT EXISTS idx_jobs_recent ON jobs(posted_date DESC, id);
CREATE INDEX IF NOT EXISTS idx_jobs_fingerprint ON jobs(title_hash, company_location_hash);
CREATE INDEX IF NOT EXISTS idx_jobs_source ON jobs(source);
-- keyword index over title, company and description; kept in step by the triggers
CREATE VIRTUAL TABLE IF NOT EXISTS jobs_fts USING fts5(
    title, company, description_snippet,
    content = 'jobs', content_rowid = 'seq',
    tokenize = 'porter unicode61'
);
CREATE TRIGGER IF NOT EXISTS jobs_fts_insert AFTER INSERT ON jobs BEGIN
    INSERT INTO jobs_fts(rowid, title, company, description_snippet)
    VALUES (new.seq, new.title, new.company, new.description_snippet);
END;
CREATE TRIGGER IF NOT EXISTS jobs_fts_delete AFTER DELETE ON jobs BEGIN
    INSERT INTO jobs_fts(jobs_fts, rowid, title, company, description_snippet)
    VALUES ('delete', old.seq, old.title, old.company, old.description_snippet);
END;
CREATE TRIGGER IF NOT EXISTS jobs_fts_update AFTER UPDATE OF title, company, description_snippet ON jobs BEGIN
    INSERT INTO jobs_fts(jobs_fts, rowid, title, company, description_snippet)
    VALUES ('delete', old.seq, old.title, old.company, old.description_snippet);
    INSERT INTO jobs_fts(rowid, title, company, description_snippet)
    VALUES (new.seq, new.title, new.company, new.description_snippet);
END;
"""

_UPSERT_COLUMNS: tuple[str, ...] = (
    "id",
    "external_id",
    "source",
    "title",
    "company",
    "location",
    "description_snippet",
    "apply_url",
    "posted_date",
    "salary",
    "salary_min",
    "salary_max",
    "salary_currency",
    "job_type",
    "work_location",
    "auto_apply_status",
    "title_hash",
    "company_location_hash",
    "created_at",
    "updated_at",
)

# Everything a re-fetch can change. id, created_at and the reviewer-owned
# auto_apply_status/auto_apply_notes are left alone on conflict.
_UPDATE_COLUMNS: tuple[str, ...] = (
    "title",
    "company",
    "location",
    "description_snippet",
    "apply_url",
    "posted_date",
    "salary",
    "salary_min",
    "salary_max",
    "salary_currency",
    "job_type",
    "work_location",
    "title_hash",
    "company_location_hash",
    "updated_at",
)

# 20 columns x 40 rows stays under SQLite's default 999 bound parameters.
_UPSERT_CHUNK = 40
_ORDER_BY = "ORDER BY posted_date DESC, id"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class JobStore:
    def __init__(self, db_path: str | Path = ":memory:", clock: Clock | None = None) -> None:
        self.db_path = str(db_path)
        self._clock = clock or _utcnow
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except sqlite3.Error as exc:
                raise PersistenceError(f"{action} failed: {exc}") from exc

    def init_db(self) -> None:
        """Create the jobs table, its indexes and the keyword index."""
        with self._guard("init_db"):
            self._conn.executescript(_SCHEMA)
            self._conn.commit()

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._guard("query"):
            return self._conn.execute(sql, tuple(params)).fetchall()

    # -- writes ----------------------------------------------------------

    def upsert_jobs(self, jobs: Sequence[Job]) -> int:
        """Insert or update jobs in one transaction; returns rows written.

        Stored ids, created_at and review status are copied back onto the
        passed jobs so callers see the persisted identity.
        """
        if not jobs:
            return 0

        now = _row_timestamp(self._clock())
        placeholders = "(" + ", ".join("?" for _ in _UPSERT_COLUMNS) + ")"
        updates = ",\n    ".join(f"{col} = excluded.{col}" for col in _UPDATE_COLUMNS)

        with self._guard("upsert_jobs"), self._conn:
            for start in range(0, len(jobs), _UPSERT_CHUNK):
                chunk = jobs[start:start + _UPSERT_CHUNK]
                params: list[Any] = []
                for job in chunk:
                    params.extend(self._row_values(job, now))
                self._conn.execute(
                    f"INSERT INTO jobs ({', '.join(_UPSERT_COLUMNS)})\n"
                    f"VALUES {', '.join(placeholders for _ in chunk)}\n"
                    f"ON CONFLICT (external_id, source) DO UPDATE SET\n    {updates}",
                    params,
                )
            self._attach_identity(jobs)

        log.debug("Upserted %d jobs", len(jobs))
        return len(jobs)

    @staticmethod
    def _row_values(job: Job, now: str) -> list[Any]:
        return [
            job.id or uuid.uuid4().hex,
            job.external_id,
            job.source,
            job.title,
            job.company,
            job.location,
            job.description_snippet,
            job.apply_url,
            job.posted_date,
            job.salary,
            job.salary_min,
            job.salary_max,
            job.salary_currency,
            job.job_type,
            job.work_location,
            job.auto_apply_status,
            job.title_hash,
            job.company_location_hash,
            now,
            now,
        ]

    def _attach_identity(self, jobs: Sequence[Job]) -> None:
        by_key = {(job.external_id, job.source): job for job in jobs}
        keys = list(by_key)
        for start in range(0, len(keys), _UPSERT_CHUNK):
            chunk = keys[start:start + _UPSERT_CHUNK]
            where = " OR ".join("(external_id = ? AND source = ?)" for _ in chunk)
            params = [part for key in chunk for part in key]
            rows = self._conn.execute(
                "SELECT id, external_id, source, auto_apply_status, auto_apply_notes, "
                f"created_at, updated_at FROM jobs WHERE {where}",
                params,
            ).fetchall()
            for row in rows:
                job = by_key[(row["external_id"], row["source"])]
                job.id = row["id"]
                job.auto_apply_status = row["auto_apply_status"]
                job.auto_apply_notes = row["auto_apply_notes"]
                job.created_at = row["created_at"]
                job.updated_at = row["updated_at"]
        # a batch may carry the same key twice; later duplicates share the row
        for job in jobs:
            stored = by_key[(job.external_id, job.source)]
            if job is not stored:
                job.id = stored.id
                job.created_at = stored.created_at
                job.updated_at = stored.updated_at

    def update_auto_apply_status(self, job_id: str, status: str, notes: str | None = None) -> bool:
        with self._guard("update_auto_apply_status"), self._conn:
            cursor = self._conn.execute(
                "UPDATE jobs SET auto_apply_status = ?, auto_apply_notes = ?, updated_at = ? "
                "WHERE id = ?",
                (status, notes, _row_timestamp(self._clock()), job_id),
            )
            return cursor.rowcount > 0

    def delete_posted_before(self, cutoff: datetime) -> int:
        """Delete jobs posted before ``cutoff``; undated jobs age by created_at."""
        posted_cutoff = format_timestamp(cutoff)
        created_cutoff = _row_timestamp(cutoff)
        with self._guard("delete_posted_before"), self._conn:
            cursor = self._conn.execute(
                "DELETE FROM jobs WHERE (posted_date != '' AND posted_date < ?) "
                "OR (posted_date = '' AND created_at < ?)",
                (posted_cutoff, created_cutoff),
            )
            return cursor.rowcount

    # -- reads -----------------------------------------------------------

    def get_job(self, job_id: str) -> Job | None:
        rows = self.query("SELECT * FROM jobs WHERE id = ?", (job_id,))
        return Job.from_row(rows[0]) if rows else None

    def search(self, filters: JobSearchFilters) -> tuple[list[Job], int]:
        """Filtered, newest-first page plus the unpaginated match count."""
        where, params = build_predicate(filters, now=self._clock())
        with self._guard("search"):
            rows = self.query(
                f"SELECT * FROM jobs WHERE {where} {_ORDER_BY} LIMIT ? OFFSET ?",
                [*params, filters.page_size, filters.offset],
            )
            count = self.query(f"SELECT COUNT(*) AS n FROM jobs WHERE {where}", params)
        return [Job.from_row(r) for r in rows], int(count[0]["n"])

    def recent_jobs(self, filters: JobSearchFilters) -> tuple[list[Job], int]:
        """Unfiltered fast path: a walk of ``idx_jobs_recent`` with no predicate.

        SQLite has no materialized views; the index on ``(posted_date DESC, id)``
        is the maintained newest-first ordering, so a page costs offset + limit
        index steps and never sorts.
        """
        with self._guard("recent_jobs"):
            rows = self.query(
                f"SELECT * FROM jobs INDEXED BY idx_jobs_recent {_ORDER_BY} LIMIT ? OFFSET ?",
                (filters.page_size, filters.offset),
            )
            count = self.query("SELECT COUNT(*) AS n FROM jobs")
        return [Job.from_row(r) for r in rows], int(count[0]["n"])

    def aggregator_stats(self, recent_days: int = 7) -> list[AggregatorStats]:
        recent_cutoff = format_timestamp(self._clock() - timedelta(days=recent_days))
        rows = self.query(
            """
            SELECT
                source,
                COUNT(*) AS total_jobs,
                SUM(CASE WHEN auto_apply_status = 'eligible' THEN 1 ELSE 0 END) AS eligible_jobs,
                SUM(CASE WHEN posted_date >= ? THEN 1 ELSE 0 END) AS recent_jobs,
                AVG(salary_min) AS avg_salary_min,
                AVG(salary_max) AS avg_salary_max
            FROM jobs
            GROUP BY source
            ORDER BY source
            """,
            (recent_cutoff,),
        )
        return [
            AggregatorStats(
                source=r["source"],
                total_jobs=int(r["total_jobs"]),
                eligible_jobs=int(r["eligible_jobs"] or 0),
                recent_jobs=int(r["recent_jobs"] or 0),
                avg_salary_min=r["avg_salary_min"],
                avg_salary_max=r["avg_salary_max"],
            )
            for r in rows
        ]
