"""Retention cleanup for the job store.

Run it from cron (``run_aggregator.py cleanup``) or
keep ``run_periodic_cleanup`` alive next to the service.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from job_aggregator.errors import PersistenceError
from job_aggregator.log import get_logger
from job_aggregator.store import JobStore

log = get_logger(__name__)

DEFAULT_RETENTION_DAYS = 30
DEFAULT_INTERVAL_SECONDS = 24 * 60 * 60


def cleanup_old_jobs(
    store: JobStore,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    now: datetime | None = None,
) -> int:
    """Delete jobs posted more than ``retention_days`` ago. Never raises."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=retention_days)
    try:
        deleted = store.delete_posted_before(cutoff)
    except PersistenceError as exc:
        log.error("Cleanup of jobs older than %d days failed: %s", retention_days, exc)
        return 0
    log.info("Cleanup removed %d jobs posted before %s", deleted, cutoff.date())
    return deleted


async def run_periodic_cleanup(
    store: JobStore,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    stop_event: asyncio.Event | None = None,
) -> int:
    """Run cleanup every ``interval_seconds`` until ``stop_event`` is set.

    Returns the number of cleanup passes performed.
    """
    stop_event = stop_event or asyncio.Event()
    runs = 0
    log.info(
        "Housekeeping: retention %d days, every %.1f hours",
        retention_days,
        interval_seconds / 3600,
    )
    while not stop_event.is_set():
        await asyncio.to_thread(cleanup_old_jobs, store, retention_days)
        runs += 1
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue
    log.info("Housekeeping stopped after %d run(s)", runs)
    return runs
