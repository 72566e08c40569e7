"""Fingerprint-based duplicate removal across sources.

A fingerprint is an exact equality test on normalized text, not fuzzy
matching: "Acme Inc." and "Acme Incorporated" stay distinct.
"""
from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Iterable

from job_aggregator.log import get_logger

if TYPE_CHECKING:
    from job_aggregator.models import Job

log = get_logger(__name__)


def fingerprint_hash(text: str) -> str:
    return hashlib.sha256(text.lower().strip().encode("utf-8")).hexdigest()


def title_hash(title: str) -> str:
    return fingerprint_hash(title)


def company_location_hash(company: str, location: str) -> str:
    return fingerprint_hash(f"{company}{location}")


def deduplicate_jobs(jobs: Iterable[Job]) -> list[Job]:
    """Keep the first job seen for each fingerprint.

    Callers pass jobs grouped by source in declared adapter order, which makes
    the surviving entry deterministic for a fixed adapter list.
    """
    seen: set[str] = set()
    unique: list[Job] = []
    total = 0
    for job in jobs:
        total += 1
        key = job.fingerprint
        if key in seen:
            log.debug("Duplicate dropped: %r @ %r (%s)", job.title, job.company, job.source)
            continue
        seen.add(key)
        unique.append(job)

    if total != len(unique):
        log.info("Deduplicated %d jobs -> %d unique", total, len(unique))
    return unique
