#!/usr/bin/env python3
"""Command-line entry point for the job aggregation service."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent))

from job_aggregator.aggregator import JobAggregationService
from job_aggregator.config import load_settings
from job_aggregator.housekeeping import run_periodic_cleanup
from job_aggregator.log import configure_logging, get_logger
from job_aggregator.models import AUTO_APPLY_STATUSES, JobSearchFilters, POSTED_WITHIN

log = get_logger(__name__)


def _add_filter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--keywords", "-k", help="Free-text keywords")
    parser.add_argument("--location", "-l", help="Location text")
    parser.add_argument("--job-type", help="Comma-separated: full-time,part-time,contract,...")
    parser.add_argument("--work-location", help="Comma-separated: remote,hybrid,onsite")
    parser.add_argument("--salary-min", type=int)
    parser.add_argument("--salary-max", type=int)
    parser.add_argument("--company")
    parser.add_argument("--posted-within", choices=POSTED_WITHIN)
    parser.add_argument(
        "--auto-apply-eligible",
        choices=("true", "false"),
        help="Only eligible (true) or ineligible (false) jobs",
    )
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--limit", type=int, default=20)
    parser.add_argument("--radius", type=int, help="Search radius, live sources only")


def _filters_from_args(args: argparse.Namespace) -> JobSearchFilters:
    return JobSearchFilters.from_dict(
        {
            "keywords": args.keywords,
            "location": args.location,
            "job_type": args.job_type,
            "work_location": args.work_location,
            "salary_min": args.salary_min,
            "salary_max": args.salary_max,
            "company": args.company,
            "posted_within": args.posted_within,
            "auto_apply_eligible": args.auto_apply_eligible,
            "page": args.page,
            "limit": args.limit,
            "radius": args.radius,
        }
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Job aggregation — multi-source job search with cache and store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_aggregator.py search -k "python developer" -l london
  python run_aggregator.py stored --job-type contract --posted-within 7d
  python run_aggregator.py status <job-id> eligible --notes "looks good"
  python run_aggregator.py cleanup --days 30
        """,
    )
    parser.add_argument("--log-level", choices=("DEBUG", "INFO", "WARNING", "ERROR"))
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Live search across all enabled sources")
    _add_filter_args(search)
    search.add_argument("--mode", choices=("live", "stored", "both"), default="live")

    stored = sub.add_parser("stored", help="Browse stored jobs (no external calls)")
    _add_filter_args(stored)

    job = sub.add_parser("job", help="Show one stored job")
    job.add_argument("job_id")

    status = sub.add_parser("status", help="Set a job's auto-apply status")
    status.add_argument("job_id")
    status.add_argument("status", choices=AUTO_APPLY_STATUSES)
    status.add_argument("--notes")

    sub.add_parser("stats", help="Per-source statistics")
    sub.add_parser("health", help="Probe every source with a small query")

    cleanup = sub.add_parser("cleanup", help="Delete jobs past the retention window")
    cleanup.add_argument("--days", type=int, default=None)

    sub.add_parser("housekeeping", help="Run cleanup periodically until interrupted")
    return parser


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _run(args: argparse.Namespace) -> int:
    settings = load_settings()

    if args.command == "housekeeping":
        service = JobAggregationService.from_settings(settings)
        try:
            await run_periodic_cleanup(
                service.store,
                retention_days=settings.storage_ttl_days,
                interval_seconds=settings.cleanup_interval_hours * 3600,
            )
        finally:
            await service.aclose()
        return 0

    async with JobAggregationService.from_settings(settings) as service:
        if args.command == "search":
            response = await service.find_jobs(_filters_from_args(args), mode=args.mode)
            _emit(response.to_dict())
        elif args.command == "stored":
            response = await service.get_stored_jobs(_filters_from_args(args))
            _emit(response.to_dict())
        elif args.command == "job":
            found = await service.get_job(args.job_id)
            if found is None:
                log.error("Job %s not found", args.job_id)
                return 1
            _emit(found.to_dict())
        elif args.command == "status":
            ok = await service.update_auto_apply_status(args.job_id, args.status, args.notes)
            _emit({"updated": ok})
            return 0 if ok else 1
        elif args.command == "stats":
            _emit([asdict(s) for s in await service.get_aggregator_stats()])
        elif args.command == "health":
            health = await service.check_aggregator_health()
            _emit({source: asdict(result) for source, result in health.items()})
        elif args.command == "cleanup":
            deleted = await service.cleanup_old_jobs(args.days)
            _emit({"deleted": deleted})
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_level:
        configure_logging(args.log_level)
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        log.info("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
