"""Async retry for adapter requests.

Transport errors back off exponentially. Throttling responses (429/503 by
default) are retried too, after the server's ``Retry-After`` when it sends
one. Log lines carry the adapter's name so a retry can be traced to its
source.
"""
from __future__ import annotations

import asyncio
import functools
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Tuple, Type

import httpx

from job_aggregator.log import get_logger

logger = get_logger(__name__)


def retry_after_seconds(response: httpx.Response, now: datetime | None = None) -> float | None:
    """Parse ``Retry-After`` as delta-seconds or an HTTP date; None if absent or garbled."""
    value = response.headers.get("Retry-After", "").strip()
    if not value:
        return None
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max((when - now).total_seconds(), 0.0)


def _label(fn: Callable, args: tuple) -> str:
    name = getattr(args[0], "name", None) if args else None
    if isinstance(name, str) and name:
        return f"[{name}] {fn.__name__}"
    return fn.__qualname__


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    retry_statuses: Tuple[int, ...] = (),
) -> Callable:
    """Decorator: retries the wrapped coroutine function with exponential backoff.

    Exceptions listed in ``retryable`` trigger another attempt, and so does an
    ``httpx.HTTPStatusError`` whose status is in ``retry_statuses``. For those
    the ``Retry-After`` header replaces the computed backoff, capped at
    ``max_delay``. Anything else propagates immediately. Cancellation (e.g.
    from ``asyncio.wait_for``) is never retried.
    """

    def backoff(attempt: int) -> float:
        delay = min(base_delay * (backoff_factor ** (attempt - 1)), max_delay)
        if jitter:
            delay *= 0.5 + random.random()
        return delay

    def next_delay(exc: BaseException, attempt: int) -> float | None:
        if isinstance(exc, httpx.HTTPStatusError):
            if exc.response.status_code not in retry_statuses:
                return None
            hinted = retry_after_seconds(exc.response)
            return backoff(attempt) if hinted is None else min(hinted, max_delay)
        if isinstance(exc, retryable):
            return backoff(attempt)
        return None

    def decorator(fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            label = _label(fn, args)
            for attempt in range(1, max_attempts + 1):
                try:
                    return await fn(*args, **kwargs)
                except Exception as exc:
                    delay = next_delay(exc, attempt)
                    if delay is None:
                        raise
                    if attempt == max_attempts:
                        logger.error("%s failed after %d attempts: %s", label, max_attempts, exc)
                        raise
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        label,
                        attempt,
                        max_attempts,
                        exc,
                        delay,
                    )
                    await asyncio.sleep(delay)
            raise AssertionError("unreachable")

        return wrapper

    return decorator
