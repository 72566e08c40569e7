"""Error taxonomy for the aggregation pipeline.

Only ``ConfigError`` is meant to escape at startup. The others are raised by
the lower layers and absorbed by the service, which degrades instead of
failing the request.
"""
from __future__ import annotations


class AggregationError(Exception):
    """Base class for every error raised inside the job aggregation core."""


class SourceUnavailable(AggregationError):
    """A source adapter hit a transport, status or payload error."""


class ConfigurationMissing(AggregationError):
    """A source adapter is disabled or lacks credentials."""


class PersistenceError(AggregationError):
    """The job store failed to read or write."""


class CacheError(AggregationError):
    """The cache backend failed to read or write."""


class ConfigError(AggregationError):
    """The aggregator configuration file is malformed."""
