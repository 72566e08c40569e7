"""Load aggregator and service configuration from env + YAML."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping

import yaml
from dotenv import load_dotenv

from job_aggregator.errors import ConfigError
from job_aggregator.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
DATA_DIR: Path = ROOT_DIR / "data"
AGGREGATORS_PATH: Path = CONFIG_DIR / "aggregators.yaml"

EnvGetter = Callable[..., str]

# Used when config/aggregators.yaml is absent. Order is the fan-out order.
DEFAULT_AGGREGATORS: list[dict[str, Any]] = [
    {
        "name": "adzuna",
        "base_url": "https://api.adzuna.com/v1/api",
        "enabled": True,
        "credentials": {"app_id": "ADZUNA_APP_ID", "api_key": "ADZUNA_APP_KEY"},
        "rate_limit": {"requests_per_minute": 25, "requests_per_day": 250},
        "options": {"country": "gb", "results_per_page": 50, "currency": "GBP"},
    },
    {
        "name": "jooble",
        "base_url": "https://jooble.org/api",
        "enabled": True,
        "credentials": {"api_key": "JOOBLE_API_KEY"},
        "rate_limit": {"requests_per_minute": 60, "requests_per_day": 500},
        "options": {"results_per_page": 50},
    },
]


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


@dataclass(frozen=True)
class RateLimit:
    """Advisory ceiling; throttling is left to the caller/cron scheduler."""

    requests_per_minute: int = 0
    requests_per_day: int = 0


@dataclass(frozen=True)
class AggregatorConfig:
    name: str
    base_url: str = ""
    enabled: bool = False
    credentials: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    rate_limit: RateLimit = field(default_factory=RateLimit)
    timeout: float = 15.0
    deadline: float = 30.0
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def credential(self, key: str) -> str:
        return self.credentials.get(key, "")

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


@dataclass(frozen=True)
class Settings:
    database_path: str
    redis_url: str
    cache_ttl_seconds: int
    storage_ttl_days: int
    cleanup_interval_hours: float
    aggregators: tuple[AggregatorConfig, ...]


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _build_config(entry: Mapping[str, Any], env_getter: EnvGetter) -> AggregatorConfig:
    name = str(entry.get("name", "")).strip().lower()
    if not name:
        raise ConfigError("Aggregator entry without a name")
    prefix = name.upper()

    # credentials map a credential slot to the env var holding its value
    credentials: dict[str, str] = {}
    for slot, env_key in (entry.get("credentials") or {}).items():
        credentials[slot] = env_getter(str(env_key))

    limits = entry.get("rate_limit") or {}
    rate_limit = RateLimit(
        requests_per_minute=_as_int(
            env_getter(f"{prefix}_RATE_LIMIT_PER_MINUTE") or limits.get("requests_per_minute"), 0
        ),
        requests_per_day=_as_int(
            env_getter(f"{prefix}_RATE_LIMIT_PER_DAY") or limits.get("requests_per_day"), 0
        ),
    )

    enabled_override = env_getter(f"{prefix}_ENABLED")
    enabled = _as_bool(enabled_override) if enabled_override else _as_bool(entry.get("enabled", False))

    return AggregatorConfig(
        name=name,
        base_url=(env_getter(f"{prefix}_BASE_URL") or str(entry.get("base_url") or "")).rstrip("/"),
        enabled=enabled,
        credentials=MappingProxyType(credentials),
        rate_limit=rate_limit,
        timeout=float(entry.get("timeout", 15.0)),
        deadline=float(entry.get("deadline", 30.0)),
        options=MappingProxyType(dict(entry.get("options") or {})),
    )


def load_aggregator_configs(
    path: Path | None = None, env_getter: EnvGetter = get_env
) -> tuple[AggregatorConfig, ...]:
    """Read aggregator definitions in declared order and resolve credentials."""
    path = path or Path(env_getter("JOB_AGGREGATORS_CONFIG") or AGGREGATORS_PATH)
    entries: list[dict[str, Any]]
    if path.exists():
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid aggregator config {path}: {exc}") from exc
        entries = data.get("aggregators") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ConfigError(f"{path} must contain an 'aggregators' list")
    else:
        log.debug("No aggregator config at %s, using defaults", path)
        entries = DEFAULT_AGGREGATORS

    configs = tuple(_build_config(entry, env_getter) for entry in entries)
    names = [c.name for c in configs]
    if len(set(names)) != len(names):
        raise ConfigError(f"Duplicate aggregator names in {path}: {names}")

    for c in configs:
        log.debug(
            "Aggregator %s: enabled=%s, credentials=%s, base_url=%s",
            c.name,
            c.enabled,
            {slot: bool(value) for slot, value in c.credentials.items()},
            c.base_url,
        )
    return configs


def load_settings(env_getter: EnvGetter = get_env) -> Settings:
    return Settings(
        database_path=env_getter("JOB_DB_PATH") or str(DATA_DIR / "jobs.db"),
        redis_url=env_getter("REDIS_URL"),
        cache_ttl_seconds=_as_int(env_getter("JOB_CACHE_TTL_SECONDS"), 1800),
        storage_ttl_days=_as_int(env_getter("JOB_STORAGE_TTL_DAYS"), 30),
        cleanup_interval_hours=float(env_getter("JOB_CLEANUP_INTERVAL_HOURS") or 24),
        aggregators=load_aggregator_configs(env_getter=env_getter),
    )
