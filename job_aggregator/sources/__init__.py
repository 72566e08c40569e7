from .base import SourceAdapter
from .adzuna import AdzunaSource
from .jooble import JoobleSource

from job_aggregator.config import AggregatorConfig
from job_aggregator.log import get_logger

log = get_logger(__name__)

__all__ = [
    "SourceAdapter", "AdzunaSource", "JoobleSource",
    "ADAPTERS", "get_sources",
]

# New sources: subclass SourceAdapter, register it here, add a config entry.
ADAPTERS: dict[str, type[SourceAdapter]] = {
    AdzunaSource.name: AdzunaSource,
    JoobleSource.name: JoobleSource,
}


def get_sources(configs: tuple[AggregatorConfig, ...] | list[AggregatorConfig]) -> list[SourceAdapter]:
    """Instantiate enabled adapters in declared config order."""
    sources: list[SourceAdapter] = []

    for config in configs:
        adapter_cls = ADAPTERS.get(config.name)
        if adapter_cls is None:
            if config.enabled:
                log.warning("No adapter implemented for enabled source %r — skipped", config.name)
            continue
        if not config.enabled:
            log.debug("Source %s disabled", config.name)
            continue
        sources.append(adapter_cls(config))
        log.info("Registered source: %s", config.name)

    if not sources:
        log.warning("No job sources enabled — live search will return nothing")

    return sources
