"""Pump.fun mint detection with cached Metaplex metadata enrichment."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .cache import MetadataCache
from .contracts import TOPICS
from .enrichment import EnrichmentDispatcher, EnrichmentOrchestrator, EnrichmentOutcome
from .event_bus import EventBus
from .ingest import StreamIngestor
from .query import CharacteristicsFilter, MetadataQuery
from .types import (
    CacheEntry,
    CacheOutcome,
    CacheStats,
    DetectedEvent,
    OffChainMetadata,
    TokenMetadata,
    TokenSummary,
)

__all__ = [
    "TOPICS",
    "CacheEntry",
    "CacheOutcome",
    "CacheStats",
    "CharacteristicsFilter",
    "DetectedEvent",
    "EnrichmentDispatcher",
    "EnrichmentOrchestrator",
    "EnrichmentOutcome",
    "EventBus",
    "MetadataCache",
    "MetadataQuery",
    "MintWatchService",
    "OffChainMetadata",
    "StreamIngestor",
    "TokenMetadata",
    "TokenSummary",
]


if TYPE_CHECKING:  # pragma: no cover - type checkers only
    from .service import MintWatchService


def __getattr__(name: str) -> Any:  # pragma: no cover - exercised implicitly
    # the service pulls in the RPC client stack; import it on first use
    if name == "MintWatchService":
        from .service import MintWatchService

        return MintWatchService
    raise AttributeError(name)
