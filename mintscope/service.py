"""Wire the cache, enrichment workers, stream ingestor and query surface together."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, AsyncIterable, Mapping, Optional

from .cache import MetadataCache
from .classifier import Classifier
from .clients.metaplex import MetaplexMetadataClient
from .config import Settings, load_settings
from .enrichment import EnrichmentDispatcher, EnrichmentOrchestrator, MetadataSource
from .event_bus import EventBus
from .ingest import StreamIngestor
from .logging_utils import setup_stdout_logging
from .query import MetadataQuery

log = logging.getLogger(__name__)


class MintWatchService:
    """Own the shared cache and the background loops around it."""

    def __init__(
        self,
        settings: Settings,
        source: MetadataSource | None = None,
        *,
        classifier: Classifier | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.settings = settings
        self.bus = bus or EventBus()
        self.cache = MetadataCache(
            success_ttl=settings.success_ttl,
            failed_ttl=settings.failed_ttl,
            retry_delay=settings.retry_delay,
        )
        self._owns_source = source is None
        self.source: MetadataSource = source or MetaplexMetadataClient(
            str(settings.solana_rpc_url), offchain_timeout=settings.offchain_timeout
        )
        self.orchestrator = EnrichmentOrchestrator(
            self.cache,
            self.source,
            self.bus,
            classifier=classifier,
            max_retries=settings.max_retries,
            retry_interval=settings.retry_interval,
        )
        self.dispatcher = EnrichmentDispatcher(
            self.orchestrator, workers=settings.workers, queue_size=settings.queue_size
        )
        self.ingestor = StreamIngestor(
            self.bus, self.dispatcher.submit, filter_tag=settings.filter_tag
        )
        self.query = MetadataQuery(self.cache)
        self._loop_tasks: list[asyncio.Task] = []

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None, **kwargs: Any
    ) -> "MintWatchService":
        settings = load_settings(env)
        setup_stdout_logging(level=settings.log_level, json=settings.log_json)
        return cls(settings, **kwargs)

    @property
    def running(self) -> bool:
        return bool(self._loop_tasks)

    async def start(self) -> None:
        if self._loop_tasks:
            return
        await self.dispatcher.start()
        self._loop_tasks = [
            asyncio.create_task(self._sweep_loop(), name="metadata_cache_sweep"),
            asyncio.create_task(self._stats_loop(), name="metadata_cache_stats"),
        ]
        log.info("Watching new Pump.fun mints", extra={"filter_tag": self.settings.filter_tag})

    async def run(self, stream: AsyncIterable[Any]) -> None:
        """Consume ``stream`` until it ends; enrichment keeps running in the background."""

        await self.start()
        await self.ingestor.consume(stream)

    async def stop(self) -> None:
        for task in self._loop_tasks:
            task.cancel()
        for task in self._loop_tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._loop_tasks.clear()
        await self.dispatcher.stop()
        await self.bus.drain()
        close = getattr(self.source, "close", None)
        if self._owns_source and close is not None:
            await close()
        log.info("Mint watch service stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval)
            try:
                self.cache.sweep()
            except Exception:
                log.exception("Metadata cache sweep failed")

    async def _stats_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.stats_interval)
            stats = self.cache.stats()
            log.info(
                "Cache Stats: %d successful, %d failed, %d pending",
                stats.successful_entries,
                stats.failed_entries,
                stats.pending_fetches,
                extra={"backlog": self.dispatcher.backlog(), **self.ingestor.stats.to_dict()},
            )


__all__ = ["MintWatchService"]
