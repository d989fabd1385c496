"""Enrichment stage: turn detected mints into cached token metadata."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional, Protocol

from .cache import MetadataCache
from .classifier import Classifier, NullClassifier, TokenStreamItem
from .contracts import TOPICS
from .event_bus import EventBus
from .logging_utils import warn_once_per
from .retry import RetryState
from .types import CacheOutcome, TokenMetadata

log = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_INTERVAL = 2.0


class MetadataSource(Protocol):
    """Where token metadata comes from; both calls may raise on transport errors."""

    async def exists(self, mint: str) -> bool:
        ...

    async def fetch(self, mint: str) -> Optional[TokenMetadata]:
        ...


class EnrichmentOutcome(str, Enum):
    CACHED = "cached"
    COOLDOWN = "cooldown"
    PENDING = "pending"
    FOUND = "found"
    EXHAUSTED = "exhausted"
    ERROR = "error"


class EnrichmentOrchestrator:
    """Drive bounded metadata lookups for a mint and record the outcome in the cache.

    At most one lookup runs per mint at a time; the cache's pending set is the
    only dedup guard. Results are reported through the ``metadata found``
    notification, the return value is informational.
    """

    def __init__(
        self,
        cache: MetadataCache,
        source: MetadataSource,
        bus: EventBus,
        *,
        classifier: Classifier | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ) -> None:
        self._cache = cache
        self._source = source
        self._bus = bus
        self._classifier: Classifier = classifier or NullClassifier()
        self.max_retries = max(1, int(max_retries))
        self.retry_interval = max(0.0, float(retry_interval))

    async def enrich(self, mint: str) -> EnrichmentOutcome:
        cached = self._cache.get(mint)
        if cached is not None and cached.outcome is CacheOutcome.SUCCESS and cached.metadata:
            self._publish_found(mint, cached.metadata)
            return EnrichmentOutcome.CACHED

        if not self._cache.should_retry(mint):
            return EnrichmentOutcome.COOLDOWN

        if self._cache.is_pending(mint) or not self._cache.mark_pending(mint):
            return EnrichmentOutcome.PENDING

        try:
            return await self._run_attempts(mint)
        except Exception:
            log.exception("Unexpected enrichment failure for %s", mint)
            return EnrichmentOutcome.ERROR
        finally:
            self._cache.clear_pending(mint)

    async def _run_attempts(self, mint: str) -> EnrichmentOutcome:
        state = RetryState(mint, max_attempts=self.max_retries, interval=self.retry_interval)
        while state.has_next():
            delay = state.begin_attempt()
            if delay > 0:
                log.debug(
                    "Retrying in %.1fs... (%d/%d) for %s",
                    delay,
                    state.attempt - 1,
                    state.max_attempts,
                    mint,
                )
                await asyncio.sleep(delay)

            try:
                found = await self._source.exists(mint)
                if not found:
                    if state.is_final_attempt:
                        log.warning(
                            "No metadata found after %d attempts for %s", state.max_attempts, mint
                        )
                    state.record_miss()
                    continue
                metadata = await self._source.fetch(mint)
            except Exception as exc:
                log.warning("Attempt %d: unexpected error for %s: %s", state.attempt, mint, exc)
                state.record_error()
                continue

            if metadata is None or not metadata.is_descriptive:
                state.record_miss()
                continue

            state.record_success()
            self._cache.put(mint, metadata, attempts=state.attempt)
            self._publish_found(mint, metadata)
            await self._forward(metadata)
            return EnrichmentOutcome.FOUND

        log.warning(
            "No metadata available for token %s (%d misses, %d errors)",
            mint,
            state.misses,
            state.errors,
        )
        self._cache.mark_failed_attempt(mint, attempts=state.attempt)
        return EnrichmentOutcome.EXHAUSTED

    def _publish_found(self, mint: str, metadata: TokenMetadata) -> None:
        self._bus.publish(TOPICS.metadata_found, {"mint": mint, "metadata": metadata})

    async def _forward(self, metadata: TokenMetadata) -> None:
        item = TokenStreamItem.from_metadata(metadata)
        try:
            await self._classifier.process_token_stream(item)
        except Exception as exc:
            log.error("Failed to send token to categorization: %s", exc)
            return
        log.debug("Sent token %s to categorization service", item.name)


class EnrichmentDispatcher:
    """Bounded queue plus a fixed pool of workers calling ``enrich``.

    :meth:`submit` never blocks; when the queue is full the mint is dropped
    and will be picked up again by a later detection.
    """

    def __init__(
        self,
        orchestrator: EnrichmentOrchestrator,
        *,
        workers: int = 8,
        queue_size: int = 1024,
    ) -> None:
        self._orchestrator = orchestrator
        self.worker_count = max(1, int(workers))
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max(1, int(queue_size)))
        self._worker_tasks: list[asyncio.Task] = []
        self._accepting = False
        self.dropped = 0

    @property
    def running(self) -> bool:
        return bool(self._worker_tasks)

    def backlog(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self._worker_tasks:
            return
        self._accepting = True
        for idx in range(self.worker_count):
            task = asyncio.create_task(self._worker(), name=f"enrichment_worker_{idx}")
            self._worker_tasks.append(task)
        log.info("Enrichment dispatcher started", extra={"workers": self.worker_count})

    def submit(self, mint: str) -> bool:
        if not self._accepting:
            log.debug("Dispatcher not accepting work; dropping %s", mint)
            return False
        try:
            self._queue.put_nowait(mint)
        except asyncio.QueueFull:
            self.dropped += 1
            warn_once_per(
                1.0,
                "enrichment-queue-full",
                "Enrichment queue full; dropping %s (%d dropped so far)",
                mint,
                self.dropped,
                logger=log,
            )
            return False
        return True

    async def _worker(self) -> None:
        while True:
            mint = await self._queue.get()
            try:
                await self._orchestrator.enrich(mint)
            except Exception:
                log.exception("Enrichment worker failed for %s", mint)
            finally:
                self._queue.task_done()

    async def stop(self) -> None:
        """Stop intake, let queued and in-flight lookups finish, then stop workers."""

        self._accepting = False
        if not self._worker_tasks:
            return
        await self._queue.join()
        for task in self._worker_tasks:
            task.cancel()
        await asyncio.gather(*self._worker_tasks, return_exceptions=True)
        self._worker_tasks.clear()
        log.info("Enrichment dispatcher stopped", extra={"dropped": self.dropped})


__all__ = [
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_INTERVAL",
    "EnrichmentDispatcher",
    "EnrichmentOrchestrator",
    "EnrichmentOutcome",
    "MetadataSource",
]
