"""In-memory metadata cache with TTL expiry, failure bookkeeping and a pending set."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Dict, Optional

from . import jsonutil
from .types import CacheEntry, CacheOutcome, CacheStats, TokenMetadata

log = logging.getLogger(__name__)

DEFAULT_SUCCESS_TTL = 60 * 60.0
DEFAULT_FAILED_TTL = 24 * 60 * 60.0
DEFAULT_RETRY_DELAY = 5 * 60.0


def now_ts() -> float:
    """Return the current timestamp as a float."""

    return time.time()


class MetadataCache:
    """Concurrency-safe store of metadata lookup outcomes keyed by mint.

    Entries are immutable :class:`CacheEntry` snapshots; every write replaces
    the entry for a mint. All operations take a single short-held lock and
    never await while holding it, so the cache is safe to share between
    asyncio tasks and threads.
    """

    def __init__(
        self,
        *,
        success_ttl: float = DEFAULT_SUCCESS_TTL,
        failed_ttl: float = DEFAULT_FAILED_TTL,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        self.success_ttl = float(success_ttl)
        self.failed_ttl = float(failed_ttl)
        self.retry_delay = float(retry_delay)
        self._entries: Dict[str, CacheEntry] = {}
        self._pending: set[str] = set()
        self._lock = threading.RLock()

    def now(self) -> float:
        return now_ts()

    def _success_expired(self, entry: CacheEntry, now: float) -> bool:
        return entry.outcome is CacheOutcome.SUCCESS and now - entry.cached_at > self.success_ttl

    # lookups -------------------------------------------------------------
    def get(self, mint: str) -> Optional[CacheEntry]:
        """Return the entry for ``mint`` unless absent or success-expired.

        Success entries past ``success_ttl`` are removed. Failed entries are
        only ever evicted by :meth:`sweep`.
        """

        with self._lock:
            entry = self._entries.get(mint)
            if entry is None:
                return None
            if self._success_expired(entry, self.now()):
                del self._entries[mint]
                return None
            return entry

    def peek(self, mint: str) -> Optional[CacheEntry]:
        """Like :meth:`get` but never removes anything."""

        with self._lock:
            entry = self._entries.get(mint)
        if entry is None or self._success_expired(entry, self.now()):
            return None
        return entry

    def snapshot(self) -> Dict[str, CacheEntry]:
        """Return a point-in-time copy of every entry."""

        with self._lock:
            return dict(self._entries)

    def live_snapshot(self) -> Dict[str, CacheEntry]:
        """Like :meth:`snapshot` but without success-expired entries."""

        now = self.now()
        return {
            mint: entry
            for mint, entry in self.snapshot().items()
            if not self._success_expired(entry, now)
        }

    # writes --------------------------------------------------------------
    def put(self, mint: str, metadata: TokenMetadata, *, attempts: int = 1) -> CacheEntry:
        """Record a successful lookup for ``mint``."""

        if not metadata.is_descriptive:
            raise ValueError(f"refusing to cache metadata without name or symbol for {mint}")
        now = self.now()
        with self._lock:
            prior = self._entries.get(mint)
            total = (prior.attempts if prior else 0) + max(1, attempts)
            entry = CacheEntry(
                mint=mint,
                outcome=CacheOutcome.SUCCESS,
                cached_at=now,
                attempts=total,
                last_attempt=now,
                metadata=metadata,
            )
            self._entries[mint] = entry
        log.debug("Cached metadata for %s (%s)", mint, metadata.name)
        return entry

    def mark_failed_attempt(self, mint: str, *, attempts: int = 1) -> CacheEntry:
        """Record ``attempts`` failed lookups for ``mint``.

        An existing entry keeps its outcome; otherwise a failed entry without
        metadata is created.
        """

        now = self.now()
        count = max(1, attempts)
        with self._lock:
            existing = self._entries.get(mint)
            if existing is not None:
                entry = replace(existing, attempts=existing.attempts + count, last_attempt=now)
            else:
                entry = CacheEntry(
                    mint=mint,
                    outcome=CacheOutcome.FAILED,
                    cached_at=now,
                    attempts=count,
                    last_attempt=now,
                )
            self._entries[mint] = entry
        return entry

    def should_retry(self, mint: str) -> bool:
        with self._lock:
            entry = self._entries.get(mint)
        if entry is None:
            return True
        if entry.outcome is CacheOutcome.SUCCESS:
            return False
        return self.now() - entry.last_attempt > self.retry_delay

    # pending set ---------------------------------------------------------
    def is_pending(self, mint: str) -> bool:
        with self._lock:
            return mint in self._pending

    def mark_pending(self, mint: str) -> bool:
        """Atomically add ``mint`` to the pending set.

        Returns ``True`` only for the caller that inserted it.
        """

        with self._lock:
            if mint in self._pending:
                return False
            self._pending.add(mint)
            return True

    def clear_pending(self, mint: str) -> None:
        with self._lock:
            self._pending.discard(mint)

    # maintenance ---------------------------------------------------------
    def sweep(self) -> int:
        """Evict expired success and failed entries; return how many were removed."""

        now = self.now()
        expired = []
        for mint, entry in self.snapshot().items():
            ttl = self.failed_ttl if entry.failed else self.success_ttl
            if now - entry.cached_at > ttl:
                expired.append((mint, entry))

        removed = 0
        for mint, entry in expired:
            with self._lock:
                # a concurrent write may have replaced the entry since the snapshot
                if self._entries.get(mint) is entry:
                    del self._entries[mint]
                    removed += 1
        if removed:
            log.info("Cleaned up %d expired cache entries", removed)
        return removed

    def stats(self) -> CacheStats:
        with self._lock:
            entries = list(self._entries.values())
            pending = len(self._pending)
        failed = sum(1 for entry in entries if entry.failed)
        return CacheStats(
            total_entries=len(entries),
            successful_entries=len(entries) - failed,
            failed_entries=failed,
            pending_fetches=pending,
        )

    def clear(self) -> int:
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
            self._pending.clear()
        log.info("Cleared %d cache entries", size)
        return size

    def export(self) -> str:
        """Serialize every entry to an indented JSON document keyed by mint."""

        payload = {mint: entry.to_dict() for mint, entry in self.snapshot().items()}
        return jsonutil.dumps(payload, indent=2)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "DEFAULT_FAILED_TTL",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_SUCCESS_TTL",
    "MetadataCache",
    "now_ts",
]
