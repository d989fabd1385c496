"""Interface to the downstream token classifier."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from .types import TokenMetadata

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TokenStreamItem:
    name: str
    timestamp: datetime
    description: Optional[str] = None
    mint: Optional[str] = None

    @classmethod
    def from_metadata(cls, metadata: TokenMetadata) -> "TokenStreamItem":
        return cls(
            name=metadata.symbol or metadata.name or "UNKNOWN",
            description=metadata.description or None,
            timestamp=datetime.now(timezone.utc),
            mint=metadata.mint,
        )


class Classifier(Protocol):
    """Consumer of enriched tokens; labels them by theme."""

    async def process_token_stream(self, item: TokenStreamItem) -> None:
        ...


class NullClassifier:
    """Classifier that discards every item."""

    async def process_token_stream(self, item: TokenStreamItem) -> None:
        log.debug("No classifier configured; dropping %s", item.name)


__all__ = ["Classifier", "NullClassifier", "TokenStreamItem"]
