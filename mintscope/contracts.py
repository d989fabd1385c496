"""Program constants and notification topic names."""

from __future__ import annotations

from dataclasses import dataclass

PUMP_FUN_PROGRAM_ID = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
PUMP_FUN_MINT_AUTHORITY = "TSLvdd1pWpHVjahSpsvCXUbgwsL3JAcvokwaKt1eokM"
PUMP_FUN_CREATE_DISCRIMINATOR = bytes([24, 30, 200, 40, 5, 28, 7, 119])

METAPLEX_METADATA_PROGRAM = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"

DEFAULT_FILTER_TAG = "pumpFun"

# instruction operand position of the newly created mint account
MINT_ACCOUNT_INDEX = 0


@dataclass(frozen=True)
class Topics:
    """Notification topics published on the event bus."""

    mint_detected: str = "pumpfun.mint.detected"
    metadata_found: str = "pumpfun.metadata.found"


TOPICS = Topics()


__all__ = [
    "DEFAULT_FILTER_TAG",
    "METAPLEX_METADATA_PROGRAM",
    "MINT_ACCOUNT_INDEX",
    "PUMP_FUN_CREATE_DISCRIMINATOR",
    "PUMP_FUN_MINT_AUTHORITY",
    "PUMP_FUN_PROGRAM_ID",
    "TOPICS",
    "Topics",
]
