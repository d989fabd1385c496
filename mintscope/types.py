"""Typed records shared across the mint detection and enrichment pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

SCHEMA_VERSION = 1


@dataclass(frozen=True, slots=True)
class DetectedEvent:
    """A Pump.fun create instruction observed on the stream."""

    signature: str
    slot: str
    mint: str

    def to_dict(self) -> Dict[str, str]:
        return {"signature": self.signature, "slot": self.slot, "mint": self.mint}


@dataclass(frozen=True, slots=True)
class Creator:
    address: str
    verified: bool
    share: int

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "verified": self.verified, "share": self.share}


@dataclass(frozen=True, slots=True)
class Attribute:
    trait_type: str
    value: str | int | float

    def to_dict(self) -> Dict[str, Any]:
        return {"trait_type": self.trait_type, "value": self.value}


_OFFCHAIN_TEXT_FIELDS: Tuple[str, ...] = (
    "name",
    "symbol",
    "description",
    "image",
    "twitter",
    "website",
    "telegram",
)

_OFFCHAIN_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "show_name": ("showName", "show_name"),
    "created_on": ("createdOn", "created_on"),
    "external_url": ("external_url", "externalUrl"),
}


@dataclass(frozen=True, slots=True)
class OffChainMetadata:
    """Known fields of the JSON document referenced by the on-chain URI.

    Unknown keys are dropped by :meth:`from_mapping`; values of the wrong type
    are treated as absent.
    """

    name: Optional[str] = None
    symbol: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    show_name: Optional[bool] = None
    created_on: Optional[str] = None
    twitter: Optional[str] = None
    website: Optional[str] = None
    telegram: Optional[str] = None
    external_url: Optional[str] = None
    attributes: Tuple[Attribute, ...] = ()

    @classmethod
    def from_mapping(cls, payload: Any) -> Optional["OffChainMetadata"]:
        if not isinstance(payload, Mapping):
            return None
        values: Dict[str, Any] = {}
        for key in _OFFCHAIN_TEXT_FIELDS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                values[key] = value.strip()
        show_name = _first_present(payload, _OFFCHAIN_ALIASES["show_name"])
        if isinstance(show_name, bool):
            values["show_name"] = show_name
        for key in ("created_on", "external_url"):
            value = _first_present(payload, _OFFCHAIN_ALIASES[key])
            if isinstance(value, str) and value.strip():
                values[key] = value.strip()
        values["attributes"] = _normalize_attributes(payload.get("attributes"))
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for key in (*_OFFCHAIN_TEXT_FIELDS, "show_name", "created_on", "external_url"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.attributes:
            data["attributes"] = [attr.to_dict() for attr in self.attributes]
        return data


@dataclass(frozen=True, slots=True)
class TokenMetadata:
    """Metaplex metadata for a mint, optionally joined with its off-chain document."""

    mint: str
    name: str
    symbol: str
    uri: str
    update_authority: str
    is_mutable: bool
    primary_sale_happened: bool
    seller_fee_basis_points: int
    creators: Tuple[Creator, ...] = ()
    off_chain: Optional[OffChainMetadata] = None
    version: int = field(default=SCHEMA_VERSION)

    @property
    def is_descriptive(self) -> bool:
        """Return ``True`` when the record carries a usable name or symbol."""

        return bool(self.name.strip() or self.symbol.strip())

    @property
    def image(self) -> Optional[str]:
        return self.off_chain.image if self.off_chain else None

    @property
    def description(self) -> Optional[str]:
        return self.off_chain.description if self.off_chain else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "version": self.version,
            "mint": self.mint,
            "name": self.name,
            "symbol": self.symbol,
            "uri": self.uri,
            "update_authority": self.update_authority,
            "is_mutable": self.is_mutable,
            "primary_sale_happened": self.primary_sale_happened,
            "seller_fee_basis_points": self.seller_fee_basis_points,
            "creators": [creator.to_dict() for creator in self.creators],
        }
        if self.off_chain is not None:
            data["off_chain"] = self.off_chain.to_dict()
        return data


class CacheOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Immutable view of one cached lookup outcome."""

    mint: str
    outcome: CacheOutcome
    cached_at: float
    attempts: int
    last_attempt: float
    metadata: Optional[TokenMetadata] = None

    @property
    def failed(self) -> bool:
        return self.outcome is CacheOutcome.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mint": self.mint,
            "outcome": self.outcome.value,
            "cached_at": self.cached_at,
            "attempts": self.attempts,
            "last_attempt": self.last_attempt,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


@dataclass(frozen=True, slots=True)
class CacheStats:
    total_entries: int
    successful_entries: int
    failed_entries: int
    pending_fetches: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_entries": self.total_entries,
            "successful_entries": self.successful_entries,
            "failed_entries": self.failed_entries,
            "pending_fetches": self.pending_fetches,
        }


@dataclass(frozen=True, slots=True)
class TokenSummary:
    total_tokens: int
    unique_symbols: int
    tokens_with_images: int
    tokens_with_descriptions: int
    average_seller_fee: float
    mutable_tokens: int
    primary_sales_completed: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tokens": self.total_tokens,
            "unique_symbols": self.unique_symbols,
            "tokens_with_images": self.tokens_with_images,
            "tokens_with_descriptions": self.tokens_with_descriptions,
            "average_seller_fee": self.average_seller_fee,
            "mutable_tokens": self.mutable_tokens,
            "primary_sales_completed": self.primary_sales_completed,
        }


def _first_present(payload: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _normalize_attributes(raw: Any) -> Tuple[Attribute, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    attributes = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        trait = item.get("trait_type")
        value = item.get("value")
        if not isinstance(trait, str) or isinstance(value, bool):
            continue
        if not isinstance(value, (str, int, float)):
            continue
        attributes.append(Attribute(trait_type=trait, value=value))
    return tuple(attributes)


__all__ = [
    "SCHEMA_VERSION",
    "Attribute",
    "CacheEntry",
    "CacheOutcome",
    "CacheStats",
    "Creator",
    "DetectedEvent",
    "OffChainMetadata",
    "TokenMetadata",
    "TokenSummary",
]
