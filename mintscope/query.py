"""Read-only queries over the metadata cache."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

from . import jsonutil
from .cache import MetadataCache
from .types import CacheEntry, CacheOutcome, CacheStats, TokenMetadata, TokenSummary

EntryPredicate = Callable[[CacheEntry], bool]


@dataclass(frozen=True, slots=True)
class CharacteristicsFilter:
    """Optional filters combined with logical AND; ``None`` means "don't care"."""

    is_mutable: Optional[bool] = None
    primary_sale_happened: Optional[bool] = None
    has_image: Optional[bool] = None
    has_description: Optional[bool] = None
    seller_fee_basis_points_min: Optional[int] = None
    seller_fee_basis_points_max: Optional[int] = None

    def matches(self, metadata: TokenMetadata) -> bool:
        if self.is_mutable is not None and metadata.is_mutable != self.is_mutable:
            return False
        if (
            self.primary_sale_happened is not None
            and metadata.primary_sale_happened != self.primary_sale_happened
        ):
            return False
        if self.has_image is not None and bool(metadata.image) != self.has_image:
            return False
        if self.has_description is not None and bool(metadata.description) != self.has_description:
            return False
        fee = metadata.seller_fee_basis_points
        if self.seller_fee_basis_points_min is not None and fee < self.seller_fee_basis_points_min:
            return False
        if self.seller_fee_basis_points_max is not None and fee > self.seller_fee_basis_points_max:
            return False
        return True


class MetadataQuery:
    """Snapshot queries over :class:`MetadataCache`; nothing here mutates the cache
    except :meth:`clear`, which goes through the cache's own API."""

    def __init__(self, cache: MetadataCache) -> None:
        self._cache = cache

    def _successful(self) -> List[CacheEntry]:
        return [
            entry
            for entry in self._cache.live_snapshot().values()
            if entry.outcome is CacheOutcome.SUCCESS and entry.metadata is not None
        ]

    def get_by_mint(self, mint: str) -> Optional[CacheEntry]:
        return self._cache.peek(mint)

    def search(self, term: str) -> List[CacheEntry]:
        """Case-insensitive substring match on name or symbol."""

        needle = term.lower()
        return [
            entry
            for entry in self._successful()
            if needle in entry.metadata.name.lower() or needle in entry.metadata.symbol.lower()
        ]

    def get_by_symbol(self, symbol: str) -> List[CacheEntry]:
        wanted = symbol.lower()
        return [entry for entry in self._successful() if entry.metadata.symbol.lower() == wanted]

    def get_by_name_keyword(self, keyword: str) -> List[CacheEntry]:
        needle = keyword.lower()
        return [entry for entry in self._successful() if needle in entry.metadata.name.lower()]

    def get_recent(self, minutes: float = 60) -> List[CacheEntry]:
        """Successful entries cached within the last ``minutes``, newest first."""

        cutoff = self._cache.now() - minutes * 60
        recent = [entry for entry in self._successful() if entry.cached_at >= cutoff]
        return sorted(recent, key=lambda entry: entry.cached_at, reverse=True)

    def get_by_characteristics(self, filters: CharacteristicsFilter) -> List[CacheEntry]:
        return [entry for entry in self._successful() if filters.matches(entry.metadata)]

    def all_successful(self) -> List[CacheEntry]:
        return self._successful()

    def filter(self, predicate: EntryPredicate) -> List[CacheEntry]:
        return [entry for entry in self._successful() if predicate(entry)]

    def export_filtered(self, predicate: EntryPredicate) -> str:
        selected = [entry.to_dict() for entry in self._cache.snapshot().values() if predicate(entry)]
        return jsonutil.dumps(selected, indent=2)

    def summary(self) -> TokenSummary:
        successful = self._successful()
        symbols = set()
        with_images = with_descriptions = mutable = sales = 0
        total_fees = 0
        for entry in successful:
            metadata = entry.metadata
            if metadata.symbol:
                symbols.add(metadata.symbol)
            if metadata.image:
                with_images += 1
            if metadata.description:
                with_descriptions += 1
            if metadata.is_mutable:
                mutable += 1
            if metadata.primary_sale_happened:
                sales += 1
            total_fees += metadata.seller_fee_basis_points
        return TokenSummary(
            total_tokens=len(successful),
            unique_symbols=len(symbols),
            tokens_with_images=with_images,
            tokens_with_descriptions=with_descriptions,
            average_seller_fee=total_fees / len(successful) if successful else 0.0,
            mutable_tokens=mutable,
            primary_sales_completed=sales,
        )

    def stats(self) -> CacheStats:
        return self._cache.stats()

    def clear(self) -> int:
        return self._cache.clear()

    def export(self) -> str:
        return self._cache.export()


__all__ = ["CharacteristicsFilter", "EntryPredicate", "MetadataQuery"]
