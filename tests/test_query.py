from __future__ import annotations

import pytest

from mintscope import jsonutil
from mintscope.cache import MetadataCache
from mintscope.query import CharacteristicsFilter, MetadataQuery

from tests.conftest import make_metadata


@pytest.fixture
def populated(clock):
    cache = MetadataCache()
    cache.put(
        "mint-pepe",
        make_metadata("mint-pepe", "Pepe Coin", "PEPE", description="frog", image="ipfs://pepe", fee=100),
    )
    clock.advance(60)
    cache.put(
        "mint-doge",
        make_metadata("mint-doge", "Doge Moon", "DOGE", is_mutable=False, primary_sale_happened=True),
    )
    clock.advance(60)
    cache.put("mint-pepe2", make_metadata("mint-pepe2", "Pepe Classic", "pepe", image="ipfs://p2", fee=300))
    cache.mark_failed_attempt("mint-missing")
    return cache


def test_get_by_mint_is_read_only(populated, clock) -> None:
    query = MetadataQuery(populated)
    assert query.get_by_mint("mint-doge").metadata.symbol == "DOGE"
    assert query.get_by_mint("mint-missing").failed
    assert query.get_by_mint("nope") is None

    clock.advance(populated.success_ttl + 1)
    assert query.get_by_mint("mint-pepe") is None
    # the projection never evicts
    assert len(populated) == 4


def test_search_matches_name_or_symbol(populated) -> None:
    query = MetadataQuery(populated)
    assert {entry.mint for entry in query.search("pepe")} == {"mint-pepe", "mint-pepe2"}
    assert [entry.mint for entry in query.search("MOON")] == ["mint-doge"]
    assert query.search("zzz") == []


def test_symbol_and_name_lookups_ignore_case(populated) -> None:
    query = MetadataQuery(populated)
    assert {entry.mint for entry in query.get_by_symbol("Pepe")} == {"mint-pepe", "mint-pepe2"}
    assert [entry.mint for entry in query.get_by_name_keyword("classic")] == ["mint-pepe2"]


def test_recent_entries_newest_first(populated) -> None:
    query = MetadataQuery(populated)
    assert [entry.mint for entry in query.get_recent(minutes=1.5)] == ["mint-pepe2", "mint-doge"]
    assert [entry.mint for entry in query.get_recent()] == ["mint-pepe2", "mint-doge", "mint-pepe"]


def test_characteristics_combine_with_and(populated) -> None:
    query = MetadataQuery(populated)

    with_image = query.get_by_characteristics(CharacteristicsFilter(has_image=True))
    assert {entry.mint for entry in with_image} == {"mint-pepe", "mint-pepe2"}

    narrowed = query.get_by_characteristics(
        CharacteristicsFilter(has_image=True, has_description=False, seller_fee_basis_points_min=200)
    )
    assert [entry.mint for entry in narrowed] == ["mint-pepe2"]

    frozen = query.get_by_characteristics(
        CharacteristicsFilter(is_mutable=False, primary_sale_happened=True)
    )
    assert [entry.mint for entry in frozen] == ["mint-doge"]

    capped = query.get_by_characteristics(CharacteristicsFilter(seller_fee_basis_points_max=100))
    assert {entry.mint for entry in capped} == {"mint-pepe", "mint-doge"}


def test_summary_counts_successful_entries(populated) -> None:
    summary = MetadataQuery(populated).summary()
    assert summary.total_tokens == 3
    assert summary.unique_symbols == 3
    assert summary.tokens_with_images == 2
    assert summary.tokens_with_descriptions == 1
    assert summary.average_seller_fee == pytest.approx(400 / 3)
    assert summary.mutable_tokens == 2
    assert summary.primary_sales_completed == 1


def test_summary_of_empty_cache() -> None:
    summary = MetadataQuery(MetadataCache()).summary()
    assert summary.total_tokens == 0
    assert summary.average_seller_fee == 0.0


def test_filter_and_export_filtered(populated) -> None:
    query = MetadataQuery(populated)
    fee_payers = query.filter(lambda entry: entry.metadata.seller_fee_basis_points > 0)
    assert {entry.mint for entry in fee_payers} == {"mint-pepe", "mint-pepe2"}

    exported = jsonutil.loads(query.export_filtered(lambda entry: entry.failed))
    assert [item["mint"] for item in exported] == ["mint-missing"]


def test_stats_and_clear_delegate_to_cache(populated) -> None:
    query = MetadataQuery(populated)
    assert query.stats().failed_entries == 1
    assert len(query.all_successful()) == 3
    assert query.clear() == 4
    assert query.all_successful() == []


def test_list_queries_hide_success_expired_entries(clock) -> None:
    cache = MetadataCache(success_ttl=60)
    cache.put("mint-pepe", make_metadata("mint-pepe"))
    query = MetadataQuery(cache)
    clock.advance(61)

    assert query.get_by_mint("mint-pepe") is None
    assert query.search("pepe") == []
    assert query.get_by_symbol("PEPE") == []
    assert query.get_recent() == []
    assert query.all_successful() == []
    assert query.summary().total_tokens == 0
    # still only evicted by the cache itself
    assert len(cache) == 1
