from __future__ import annotations

import asyncio

import pytest
from solders.pubkey import Pubkey

from mintscope.config import ConfigurationError, Settings
from mintscope.contracts import (
    PUMP_FUN_CREATE_DISCRIMINATOR,
    PUMP_FUN_MINT_AUTHORITY,
    PUMP_FUN_PROGRAM_ID,
    TOPICS,
)
from mintscope.service import MintWatchService
from mintscope.types import CacheOutcome

from tests.conftest import FakeSource, RecordingClassifier, make_metadata


def _settings(**overrides) -> Settings:
    values = dict(
        yellowstone_endpoint="http://localhost:10000",
        yellowstone_token="token",
        retry_interval=0,
        workers=2,
    )
    values.update(overrides)
    return Settings(**values)


def _update(mint: Pubkey, slot: int) -> dict:
    keys = [
        bytes(mint),
        bytes(Pubkey.from_string(PUMP_FUN_MINT_AUTHORITY)),
        bytes(Pubkey.from_string(PUMP_FUN_PROGRAM_ID)),
    ]
    return {
        "filters": ["pumpFun"],
        "transaction": {
            "slot": slot,
            "transaction": {
                "signature": bytes([slot % 256]) * 64,
                "message": {
                    "accountKeys": keys,
                    "instructions": [
                        {
                            "programIdIndex": 2,
                            "accounts": bytes([0, 1]),
                            "data": PUMP_FUN_CREATE_DISCRIMINATOR,
                        }
                    ],
                },
            },
        },
    }


@pytest.mark.anyio
async def test_stream_to_cache_end_to_end(clock) -> None:
    found_mint = Pubkey.new_unique()
    missing_mint = Pubkey.new_unique()
    metadata = make_metadata(str(found_mint), description="frog")

    class Source(FakeSource):
        async def exists(self, mint: str) -> bool:
            self.exists_calls.append(mint)
            return mint == str(found_mint)

    source = Source(fetch_plan=(metadata,))
    classifier = RecordingClassifier()
    service = MintWatchService(_settings(), source, classifier=classifier)
    detected, found = [], []
    service.bus.subscribe(TOPICS.mint_detected, detected.append)
    service.bus.subscribe(TOPICS.metadata_found, found.append)

    async def _stream():
        yield _update(found_mint, 100)
        yield {"filters": ["pumpFun"], "ping": {}}
        yield _update(missing_mint, 101)

    await service.run(_stream())
    assert service.running
    await service.stop()
    assert not service.running

    assert [event.mint for event in detected] == [str(found_mint), str(missing_mint)]
    assert found == [{"mint": str(found_mint), "metadata": metadata}]
    assert [item.description for item in classifier.items] == ["frog"]

    hit = service.query.get_by_mint(str(found_mint))
    assert hit.outcome is CacheOutcome.SUCCESS
    miss = service.query.get_by_mint(str(missing_mint))
    assert miss.failed and miss.attempts == 3
    assert service.query.stats().pending_fetches == 0
    assert service.ingestor.stats.dispatched == 2


@pytest.mark.anyio
async def test_sweep_loop_evicts_expired_entries(clock) -> None:
    service = MintWatchService(_settings(sweep_interval=0.01), FakeSource())
    service.cache.put("old", make_metadata("old"))
    clock.advance(service.cache.success_ttl + 1)

    await service.start()
    try:
        for _ in range(50):
            if len(service.cache) == 0:
                break
            await asyncio.sleep(0.01)
    finally:
        await service.stop()

    assert len(service.cache) == 0


def test_from_env_requires_stream_credentials() -> None:
    with pytest.raises(ConfigurationError):
        MintWatchService.from_env({}, source=FakeSource())
