from __future__ import annotations

import asyncio
from typing import Any, Iterable, List, Optional

import pytest

from mintscope import cache as cache_mod
from mintscope.classifier import TokenStreamItem
from mintscope.types import OffChainMetadata, TokenMetadata


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(cache_mod, "now_ts", fake)
    return fake


def make_metadata(
    mint: str,
    name: str = "Pepe Coin",
    symbol: str = "PEPE",
    *,
    description: Optional[str] = None,
    image: Optional[str] = None,
    is_mutable: bool = True,
    primary_sale_happened: bool = False,
    fee: int = 0,
) -> TokenMetadata:
    off_chain = None
    if description is not None or image is not None:
        off_chain = OffChainMetadata(description=description, image=image)
    return TokenMetadata(
        mint=mint,
        name=name,
        symbol=symbol,
        uri=f"https://example.invalid/{mint}.json",
        update_authority="TSLvdd1pWpHVjahSpsvCXUbgwsL3JAcvokwaKt1eokM",
        is_mutable=is_mutable,
        primary_sale_happened=primary_sale_happened,
        seller_fee_basis_points=fee,
        off_chain=off_chain,
    )


class FakeSource:
    """Scripted metadata source.

    ``exists_plan`` and ``fetch_plan`` are consumed one item per call; the
    last item repeats. Exceptions in a plan are raised.
    """

    def __init__(
        self,
        exists_plan: Iterable[Any] = (True,),
        fetch_plan: Iterable[Any] = (None,),
        gate: asyncio.Event | None = None,
    ) -> None:
        self._exists_plan = list(exists_plan)
        self._fetch_plan = list(fetch_plan)
        self.gate = gate
        self.exists_calls: List[str] = []
        self.fetch_calls: List[str] = []

    @staticmethod
    def _next(plan: List[Any], calls: int) -> Any:
        value = plan[min(calls, len(plan) - 1)]
        if isinstance(value, BaseException):
            raise value
        return value

    async def exists(self, mint: str) -> bool:
        self.exists_calls.append(mint)
        if self.gate is not None:
            await self.gate.wait()
        return self._next(self._exists_plan, len(self.exists_calls) - 1)

    async def fetch(self, mint: str) -> Optional[TokenMetadata]:
        self.fetch_calls.append(mint)
        return self._next(self._fetch_plan, len(self.fetch_calls) - 1)


class RecordingClassifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.items: List[TokenStreamItem] = []

    async def process_token_stream(self, item: TokenStreamItem) -> None:
        self.items.append(item)
        if self.fail:
            raise RuntimeError("classifier offline")
