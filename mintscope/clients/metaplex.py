"""Metaplex token-metadata reader: on-chain account plus off-chain JSON document."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Optional, Sequence, Tuple

import aiohttp
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed, Finalized, Processed
from solders.pubkey import Pubkey

from ..contracts import METAPLEX_METADATA_PROGRAM
from ..types import Creator, OffChainMetadata, TokenMetadata

log = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
COMMITMENT_LADDER: Tuple[Commitment, ...] = (Processed, Confirmed, Finalized)

_PROGRAM = Pubkey.from_string(METAPLEX_METADATA_PROGRAM)
_PUBKEY_LEN = 32


class MetadataDecodeError(ValueError):
    """Raised when a metadata account does not match the expected layout."""


def find_metadata_pda(mint: str) -> Pubkey:
    """Return the metadata account address for ``mint``."""

    mint_key = Pubkey.from_string(mint)
    address, _bump = Pubkey.find_program_address(
        [b"metadata", bytes(_PROGRAM), bytes(mint_key)], _PROGRAM
    )
    return address


class _Reader:
    __slots__ = ("raw", "offset")

    def __init__(self, raw: bytes) -> None:
        self.raw = raw
        self.offset = 0

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.raw):
            raise MetadataDecodeError(
                f"metadata account truncated at offset {self.offset} (need {size} bytes)"
            )
        chunk = self.raw[self.offset : end]
        self.offset = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return int.from_bytes(self.take(2), "little", signed=False)

    def u32(self) -> int:
        return int.from_bytes(self.take(4), "little", signed=False)

    def pubkey(self) -> str:
        return str(Pubkey.from_bytes(self.take(_PUBKEY_LEN)))

    def string(self) -> str:
        length = self.u32()
        try:
            text = self.take(length).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MetadataDecodeError(f"invalid utf-8 string at offset {self.offset}") from exc
        # on-chain strings are null padded to a fixed width
        return text.rstrip("\x00").strip()


def decode_metadata_account(raw: bytes) -> TokenMetadata:
    """Decode the Borsh-serialized Metaplex ``Metadata`` account."""

    reader = _Reader(bytes(raw))
    reader.u8()  # account key discriminant
    update_authority = reader.pubkey()
    mint = reader.pubkey()
    name = reader.string()
    symbol = reader.string()
    uri = reader.string()
    seller_fee = reader.u16()
    creators: list[Creator] = []
    if reader.u8():
        for _ in range(reader.u32()):
            address = reader.pubkey()
            verified = bool(reader.u8())
            share = reader.u8()
            creators.append(Creator(address=address, verified=verified, share=share))
    primary_sale_happened = bool(reader.u8())
    is_mutable = bool(reader.u8())
    return TokenMetadata(
        mint=mint,
        name=name,
        symbol=symbol,
        uri=uri,
        update_authority=update_authority,
        is_mutable=is_mutable,
        primary_sale_happened=primary_sale_happened,
        seller_fee_basis_points=seller_fee,
        creators=tuple(creators),
    )


class MetaplexMetadataClient:
    """Fetch Pump.fun token metadata from a Solana RPC node.

    ``exists`` is a cheap account probe; ``fetch`` decodes the account and
    joins the off-chain document. RPC and HTTP calls are each bounded by the
    client's own timeouts.
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        *,
        session: aiohttp.ClientSession | None = None,
        rpc_client: AsyncClient | None = None,
        offchain_timeout: float = 5.0,
        commitments: Sequence[Commitment] = COMMITMENT_LADDER,
    ) -> None:
        self.rpc_url = rpc_url
        self._rpc = rpc_client or AsyncClient(rpc_url)
        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()
        self._offchain_timeout = float(offchain_timeout)
        self._commitments = tuple(commitments)

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()
                self._owns_session = True
            return self._session

    async def _account_data(self, mint: str, commitment: Commitment) -> Optional[bytes]:
        resp = await self._rpc.get_account_info(find_metadata_pda(mint), commitment=commitment)
        value = getattr(resp, "value", None)
        if value is None:
            return None
        return bytes(value.data)

    async def exists(self, mint: str, commitment: Commitment = Processed) -> bool:
        """Return ``True`` when the metadata account for ``mint`` exists."""

        resp = await self._rpc.get_account_info(find_metadata_pda(mint), commitment=commitment)
        return getattr(resp, "value", None) is not None

    async def fetch_at(self, mint: str, commitment: Commitment) -> Optional[TokenMetadata]:
        raw = await self._account_data(mint, commitment)
        if raw is None:
            return None
        metadata = decode_metadata_account(raw)
        if metadata.mint != mint:
            log.warning("Metadata account for %s names mint %s", mint, metadata.mint)
        if metadata.uri:
            off_chain = await self.fetch_off_chain(metadata.uri)
            if off_chain is not None:
                metadata = _with_off_chain(metadata, off_chain)
        return metadata

    async def fetch(self, mint: str) -> Optional[TokenMetadata]:
        """Try each commitment level in turn; ``None`` when none has the account."""

        for commitment in self._commitments:
            try:
                metadata = await self.fetch_at(mint, commitment)
            except (
                MetadataDecodeError,
                SolanaRpcException,
                aiohttp.ClientError,
                asyncio.TimeoutError,
            ) as exc:
                log.debug("Failed with commitment %s for %s: %s", commitment, mint, exc)
                continue
            if metadata is not None:
                log.debug("Found metadata with commitment %s for %s", commitment, mint)
                return metadata
        return None

    async def fetch_off_chain(self, uri: str) -> Optional[OffChainMetadata]:
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self._offchain_timeout)
        try:
            async with session.get(uri, timeout=timeout) as resp:
                if resp.status != 200:
                    log.warning("Off-chain metadata %s returned HTTP %s", uri, resp.status)
                    return None
                payload: Any = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            log.warning("Failed to fetch off-chain metadata: %s", exc)
            return None
        return OffChainMetadata.from_mapping(payload)

    async def close(self) -> None:
        await self._rpc.close()
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()


def _with_off_chain(metadata: TokenMetadata, off_chain: OffChainMetadata) -> TokenMetadata:
    return replace(metadata, off_chain=off_chain)


__all__ = [
    "COMMITMENT_LADDER",
    "DEFAULT_RPC_URL",
    "MetadataDecodeError",
    "MetaplexMetadataClient",
    "decode_metadata_account",
    "find_metadata_pda",
]
