"""Filter raw transaction updates down to Pump.fun create instructions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import base58
from solders.pubkey import Pubkey

from .contracts import (
    DEFAULT_FILTER_TAG,
    MINT_ACCOUNT_INDEX,
    PUMP_FUN_CREATE_DISCRIMINATOR,
    PUMP_FUN_MINT_AUTHORITY,
    PUMP_FUN_PROGRAM_ID,
    TOPICS,
)
from .event_bus import EventBus
from .types import DetectedEvent

log = logging.getLogger(__name__)

_PUBKEY_LEN = 32


@dataclass(slots=True)
class IngestStats:
    received: int = 0
    matched: int = 0
    dispatched: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "received": self.received,
            "matched": self.matched,
            "dispatched": self.dispatched,
            "errors": self.errors,
        }


def _field(obj: Any, *names: str) -> Any:
    """Return the first present field of a mapping or attribute-style message."""

    if obj is None:
        return None
    for name in names:
        if isinstance(obj, Mapping):
            if name in obj and obj[name] is not None:
                return obj[name]
        else:
            value = getattr(obj, name, None)
            if value is not None:
                return value
    return None


def _as_bytes(value: Any) -> Optional[bytes]:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, (list, tuple)) and all(isinstance(v, int) for v in value):
        try:
            return bytes(value)
        except ValueError:
            return None
    return None


def _key_text(raw: Any) -> Optional[str]:
    if isinstance(raw, str):
        return raw
    data = _as_bytes(raw)
    if data is None or len(data) != _PUBKEY_LEN:
        return None
    return str(Pubkey.from_bytes(data))


def _signature_text(raw: Any) -> Optional[str]:
    if isinstance(raw, str):
        return raw or None
    data = _as_bytes(raw)
    if not data:
        return None
    return base58.b58encode(data).decode("ascii")


def _is_transaction_update(update: Any) -> bool:
    which = getattr(update, "WhichOneof", None)
    if callable(which):
        try:
            return which("update_oneof") == "transaction"
        except ValueError:
            return False
    return _field(update, "transaction") is not None


class StreamIngestor:
    """Decode matching create instructions and hand the mints to enrichment.

    Messages that are not transaction updates, lack the subscription tag or
    carry no matching instruction are dropped without error.
    """

    def __init__(
        self,
        bus: EventBus,
        dispatch: Callable[[str], Any] | None = None,
        *,
        filter_tag: str = DEFAULT_FILTER_TAG,
        program_id: str = PUMP_FUN_PROGRAM_ID,
        required_accounts: Sequence[str] = (PUMP_FUN_PROGRAM_ID, PUMP_FUN_MINT_AUTHORITY),
        discriminators: Iterable[bytes] = (PUMP_FUN_CREATE_DISCRIMINATOR,),
        mint_index: int = MINT_ACCOUNT_INDEX,
    ) -> None:
        self._bus = bus
        self._dispatch = dispatch
        self.filter_tag = filter_tag
        self.program_id = program_id
        self.required_accounts: Tuple[str, ...] = tuple(required_accounts)
        self.discriminators: Tuple[bytes, ...] = tuple(bytes(d) for d in discriminators)
        self.mint_index = int(mint_index)
        self.stats = IngestStats()

    def subscribe_request(self, commitment: str = "processed") -> Dict[str, Any]:
        """Transport-level subscription for create transactions."""

        return {
            "accounts": {},
            "slots": {},
            "transactions": {
                self.filter_tag: {
                    "accountInclude": [],
                    "accountExclude": [],
                    "accountRequired": list(self.required_accounts),
                }
            },
            "transactionsStatus": {},
            "entry": {},
            "blocks": {},
            "blocksMeta": {},
            "commitment": commitment,
            "accountsDataSlice": [],
        }

    # decoding ------------------------------------------------------------
    def _matches_discriminator(self, data: Optional[bytes]) -> bool:
        if not data or len(data) < 8:
            return False
        return data[:8] in self.discriminators

    def _find_instruction(self, instructions: Iterable[Any], keys: Sequence[str]) -> Any:
        for ix in instructions:
            if not self._matches_discriminator(_as_bytes(_field(ix, "data"))):
                continue
            program_index = _field(ix, "programIdIndex", "program_id_index")
            if not isinstance(program_index, int) or not 0 <= program_index < len(keys):
                continue
            if keys[program_index] != self.program_id:
                continue
            return ix
        return None

    def decode(self, update: Any) -> Optional[DetectedEvent]:
        """Return the :class:`DetectedEvent` carried by ``update`` or ``None``."""

        if not _is_transaction_update(update):
            return None
        filters = _field(update, "filters") or ()
        if self.filter_tag not in filters:
            return None

        tx_update = _field(update, "transaction")
        slot = _field(tx_update, "slot")
        info = _field(tx_update, "transaction")
        if slot is None or info is None:
            return None
        tx = _field(info, "transaction")
        message = _field(tx, "message") if tx is not None else _field(info, "message")
        if message is None:
            return None

        raw_keys = _field(message, "accountKeys", "account_keys") or ()
        keys = [_key_text(raw) or "" for raw in raw_keys]
        if any(account not in keys for account in self.required_accounts):
            return None

        instructions = _field(message, "instructions") or ()
        ix = self._find_instruction(instructions, keys)
        if ix is None:
            return None

        operands = _as_bytes(_field(ix, "accounts")) or b""
        if self.mint_index >= len(operands):
            log.debug("Create instruction has no operand %d", self.mint_index)
            return None
        key_index = operands[self.mint_index]
        if key_index >= len(keys) or not keys[key_index]:
            log.debug("Operand %d points outside the account table", self.mint_index)
            return None

        signature = _signature_text(_field(info, "signature") or _field(tx_update, "signature"))
        if signature is None:
            return None
        return DetectedEvent(signature=signature, slot=str(slot), mint=keys[key_index])

    # dispatch ------------------------------------------------------------
    def handle(self, update: Any) -> Optional[DetectedEvent]:
        self.stats.received += 1
        event = self.decode(update)
        if event is None:
            return None
        self.stats.matched += 1
        self._bus.publish(TOPICS.mint_detected, event)
        if self._dispatch is not None:
            accepted = self._dispatch(event.mint)
            if accepted is not False:
                self.stats.dispatched += 1
        return event

    async def consume(self, stream: AsyncIterable[Any]) -> None:
        """Process updates until ``stream`` ends."""

        async for update in stream:
            try:
                self.handle(update)
            except Exception:
                self.stats.errors += 1
                log.exception("Failed to process stream update")
        log.info("Stream ended", extra=self.stats.to_dict())


__all__ = ["IngestStats", "StreamIngestor"]
