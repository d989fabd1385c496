"""Per-mint retry state machine used by the enrichment orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RetryPhase(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    BACKOFF = "backoff"


class RetryStateError(RuntimeError):
    """Raised on a transition that is not valid from the current phase."""


@dataclass(slots=True)
class RetryState:
    """Track attempts for one mint: ``IDLE -> ATTEMPTING(n) -> SUCCESS | BACKOFF``.

    ``BACKOFF`` is terminal for a single orchestration; the cache cooldown
    decides when a new orchestration may start.
    """

    mint: str
    max_attempts: int = 3
    interval: float = 2.0
    phase: RetryPhase = RetryPhase.IDLE
    attempt: int = 0
    misses: int = 0
    errors: int = 0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @property
    def done(self) -> bool:
        return self.phase in (RetryPhase.SUCCESS, RetryPhase.BACKOFF)

    @property
    def is_final_attempt(self) -> bool:
        return self.attempt >= self.max_attempts

    def has_next(self) -> bool:
        return not self.done and self.attempt < self.max_attempts

    def begin_attempt(self) -> float:
        """Enter the next attempt and return the delay to wait before it."""

        if not self.has_next():
            raise RetryStateError(f"no attempts left for {self.mint} ({self.phase.value})")
        self.attempt += 1
        self.phase = RetryPhase.ATTEMPTING
        return 0.0 if self.attempt == 1 else self.interval

    def record_miss(self) -> None:
        self._require_attempting()
        self.misses += 1
        self._settle()

    def record_error(self) -> None:
        self._require_attempting()
        self.errors += 1
        self._settle()

    def record_success(self) -> None:
        self._require_attempting()
        self.phase = RetryPhase.SUCCESS

    def _settle(self) -> None:
        if self.is_final_attempt:
            self.phase = RetryPhase.BACKOFF

    def _require_attempting(self) -> None:
        if self.phase is not RetryPhase.ATTEMPTING:
            raise RetryStateError(f"{self.mint} is not attempting ({self.phase.value})")


__all__ = ["RetryPhase", "RetryState", "RetryStateError"]
