import pytest

from mintscope.retry import RetryPhase, RetryState, RetryStateError


def test_first_attempt_has_no_delay_then_interval() -> None:
    state = RetryState("mint", max_attempts=3, interval=2.0)
    assert state.phase is RetryPhase.IDLE

    assert state.begin_attempt() == 0.0
    assert state.phase is RetryPhase.ATTEMPTING
    state.record_miss()
    assert state.phase is RetryPhase.ATTEMPTING

    assert state.begin_attempt() == 2.0
    assert state.attempt == 2


def test_exhaustion_moves_to_backoff() -> None:
    state = RetryState("mint", max_attempts=2, interval=0.5)
    state.begin_attempt()
    state.record_miss()
    state.begin_attempt()
    state.record_error()

    assert state.phase is RetryPhase.BACKOFF
    assert state.done
    assert not state.has_next()
    assert (state.misses, state.errors) == (1, 1)
    with pytest.raises(RetryStateError):
        state.begin_attempt()


def test_success_is_terminal() -> None:
    state = RetryState("mint", max_attempts=3)
    state.begin_attempt()
    state.record_success()

    assert state.phase is RetryPhase.SUCCESS
    assert state.has_next() is False
    with pytest.raises(RetryStateError):
        state.record_miss()


def test_outcomes_require_an_attempt_in_flight() -> None:
    state = RetryState("mint")
    with pytest.raises(RetryStateError):
        state.record_success()


def test_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        RetryState("mint", max_attempts=0)
