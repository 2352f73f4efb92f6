"""
Tests for the retry policy — backoff, retry predicate, rate limits, cancel.
"""

import threading
import urllib.error

import pytest

from toolpack.core.errors import (
    DefinitiveFetchError,
    OperationCancelled,
    RateLimitedError,
    TransientIOError,
)
from toolpack.core.reliability.retry_policy import MAX_RATE_LIMIT_WAIT, RetryPolicy


class _Sleeps:
    """Records requested waits instead of sleeping."""

    def __init__(self, cancel_on_call: int | None = None) -> None:
        self.waits: list[float] = []
        self._cancel_on_call = cancel_on_call

    def __call__(self, seconds, cancel) -> bool:
        self.waits.append(seconds)
        return self._cancel_on_call is not None and len(self.waits) >= self._cancel_on_call


def _flaky(failures: list[BaseException], value: str = "ok"):
    """Raise each queued failure in turn, then return ``value``."""
    calls = {"n": 0}

    def fn():
        calls["n"] += 1
        if failures:
            raise failures.pop(0)
        return value

    return fn, calls


class TestSchedule:

    def test_default_schedule(self):
        assert RetryPolicy().schedule() == [1.0, 2.0]

    def test_capped(self):
        policy = RetryPolicy(max_attempts=6, base_delay=1.0, max_delay=5.0)
        assert policy.schedule() == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestRun:

    def test_success_first_try(self):
        sleeps = _Sleeps()
        fn, calls = _flaky([])
        assert RetryPolicy(sleep=sleeps).run(fn) == "ok"
        assert calls["n"] == 1
        assert sleeps.waits == []

    def test_transient_then_success(self):
        sleeps = _Sleeps()
        fn, calls = _flaky([TimeoutError("slow"), urllib.error.URLError("reset")])

        assert RetryPolicy(sleep=sleeps).run(fn) == "ok"
        assert calls["n"] == 3
        assert sleeps.waits == [1.0, 2.0]

    def test_exhausted_raises_transient(self):
        sleeps = _Sleeps()
        fn, calls = _flaky([TransientIOError("503")] * 5)

        with pytest.raises(TransientIOError) as exc_info:
            RetryPolicy(sleep=sleeps).run(fn, description="fetch catalog")

        assert calls["n"] == 3
        assert exc_info.value.attempts == 3
        assert "fetch catalog" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, TransientIOError)

    def test_definitive_not_retried(self):
        sleeps = _Sleeps()
        fn, calls = _flaky([DefinitiveFetchError("404", status=404)])

        with pytest.raises(DefinitiveFetchError):
            RetryPolicy(sleep=sleeps).run(fn)

        assert calls["n"] == 1
        assert sleeps.waits == []

    def test_unexpected_errors_not_retried(self):
        fn, calls = _flaky([PermissionError("denied")])

        with pytest.raises(PermissionError):
            RetryPolicy(sleep=_Sleeps()).run(fn)

        assert calls["n"] == 1


class TestRateLimit:

    def test_waits_reset_window_then_one_extra_attempt(self):
        sleeps = _Sleeps()
        fn, calls = _flaky([
            TransientIOError("503"),
            TransientIOError("503"),
            RateLimitedError("limited", retry_after=42.0),
        ])

        # Two normal failures use two attempts; the rate-limited third is
        # followed by a bonus attempt that succeeds.
        assert RetryPolicy(sleep=sleeps).run(fn) == "ok"
        assert calls["n"] == 4
        assert sleeps.waits == [1.0, 2.0, 42.0]

    def test_second_rate_limit_gives_up(self):
        sleeps = _Sleeps()
        fn, calls = _flaky([
            RateLimitedError("limited", retry_after=10.0),
            RateLimitedError("limited", retry_after=10.0),
        ])

        with pytest.raises(TransientIOError):
            RetryPolicy(sleep=sleeps).run(fn)

        assert calls["n"] == 2
        assert sleeps.waits == [10.0]

    def test_wait_is_capped(self):
        sleeps = _Sleeps()
        fn, _ = _flaky([RateLimitedError("limited", retry_after=10 * 3600.0)])

        RetryPolicy(sleep=sleeps).run(fn)

        assert sleeps.waits == [MAX_RATE_LIMIT_WAIT]


class TestCancellation:

    def test_cancel_before_first_attempt(self):
        cancel = threading.Event()
        cancel.set()
        fn, calls = _flaky([])

        with pytest.raises(OperationCancelled):
            RetryPolicy(sleep=_Sleeps()).run(fn, cancel=cancel)

        assert calls["n"] == 0

    def test_cancel_interrupts_backoff(self):
        fn, calls = _flaky([TimeoutError("slow")] * 3)

        with pytest.raises(OperationCancelled):
            RetryPolicy(sleep=_Sleeps(cancel_on_call=1)).run(fn)

        assert calls["n"] == 1

    def test_real_wait_uses_event(self):
        cancel = threading.Event()
        cancel.set()
        policy = RetryPolicy(base_delay=30.0)

        # The set event makes cancel.wait() return immediately
        with pytest.raises(OperationCancelled):
            policy._wait(30.0, cancel, "fetch")
