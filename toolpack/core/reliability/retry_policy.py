"""
Retry policy — bounded retries with exponential backoff.

Used by the network collaborators (catalog client, downloader).  The
install orchestrator never retries by itself: to it, exhausted retries
are a single ``TransientIOError``.

Policy:
    - Transient failures (timeouts, 5xx, connection errors) are retried
      up to ``max_attempts`` total attempts, sleeping
      ``base_delay * 2**(attempt-1)`` (capped at ``max_delay``) between
      attempts.
    - Definitive failures (not found, auth) are raised immediately.
    - A rate-limit answer waits exactly the reported reset window, then
      gets one extra attempt outside the normal budget.
    - The caller's cancellation event interrupts any wait.
"""

from __future__ import annotations

import logging
import threading
import time
import urllib.error
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from toolpack.core.errors import (
    DefinitiveFetchError,
    OperationCancelled,
    RateLimitedError,
    TransientIOError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Never wait longer than this for a rate-limit reset
MAX_RATE_LIMIT_WAIT = 15 * 60.0


def _default_retry_on(exc: BaseException) -> bool:
    """Retry transient errors; everything else is final."""
    if isinstance(exc, (DefinitiveFetchError, OperationCancelled)):
        return False
    return isinstance(exc, (TransientIOError, TimeoutError, ConnectionError, urllib.error.URLError))


@dataclass
class RetryPolicy:
    """Bounded-retry policy.

    Args:
        max_attempts: Total attempts, including the first one.
        base_delay: Delay before the second attempt, in seconds.
        max_delay: Upper bound for any single backoff delay.
        retry_on: Predicate deciding whether an exception is retryable.
        sleep: Injected for tests; must accept ``(seconds, cancel)`` and
            return True if cancelled while waiting.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    retry_on: Callable[[BaseException], bool] = _default_retry_on
    sleep: Callable[[float, threading.Event | None], bool] | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def schedule(self) -> list[float]:
        """The full backoff schedule, e.g. ``[1.0, 2.0]`` for 3 attempts."""
        return [self.delay_for(i) for i in range(1, self.max_attempts)]

    def run(
        self,
        fn: Callable[[], T],
        *,
        description: str = "operation",
        cancel: threading.Event | None = None,
    ) -> T:
        """Call ``fn`` until it succeeds or the policy gives up.

        Raises:
            TransientIOError: Retries exhausted (wraps the last error).
            DefinitiveFetchError: Raised by ``fn``; never retried.
            OperationCancelled: ``cancel`` was set.
        """
        attempt = 0
        rate_limit_bonus_used = False
        last_exc: BaseException | None = None

        while attempt < self.max_attempts:
            self._check_cancel(cancel, description)
            attempt += 1
            try:
                return fn()
            except RateLimitedError as e:
                last_exc = e
                if rate_limit_bonus_used:
                    break
                rate_limit_bonus_used = True
                wait = min(max(e.retry_after, 0.0), MAX_RATE_LIMIT_WAIT)
                logger.warning(
                    "%s rate limited; waiting %.0fs for the reset window", description, wait,
                )
                self._wait(wait, cancel, description)
                attempt -= 1  # the post-reset attempt is outside the budget
                continue
            except Exception as e:
                if not self.retry_on(e):
                    raise
                last_exc = e
                if attempt >= self.max_attempts:
                    break
                delay = self.delay_for(attempt)
                logger.info(
                    "%s failed (attempt %d/%d): %s — retrying in %.1fs",
                    description, attempt, self.max_attempts, e, delay,
                )
                self._wait(delay, cancel, description)

        raise TransientIOError(
            f"{description} failed after {attempt} attempt(s): {last_exc}",
            attempts=attempt,
        ) from last_exc

    # ── Internals ──────────────────────────────────────────────

    def _wait(self, seconds: float, cancel: threading.Event | None, description: str) -> None:
        if seconds <= 0:
            return
        if self.sleep is not None:
            cancelled = self.sleep(seconds, cancel)
        elif cancel is not None:
            cancelled = cancel.wait(seconds)
        else:
            time.sleep(seconds)
            cancelled = False
        if cancelled:
            raise OperationCancelled(f"{description} cancelled while waiting to retry")

    @staticmethod
    def _check_cancel(cancel: threading.Event | None, description: str) -> None:
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"{description} cancelled")
