"""
GitHub transport — raw-content URLs and an HTTP downloader.

``HttpDownloader`` does one thing: GET a URL into memory, with
retries.  It classifies HTTP answers so that ``RetryPolicy`` knows
which ones are worth another attempt:

    404 / 401 / other 4xx          → DefinitiveFetchError (final)
    403 + X-RateLimit-Remaining: 0 → RateLimitedError (wait for reset)
    429                            → RateLimitedError (Retry-After)
    5xx, timeouts, URLError        → transient (retried)
"""

from __future__ import annotations

import logging
import threading
import time
import urllib.error
import urllib.request
from typing import Callable

from toolpack import __version__
from toolpack.core.errors import (
    ConfigError,
    DefinitiveFetchError,
    OperationCancelled,
    RateLimitedError,
    TransientIOError,
)
from toolpack.core.reliability.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

RAW_CONTENT_HOST = "https://raw.githubusercontent.com"
DEFAULT_TIMEOUT = 600.0
_CHUNK = 64 * 1024


def parse_repo_url(url: str) -> tuple[str, str]:
    """Split a repository URL into ``(owner, repo)``.

    Accepts ``https://github.com/o/r``, ``github.com/o/r.git`` and
    ``o/r``.

    Raises:
        ConfigError: The URL has no owner/repo part.
    """
    rest = url.strip()
    for prefix in ("https://", "http://"):
        rest = rest.removeprefix(prefix)
    rest = rest.removeprefix("www.").removeprefix("github.com/")
    rest = rest.strip("/").removesuffix(".git")

    parts = [p for p in rest.split("/") if p]
    if len(parts) < 2:
        raise ConfigError(f"invalid GitHub repository URL: {url!r}")
    return parts[0], parts[1]


def raw_content_url(owner: str, repo: str, branch: str, path: str) -> str:
    """URL of a file in the repo, served by raw.githubusercontent.com."""
    return f"{RAW_CONTENT_HOST}/{owner}/{repo}/{branch}/{path.lstrip('/')}"


class HttpDownloader:
    """In-memory HTTP fetcher with retry and rate-limit handling."""

    def __init__(
        self,
        auth_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        policy: RetryPolicy | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.auth_token = auth_token
        self.timeout = timeout
        self.policy = policy or RetryPolicy()
        self._clock = clock

    def fetch(
        self,
        url: str,
        expected_size: int = 0,
        show_progress: bool = False,
        cancel: threading.Event | None = None,
    ) -> bytes:
        """GET ``url`` and return the body.

        Raises:
            DefinitiveFetchError: Not found / unauthorized; not retried.
            TransientIOError: Retries exhausted.
            OperationCancelled: ``cancel`` was set.
        """
        return self.policy.run(
            lambda: self._fetch_once(url, expected_size, show_progress, cancel),
            description=f"download {url}",
            cancel=cancel,
        )

    # ── Single attempt ──────────────────────────────────────────

    def _request(self, url: str) -> urllib.request.Request:
        headers = {"User-Agent": f"toolpack/{__version__}"}
        if self.auth_token:
            headers["Authorization"] = f"token {self.auth_token}"
        return urllib.request.Request(url, headers=headers)

    def _fetch_once(
        self,
        url: str,
        expected_size: int,
        show_progress: bool,
        cancel: threading.Event | None,
    ) -> bytes:
        try:
            with urllib.request.urlopen(self._request(url), timeout=self.timeout) as resp:
                total = expected_size or int(resp.headers.get("Content-Length") or 0)
                body = self._read_body(resp, url, total, show_progress, cancel)
        except urllib.error.HTTPError as e:
            raise self._classify(e, url) from e

        if expected_size > 0 and len(body) != expected_size:
            raise TransientIOError(
                f"size mismatch for {url}: expected {expected_size} bytes, got {len(body)}",
            )
        return body

    def _read_body(
        self,
        resp,
        url: str,
        total: int,
        show_progress: bool,
        cancel: threading.Event | None,
    ) -> bytes:
        chunks: list[bytes] = []
        received = 0
        next_report = 10
        while True:
            if cancel is not None and cancel.is_set():
                raise OperationCancelled(f"download of {url} cancelled")
            chunk = resp.read(_CHUNK)
            if not chunk:
                break
            chunks.append(chunk)
            received += len(chunk)
            if show_progress and total > 0:
                percent = received * 100 // total
                if percent >= next_report:
                    logger.info("Downloading %s: %d%% (%d/%d bytes)", url, percent, received, total)
                    next_report = (percent // 10 + 1) * 10
        return b"".join(chunks)

    def _classify(self, err: urllib.error.HTTPError, url: str) -> Exception:
        status = err.code
        headers = err.headers

        if status == 403 and headers is not None and headers.get("X-RateLimit-Remaining") == "0":
            reset = headers.get("X-RateLimit-Reset")
            wait = 60.0
            if reset and reset.isdigit():
                wait = max(float(reset) - self._clock(), 0.0)
            return RateLimitedError(
                f"GitHub rate limit exceeded for {url}", retry_after=wait,
            )

        if status == 429:
            retry_after = headers.get("Retry-After", "") if headers is not None else ""
            wait = float(retry_after) if retry_after.isdigit() else 60.0
            return RateLimitedError(f"too many requests for {url}", retry_after=wait)

        if status >= 500:
            return TransientIOError(f"server error {status} for {url}")

        if status == 404:
            return DefinitiveFetchError(f"not found: {url}", status=status)
        if status in (401, 403):
            return DefinitiveFetchError(
                f"access denied ({status}) for {url}; check the auth token", status=status,
            )
        return DefinitiveFetchError(f"HTTP {status} for {url}", status=status)
