"""Rate-limited call channel for outbound RPC traffic.

Calls are spaced by a minimum interval and transient failures (rate limits,
gateway errors) are retried with exponential backoff according to an explicit
RetryPolicy. Everything else fails immediately.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Optional, TypeVar

from votecart.errors import TransportError, VoteCartError, error_kind
from votecart.types import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = {429, 502, 503, 504}
_TRANSIENT_MARKERS = (
    "too many requests",
    "rate limit",
    "bad gateway",
    "service unavailable",
    "gateway timeout",
    "timed out",
    "timeout",
    "connection reset",
)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff settings for transient failures."""

    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 10.0  # seconds
    jitter: bool = False

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based)."""
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay


NO_RETRY = RetryPolicy(max_retries=0)


def _status_code(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None) or getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def is_transient(exc: BaseException) -> bool:
    """Classify an exception as retry-able (429 / 5xx gateway errors / timeouts)."""
    if isinstance(exc, VoteCartError):
        return False
    status = _status_code(exc)
    if status is not None:
        return status in TRANSIENT_STATUS_CODES
    message = str(exc).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


class RateLimitedChannel:
    """Thread-safe throttle + retry wrapper around blocking RPC calls."""

    def __init__(
        self,
        *,
        min_interval: float = 0.1,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_interval = min_interval
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock
        self._lock = Lock()
        self._last_call: Optional[float] = None
        self.calls_made = 0

    def _wait_turn(self) -> None:
        with self._lock:
            now = self._clock()
            if self._last_call is not None:
                wait = self.min_interval - (now - self._last_call)
                if wait > 0:
                    self._sleep(wait)
                    now = self._clock()
            self._last_call = now
            self.calls_made += 1

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run `fn` under the throttle.

        Domain errors raised by `fn` propagate unchanged; permanent and
        exhausted transient failures raise TransportError.
        """
        name = getattr(fn, "__name__", repr(fn))
        policy = self.retry_policy
        attempt = 0
        while True:
            self._wait_turn()
            try:
                return fn(*args, **kwargs)
            except VoteCartError:
                raise
            except Exception as exc:
                if not is_transient(exc):
                    logger.error("Permanent error in %s: %s", name, exc)
                    raise TransportError(f"{name}: {exc}") from exc
                if attempt >= policy.max_retries:
                    logger.error("Max retries (%d) exceeded for %s: %s", policy.max_retries, name, exc)
                    raise TransportError(f"{name}: {exc}") from exc
                delay = policy.delay_for(attempt)
                logger.warning(
                    "Transient error in %s (attempt %d/%d): %s. Retrying in %.2fs",
                    name,
                    attempt + 1,
                    policy.max_retries + 1,
                    exc,
                    delay,
                )
                self._sleep(delay)
                attempt += 1

    def try_call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
        """Same as `call` but returns a Result instead of raising."""
        try:
            return Result.success(self.call(fn, *args, **kwargs))
        except VoteCartError as exc:
            return Result.failure(error_kind(exc), str(exc))
