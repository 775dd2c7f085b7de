"""Retry policy for calls to the generation backend.

The policy answers three questions: is this failure worth another attempt,
how long to wait before attempt *n*, and how to wait. The wait goes through
``asyncio`` so cancelling the calling task (deadline, client disconnect)
aborts it immediately.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0


# ---------------------------------------------------------------------------
# Failure signals raised by provider backends
# ---------------------------------------------------------------------------

class ProviderError(Exception):
    """Base for failures reported by a provider's ``_call_api``."""


class RateLimitedError(ProviderError):
    """Backend asked us to slow down (HTTP 429)."""


class EmptyResultError(ProviderError):
    """Backend answered successfully but with no result entries."""


class TransportError(ProviderError):
    """Network trouble before a status was received."""


class ProviderStatusError(ProviderError):
    """Backend answered with a non-success status other than 429."""

    def __init__(self, status: int, message: str = "") -> None:
        super().__init__(message or f"provider error status: {status}")
        self.status = status


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    Attempt 0 runs immediately. Before attempt ``n >= 1`` the caller waits
    ``min(base_delay * 2 ** (n - 1), max_delay)`` seconds, so the defaults
    give 1, 2, 4, 8, 16 seconds across six attempts.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, (RateLimitedError, EmptyResultError, TransportError))

    def delay_for_attempt(self, attempt: int) -> float:
        if attempt <= 0:
            return 0.0
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    async def wait(self, attempt: int) -> None:
        delay = self.delay_for_attempt(attempt)
        if delay > 0:
            await self.sleep(delay)
