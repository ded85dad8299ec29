"""Retry policies wrapping every outbound Web Risk call."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from .config import (
    DEFAULT_SYNC_ATTEMPTS,
    DEFAULT_SYNC_RETRY_DELAY,
    DEFAULT_VERIFY_ATTEMPTS,
    DEFAULT_VERIFY_BASE_DELAY,
    DEFAULT_VERIFY_MAX_DELAY,
    Config,
)
from .errors import RemoteServiceError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleeper = Callable[[float], Awaitable[object]]


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, RemoteServiceError):
        return exc.retryable
    return True


@dataclass
class RetryPolicy:
    """Run a coroutine factory until it succeeds or attempts run out.

    With ``multiplier == 1`` the delay between attempts is fixed; otherwise it
    grows geometrically from ``base_delay`` and is capped at ``max_delay``.
    """

    name: str
    attempts: int
    base_delay: float
    max_delay: float
    multiplier: float = 1.0
    sleep: Sleeper = asyncio.sleep

    def __post_init__(self) -> None:
        self.attempts = max(int(self.attempts), 1)

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the zero-based ``attempt`` failed."""
        return min(self.max_delay, self.base_delay * (self.multiplier**attempt))

    async def run(self, call: Callable[[], Awaitable[T]]) -> T:
        last_error: Exception | None = None
        for attempt in range(self.attempts):
            try:
                return await call()
            except Exception as exc:
                last_error = exc
                if not _is_retryable(exc):
                    logger.warning("%s: giving up on non-retryable error: %s", self.name, exc)
                    raise RetryExhaustedError(attempt + 1, exc) from exc
                if attempt + 1 >= self.attempts:
                    break
                delay = self.delay_for(attempt)
                logger.debug(
                    "%s: attempt %d/%d failed (%s); retrying in %.1fs",
                    self.name,
                    attempt + 1,
                    self.attempts,
                    exc,
                    delay,
                )
                await self.sleep(delay)
        raise RetryExhaustedError(self.attempts, last_error) from last_error


def fixed_delay(
    attempts: int = DEFAULT_SYNC_ATTEMPTS,
    delay: float = DEFAULT_SYNC_RETRY_DELAY,
    *,
    sleep: Sleeper = asyncio.sleep,
) -> RetryPolicy:
    """Bounded fixed-delay strategy used for diff synchronization."""
    return RetryPolicy(
        name="sync",
        attempts=attempts,
        base_delay=delay,
        max_delay=delay,
        multiplier=1.0,
        sleep=sleep,
    )


def exponential_backoff(
    attempts: int = DEFAULT_VERIFY_ATTEMPTS,
    base_delay: float = DEFAULT_VERIFY_BASE_DELAY,
    max_delay: float = DEFAULT_VERIFY_MAX_DELAY,
    *,
    sleep: Sleeper = asyncio.sleep,
) -> RetryPolicy:
    """Doubling backoff strategy used for full-hash verification."""
    return RetryPolicy(
        name="verify",
        attempts=attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        multiplier=2.0,
        sleep=sleep,
    )


def policies_from_config(
    config: Config, *, sleep: Sleeper = asyncio.sleep
) -> tuple[RetryPolicy, RetryPolicy]:
    return (
        fixed_delay(config.sync_attempts, config.sync_retry_delay, sleep=sleep),
        exponential_backoff(
            config.verify_attempts,
            config.verify_base_delay,
            config.verify_max_delay,
            sleep=sleep,
        ),
    )
