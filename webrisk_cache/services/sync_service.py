"""Per-category synchronization of prefix databases with the Web Risk list."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping

from ..config import DEFAULT_FALLBACK_RESYNC_DELAY, DEFAULT_MAX_RESET_ATTEMPTS
from ..database import PrefixDatabase
from ..errors import ChecksumMismatchError, RetryExhaustedError, SyncExhaustedError
from ..retry import RetryPolicy
from ..text import Messages
from ..threats import DiffKind, DiffRequest, DiffResponse, ThreatListClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    kind: DiffKind
    entries: int
    resets: int
    next_sync_at: float | None = field(default=None)


class SyncController:
    """Drives diff requests for one category and keeps its next sync armed.

    Only one sync episode runs at a time per category. A timer that fires while
    an episode is running is dropped; the running episode re-arms the timer.
    """

    def __init__(
        self,
        database: PrefixDatabase,
        client: ThreatListClient,
        retry: RetryPolicy,
        *,
        fallback_delay: float = DEFAULT_FALLBACK_RESYNC_DELAY,
        max_reset_attempts: int = DEFAULT_MAX_RESET_ATTEMPTS,
        default_constraint: Mapping[str, object] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.database = database
        self.category = database.category
        self.client = client
        self.retry = retry
        self.fallback_delay = fallback_delay
        self.max_reset_attempts = max(int(max_reset_attempts), 1)
        self.default_constraint = dict(default_constraint or {})
        self._clock = clock
        self._lock = asyncio.Lock()
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self._closed = False
        self.next_sync_at: float | None = None

    @property
    def syncing(self) -> bool:
        return self._lock.locked()

    async def request_diff(
        self,
        reset: bool = False,
        constraint: Mapping[str, object] | None = None,
    ) -> SyncOutcome:
        """Caller-initiated sync; retry exhaustion is raised as SyncExhaustedError."""
        async with self._lock:
            try:
                return await self._sync(reset, constraint)
            except ChecksumMismatchError:
                self._keep_refresh_cycle()
                raise
            except RetryExhaustedError as exc:
                self._keep_refresh_cycle()
                raise SyncExhaustedError(
                    (self.category,),
                    Messages.ERROR_SYNC_EXHAUSTED.format(
                        category=self.category.value, reason=exc.last_error
                    ),
                ) from exc

    def _keep_refresh_cycle(self) -> None:
        # A timer suppressed during this episode relies on it to re-arm.
        if self._timer is None and self.database.version_token is not None:
            self.schedule_in(self.fallback_delay)

    async def _sync(
        self,
        reset: bool,
        constraint: Mapping[str, object] | None,
    ) -> SyncOutcome:
        merged = dict(self.default_constraint)
        merged.update(constraint or {})
        response: DiffResponse | None = None
        actual = b""
        for resets in range(self.max_reset_attempts + 1):
            request = DiffRequest(
                category=self.category,
                version_token=None if reset else self.database.version_token,
                constraint=merged,
            )
            response = await self.retry.run(lambda: self.client.compute_diff(request))
            staged = self.database.copy()
            if response.kind is DiffKind.RESET:
                staged.apply_reset(response.addition_entries())
            else:
                staged.apply_diff(response.addition_entries(), response.removal_indices)
            actual = staged.compute_checksum()
            if actual == response.checksum:
                self.database.adopt(staged, response.new_version_token)
                next_sync_at = self._schedule_at(response.recommended_next_diff)
                logger.info(
                    Messages.LOG_SYNC_APPLIED.format(
                        category=self.category.value,
                        kind=response.kind.value,
                        entries=len(self.database),
                    )
                )
                return SyncOutcome(
                    kind=response.kind,
                    entries=len(self.database),
                    resets=resets,
                    next_sync_at=next_sync_at,
                )
            logger.warning(
                Messages.WARNING_CHECKSUM_MISMATCH.format(category=self.category.value)
            )
            reset = True
        logger.error(
            Messages.LOG_CHECKSUM_NONCONVERGENT.format(
                category=self.category.value, attempts=self.max_reset_attempts + 1
            )
        )
        raise ChecksumMismatchError(self.category, response.checksum, actual)

    def _schedule_at(self, epoch_seconds: float | None) -> float:
        if epoch_seconds is None:
            return self.schedule_in(self.fallback_delay)
        return self.schedule_in(max(0.0, epoch_seconds - self._clock()))

    def schedule_in(self, delay: float) -> float:
        """Arm the next sync ``delay`` seconds from now, replacing any pending one."""
        self._cancel_timer()
        due = self._clock() + delay
        if self._closed:
            return due
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._fire)
        self.next_sync_at = due
        logger.debug(
            Messages.LOG_SYNC_SCHEDULED.format(category=self.category.value, delay=delay)
        )
        return due

    def _fire(self) -> None:
        self._timer = None
        self.next_sync_at = None
        if self._closed:
            return
        if self._lock.locked():
            logger.debug(Messages.LOG_SYNC_SUPPRESSED.format(category=self.category.value))
            return
        self._task = asyncio.get_running_loop().create_task(self._run_scheduled())

    async def _run_scheduled(self) -> None:
        async with self._lock:
            try:
                await self._sync(False, None)
            except asyncio.CancelledError:
                raise
            except RetryExhaustedError as exc:
                logger.warning(
                    Messages.WARNING_SYNC_FALLBACK.format(
                        category=self.category.value,
                        reason=exc.last_error,
                        delay=self.fallback_delay,
                    )
                )
                self.schedule_in(self.fallback_delay)
            except Exception as exc:
                logger.exception(
                    Messages.WARNING_SYNC_FALLBACK.format(
                        category=self.category.value,
                        reason=exc,
                        delay=self.fallback_delay,
                    )
                )
                self.schedule_in(self.fallback_delay)
        self._task = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.next_sync_at = None

    def close(self) -> None:
        """Cancel the pending timer and any running scheduled sync. Idempotent."""
        self._closed = True
        self._cancel_timer()
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
