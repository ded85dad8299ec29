"""Memo of remote verification outcomes with lazy expiry."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Iterable

from .threats import ThreatCategory


@dataclass(frozen=True, slots=True)
class PositiveHit:
    expire_time: float
    categories: frozenset[ThreatCategory]


class HitCache:
    """Positive hits keyed by full hash, negative hits keyed by prefix.

    Expired entries are dropped when a lookup touches them; nothing sweeps in
    the background. ``peek_*`` variants never mutate.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = Lock()
        self._positive: dict[bytes, PositiveHit] = {}
        self._negative: dict[bytes, float] = {}

    def get_positive(self, full_hash: bytes) -> frozenset[ThreatCategory] | None:
        now = self._clock()
        with self._lock:
            hit = self._positive.get(full_hash)
            if hit is None:
                return None
            if hit.expire_time <= now:
                del self._positive[full_hash]
                return None
            return hit.categories

    def peek_positive(self, full_hash: bytes) -> frozenset[ThreatCategory] | None:
        now = self._clock()
        with self._lock:
            hit = self._positive.get(full_hash)
        if hit is None or hit.expire_time <= now:
            return None
        return hit.categories

    def put_positive(
        self,
        full_hash: bytes,
        expire_time: float,
        categories: Iterable[ThreatCategory],
    ) -> None:
        with self._lock:
            self._positive[bytes(full_hash)] = PositiveHit(
                expire_time=float(expire_time),
                categories=frozenset(categories),
            )

    def is_negative(self, prefix: bytes) -> bool:
        now = self._clock()
        with self._lock:
            expire_time = self._negative.get(prefix)
            if expire_time is None:
                return False
            if expire_time <= now:
                del self._negative[prefix]
                return False
            return True

    def peek_negative(self, prefix: bytes) -> bool:
        now = self._clock()
        with self._lock:
            expire_time = self._negative.get(prefix)
        return expire_time is not None and expire_time > now

    def put_negative(self, prefix: bytes, expire_time: float) -> None:
        with self._lock:
            self._negative[bytes(prefix)] = float(expire_time)

    def positive_entries(self) -> dict[bytes, PositiveHit]:
        with self._lock:
            return dict(self._positive)

    def negative_entries(self) -> dict[bytes, float]:
        with self._lock:
            return dict(self._negative)

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            stale_positive = [
                key for key, hit in self._positive.items() if hit.expire_time <= now
            ]
            stale_negative = [
                key for key, expire in self._negative.items() if expire <= now
            ]
            for key in stale_positive:
                del self._positive[key]
            for key in stale_negative:
                del self._negative[key]
        return len(stale_positive) + len(stale_negative)

    def clear(self) -> None:
        with self._lock:
            self._positive.clear()
            self._negative.clear()
