from __future__ import annotations

import hashlib
from typing import Iterable, Sequence

import pytest

from webrisk_cache.config import Config
from webrisk_cache.database import prefix_sort_key
from webrisk_cache.threats import (
    DiffKind,
    DiffRequest,
    DiffResponse,
    RawHashes,
    SearchResult,
    ThreatCategory,
)

START_TIME = 1_700_000_000.0


class ManualClock:
    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def checksum_of(entries: Iterable[bytes]) -> bytes:
    return hashlib.sha256(b"".join(sorted(set(entries), key=prefix_sort_key))).digest()


def raw_additions(entries: Sequence[bytes]) -> list[RawHashes]:
    by_size: dict[int, list[bytes]] = {}
    for entry in entries:
        by_size.setdefault(len(entry), []).append(entry)
    return [RawHashes(size, b"".join(items)) for size, items in sorted(by_size.items())]


class FakeThreatList:
    """In-memory stand-in for the Web Risk diff and verification calls."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self.diff_queue: dict[ThreatCategory, list[object]] = {c: [] for c in ThreatCategory}
        self.diff_requests: list[DiffRequest] = []
        self.search_results: dict[bytes, list[object]] = {}
        self.search_calls: list[tuple[bytes, tuple[ThreatCategory, ...]]] = []

    def queue_reset(
        self,
        category: ThreatCategory,
        entries: Sequence[bytes],
        *,
        token: bytes = b"token-1",
        next_diff: float | None = None,
        checksum: bytes | None = None,
    ) -> DiffResponse:
        response = DiffResponse(
            kind=DiffKind.RESET,
            new_version_token=token,
            checksum=checksum_of(entries) if checksum is None else checksum,
            recommended_next_diff=self.clock() + 1800 if next_diff is None else next_diff,
            additions=raw_additions(entries),
        )
        self.diff_queue[category].append(response)
        return response

    def queue_diff(
        self,
        category: ThreatCategory,
        *,
        expected: Sequence[bytes],
        additions: Sequence[bytes] = (),
        removals: Sequence[int] = (),
        token: bytes = b"token-2",
        next_diff: float | None = None,
        checksum: bytes | None = None,
    ) -> DiffResponse:
        response = DiffResponse(
            kind=DiffKind.DIFF,
            new_version_token=token,
            checksum=checksum_of(expected) if checksum is None else checksum,
            recommended_next_diff=self.clock() + 1800 if next_diff is None else next_diff,
            additions=raw_additions(additions),
            removal_indices=list(removals),
        )
        self.diff_queue[category].append(response)
        return response

    def queue_error(self, category: ThreatCategory, exc: BaseException) -> None:
        self.diff_queue[category].append(exc)

    def set_search(self, prefix: bytes, *results: object) -> None:
        self.search_results[prefix] = list(results)

    async def compute_diff(self, request: DiffRequest) -> DiffResponse:
        self.diff_requests.append(request)
        queue = self.diff_queue[request.category]
        if not queue:
            raise ConnectionError(f"no diff queued for {request.category.value}")
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def search_hashes(
        self, prefix: bytes, categories: Sequence[ThreatCategory]
    ) -> SearchResult:
        self.search_calls.append((prefix, tuple(categories)))
        queue = self.search_results.get(prefix)
        if not queue:
            return SearchResult()
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def recorded_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def threat_list(clock) -> FakeThreatList:
    return FakeThreatList(clock)


@pytest.fixture
def fast_config() -> Config:
    return Config(
        api_key="test-key",
        sync_attempts=2,
        sync_retry_delay=30.0,
        verify_attempts=3,
        verify_base_delay=1.0,
        verify_max_delay=4.0,
    )


@pytest.fixture
def checksum():
    return checksum_of


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    monkeypatch.setattr("webrisk_cache.config.CONFIG_DIR", config_dir)
    monkeypatch.setattr("webrisk_cache.config.CONFIG_FILE", config_dir / "config.json")
    monkeypatch.delenv("WEBRISK_API_KEY", raising=False)
    return config_dir / "config.json"
