"""Threat categories and the wire-neutral messages exchanged with Web Risk."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping, NamedTuple, Protocol, Sequence

from .errors import InvalidArgumentError
from .text import Messages

MIN_PREFIX_SIZE = 4
FULL_HASH_SIZE = 32
ALL_CATEGORIES_TOKEN = "all"


class ThreatCategory(str, Enum):
    MALWARE = "malware"
    SOCIAL_ENGINEERING = "social"
    UNWANTED_SOFTWARE = "unwanted"

    @property
    def threat_name(self) -> str:
        """Upper-case name used by the remote service and in check results."""
        return self.name


ALL_CATEGORIES: tuple[ThreatCategory, ...] = tuple(ThreatCategory)


def parse_categories(value: str | ThreatCategory) -> tuple[ThreatCategory, ...]:
    """Resolve a category selector (``malware``/``social``/``unwanted``/``all``)."""

    if isinstance(value, ThreatCategory):
        return (value,)
    if isinstance(value, str):
        token = value.strip().lower()
        if token == ALL_CATEGORIES_TOKEN:
            return ALL_CATEGORIES
        for category in ThreatCategory:
            if category.value == token:
                return (category,)
    raise InvalidArgumentError(Messages.ERROR_CATEGORY_INVALID.format(value=value))


class DiffKind(str, Enum):
    RESET = "RESET"
    DIFF = "DIFF"


@dataclass(frozen=True, slots=True)
class RawHashes:
    """Prefixes of a single size, concatenated as the service sends them."""

    prefix_size: int
    raw_hashes: bytes

    def split(self) -> list[bytes]:
        size = self.prefix_size
        if size < MIN_PREFIX_SIZE or size > FULL_HASH_SIZE:
            raise ValueError(Messages.ERROR_PREFIX_SIZE_INVALID.format(size=size))
        if len(self.raw_hashes) % size:
            raise ValueError(
                Messages.ERROR_RAW_HASHES_MISALIGNED.format(
                    length=len(self.raw_hashes), size=size
                )
            )
        data = self.raw_hashes
        return [data[idx : idx + size] for idx in range(0, len(data), size)]


@dataclass(frozen=True, slots=True)
class DiffRequest:
    category: ThreatCategory
    version_token: bytes | None = None
    constraint: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DiffResponse:
    kind: DiffKind
    new_version_token: bytes
    checksum: bytes
    recommended_next_diff: float | None
    additions: Sequence[RawHashes] = ()
    removal_indices: Sequence[int] = ()

    def addition_entries(self) -> list[bytes]:
        entries: list[bytes] = []
        for raw in self.additions:
            entries.extend(raw.split())
        return entries


@dataclass(frozen=True, slots=True)
class ThreatRecord:
    full_hash: bytes
    categories: frozenset[ThreatCategory]
    expire_time: float


@dataclass(frozen=True, slots=True)
class SearchResult:
    threats: Sequence[ThreatRecord] = ()
    negative_expire_time: float | None = None


class HashLocation(NamedTuple):
    """Where a hash currently resolves: a category name, ``positive``, ``negative`` or None."""

    location: str | None
    prefix_length: int | None


class ThreatListClient(Protocol):
    async def compute_diff(self, request: DiffRequest) -> DiffResponse: ...

    async def search_hashes(
        self, prefix: bytes, categories: Sequence[ThreatCategory]
    ) -> SearchResult: ...


CandidateHasher = Callable[[str], Sequence[bytes]]
