"""Resolve URLs and full hashes against local prefixes and the remote service."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from ..database import PrefixDatabase
from ..errors import InvalidArgumentError, RetryExhaustedError, VerificationExhaustedError
from ..hits import HitCache
from ..retry import RetryPolicy
from ..text import Messages
from ..threats import (
    ALL_CATEGORIES,
    FULL_HASH_SIZE,
    MIN_PREFIX_SIZE,
    CandidateHasher,
    HashLocation,
    ThreatCategory,
    ThreatListClient,
)
from .hashing_service import derive_candidate_hashes

logger = logging.getLogger(__name__)

POSITIVE_LOCATION = "positive"
NEGATIVE_LOCATION = "negative"


def coerce_hash(value: bytes | bytearray | str, *, exact: bool = True) -> bytes:
    """Accept raw bytes or a hex string; ``exact`` requires a full 32-byte hash."""
    if isinstance(value, str):
        try:
            data = bytes.fromhex(value.strip())
        except ValueError as exc:
            raise InvalidArgumentError(Messages.ERROR_HASH_INVALID.format(value=value)) from exc
    elif isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
    else:
        raise InvalidArgumentError(Messages.ERROR_HASH_INVALID.format(value=value))
    if exact and len(data) != FULL_HASH_SIZE:
        raise InvalidArgumentError(Messages.ERROR_HASH_LENGTH.format(length=len(data)))
    if not MIN_PREFIX_SIZE <= len(data) <= FULL_HASH_SIZE:
        raise InvalidArgumentError(Messages.ERROR_HASH_LENGTH.format(length=len(data)))
    return data


class LookupEngine:
    def __init__(
        self,
        databases: Mapping[ThreatCategory, PrefixDatabase],
        hits: HitCache,
        client: ThreatListClient,
        retry: RetryPolicy,
        *,
        hasher: CandidateHasher = derive_candidate_hashes,
        categories: Sequence[ThreatCategory] = ALL_CATEGORIES,
    ) -> None:
        self.databases = databases
        self.hits = hits
        self.client = client
        self.retry = retry
        self.hasher = hasher
        self.categories = tuple(categories)

    def prefix_sizes(self) -> list[int]:
        sizes: set[int] = set()
        for category in ThreatCategory:
            database = self.databases.get(category)
            if database is not None:
                sizes.update(database.prefix_sizes)
        return sorted(sizes)

    def match_prefix(
        self, full_hash: bytes, sizes: Sequence[int] | None = None
    ) -> tuple[ThreatCategory, int] | None:
        """First (shortest length, then enum order) category holding a prefix of ``full_hash``."""
        for size in self.prefix_sizes() if sizes is None else sizes:
            if size > len(full_hash):
                break
            prefix = full_hash[:size]
            for category in ThreatCategory:
                database = self.databases.get(category)
                if database is not None and database.contains(prefix):
                    return category, size
        return None

    async def check(
        self, uri_or_hash: str | bytes, is_hash: bool = False
    ) -> list[str]:
        if is_hash:
            candidates: Sequence[bytes] = [coerce_hash(uri_or_hash)]
        else:
            if not isinstance(uri_or_hash, str):
                raise InvalidArgumentError(Messages.ERROR_URI_TYPE)
            candidates = self.hasher(uri_or_hash)
        found: set[ThreatCategory] = set()
        for full_hash in candidates:
            found.update(await self.resolve(full_hash))
        return [category.threat_name for category in ThreatCategory if category in found]

    async def resolve(self, full_hash: bytes) -> frozenset[ThreatCategory]:
        cached = self.hits.get_positive(full_hash)
        if cached is not None:
            return cached
        sizes = self.prefix_sizes()
        for size in sizes:
            if size > len(full_hash):
                break
            if self.hits.is_negative(full_hash[:size]):
                return frozenset()
        match = self.match_prefix(full_hash, sizes)
        if match is None:
            return frozenset()
        _, size = match
        try:
            return await self._verify(full_hash, full_hash[:size])
        except VerificationExhaustedError as exc:
            logger.warning(Messages.WARNING_VERIFY_FAILED.format(prefix=exc.prefix.hex(), reason=exc.cause))
            return frozenset()

    async def _verify(self, full_hash: bytes, prefix: bytes) -> frozenset[ThreatCategory]:
        try:
            result = await self.retry.run(
                lambda: self.client.search_hashes(prefix, self.categories)
            )
        except RetryExhaustedError as exc:
            raise VerificationExhaustedError(prefix, exc.last_error) from exc
        found: set[ThreatCategory] = set()
        for threat in result.threats:
            self.hits.put_positive(threat.full_hash, threat.expire_time, threat.categories)
            if threat.full_hash == full_hash:
                found.update(threat.categories)
        if result.negative_expire_time is not None:
            self.hits.put_negative(prefix, result.negative_expire_time)
        return frozenset(found)

    def find_hash(self, value: bytes | str) -> HashLocation:
        """Report where a hash resolves right now without touching any state."""
        full_hash = coerce_hash(value, exact=False)
        if len(full_hash) == FULL_HASH_SIZE and self.hits.peek_positive(full_hash) is not None:
            return HashLocation(POSITIVE_LOCATION, FULL_HASH_SIZE)
        sizes = self.prefix_sizes()
        for size in sizes:
            if size > len(full_hash):
                break
            if self.hits.peek_negative(full_hash[:size]):
                return HashLocation(NEGATIVE_LOCATION, size)
        match = self.match_prefix(full_hash, sizes)
        if match is None:
            return HashLocation(None, None)
        category, size = match
        return HashLocation(category.value, size)
