"""Per-category store of hash prefixes kept in checksum order."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from .threats import FULL_HASH_SIZE, MIN_PREFIX_SIZE, ThreatCategory
from .text import Messages

logger = logging.getLogger(__name__)


def prefix_sort_key(entry: bytes) -> tuple[int, int]:
    # Unsigned big-endian value of the entry at its own length.
    return int.from_bytes(entry, "big"), len(entry)


@dataclass(frozen=True, slots=True)
class _Snapshot:
    entries: tuple[bytes, ...] = ()
    members: frozenset[bytes] = frozenset()
    prefix_sizes: frozenset[int] = frozenset()
    version_token: bytes | None = None


class PrefixDatabase:
    """Sorted, de-duplicated prefixes of one threat category.

    All state lives in one immutable snapshot that is replaced by a single
    assignment, so readers only ever observe a fully applied update.
    """

    def __init__(self, category: ThreatCategory) -> None:
        self.category = category
        self._snapshot = _Snapshot()

    def __len__(self) -> int:
        return len(self._snapshot.entries)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._snapshot.entries)

    def __repr__(self) -> str:
        return (
            f"PrefixDatabase({self.category.value!r}, entries={len(self)}, "
            f"sizes={sorted(self.prefix_sizes)})"
        )

    @property
    def entries(self) -> tuple[bytes, ...]:
        return self._snapshot.entries

    @property
    def prefix_sizes(self) -> frozenset[int]:
        return self._snapshot.prefix_sizes

    @property
    def version_token(self) -> bytes | None:
        return self._snapshot.version_token

    def contains(self, prefix: bytes) -> bool:
        return bytes(prefix) in self._snapshot.members

    __contains__ = contains

    def copy(self) -> "PrefixDatabase":
        clone = PrefixDatabase(self.category)
        clone._snapshot = self._snapshot
        return clone

    def apply_reset(self, entries: Iterable[bytes]) -> None:
        """Replace every entry and rebuild the prefix size set."""
        members = set()
        for entry in entries:
            members.add(_validate_entry(entry))
        self._snapshot = _Snapshot(
            entries=tuple(sorted(members, key=prefix_sort_key)),
            members=frozenset(members),
            prefix_sizes=frozenset(len(entry) for entry in members),
            version_token=self._snapshot.version_token,
        )

    def apply_diff(
        self,
        additions: Iterable[bytes],
        removal_indices: Sequence[int] = (),
    ) -> None:
        """Remove entries by pre-diff sorted position, then add and re-sort.

        The prefix size set only grows here; a reset is the only way to shrink it.
        """
        current = self._snapshot
        drop = set()
        for index in removal_indices:
            if 0 <= index < len(current.entries):
                drop.add(index)
            else:
                logger.warning(
                    Messages.LOG_REMOVAL_OUT_OF_RANGE.format(
                        category=self.category.value,
                        index=index,
                        size=len(current.entries),
                    )
                )
        kept = [entry for idx, entry in enumerate(current.entries) if idx not in drop]
        members = set(kept)
        sizes = set(current.prefix_sizes)
        for entry in additions:
            entry = _validate_entry(entry)
            members.add(entry)
            sizes.add(len(entry))
        self._snapshot = _Snapshot(
            entries=tuple(sorted(members, key=prefix_sort_key)),
            members=frozenset(members),
            prefix_sizes=frozenset(sizes),
            version_token=current.version_token,
        )

    def compute_checksum(self) -> bytes:
        digest = hashlib.sha256()
        for entry in self._snapshot.entries:
            digest.update(entry)
        return digest.digest()

    def adopt(self, staged: "PrefixDatabase", version_token: bytes | None) -> None:
        """Take over the contents of a verified staging copy together with its token."""
        snapshot = staged._snapshot
        self._snapshot = _Snapshot(
            entries=snapshot.entries,
            members=snapshot.members,
            prefix_sizes=snapshot.prefix_sizes,
            version_token=version_token,
        )


def _validate_entry(entry: bytes) -> bytes:
    value = bytes(entry)
    if not MIN_PREFIX_SIZE <= len(value) <= FULL_HASH_SIZE:
        raise ValueError(Messages.ERROR_PREFIX_SIZE_INVALID.format(size=len(value)))
    return value
