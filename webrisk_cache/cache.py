"""Client-side mirror of the Web Risk threat lists.

Typical usage::

    async with WebRiskCache(api_key) as cache:
        await cache.request_diff("all")
        threats = await cache.check("https://www.risky-website.com/")
        # => ["SOCIAL_ENGINEERING"]

Diffs are pulled per category and re-armed at the time the service
recommends. Lookups only reach the service when a local prefix matches.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Mapping

from .config import Config, load_config
from .database import PrefixDatabase
from .errors import (
    ChecksumMismatchError,
    InvalidArgumentError,
    SyncExhaustedError,
    WebRiskCacheError,
)
from .hits import HitCache
from .retry import Sleeper, policies_from_config
from .services.hashing_service import derive_candidate_hashes
from .services.lookup_service import LookupEngine
from .services.sync_service import SyncController, SyncOutcome
from .text import Messages
from .threats import (
    CandidateHasher,
    HashLocation,
    ThreatCategory,
    ThreatListClient,
    parse_categories,
)

logger = logging.getLogger(__name__)


class WebRiskCache:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: ThreatListClient | None = None,
        config: Config | None = None,
        hasher: CandidateHasher = derive_candidate_hashes,
        clock: Callable[[], float] = time.time,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.config = config if config is not None else load_config()
        if client is None:
            from .providers.webrisk import WebRiskBackend  # local import keeps google deps lazy

            client = WebRiskBackend(api_key=api_key or self.config.api_key)
        self.client = client
        sync_retry, verify_retry = policies_from_config(self.config, sleep=sleep)
        self.hits = HitCache(clock=clock)
        self.databases = {category: PrefixDatabase(category) for category in ThreatCategory}
        self.controllers = {
            category: SyncController(
                database,
                client,
                sync_retry,
                fallback_delay=self.config.fallback_resync_delay,
                max_reset_attempts=self.config.max_reset_attempts,
                default_constraint=self.config.diff_constraint(),
                clock=clock,
            )
            for category, database in self.databases.items()
        }
        self.engine = LookupEngine(self.databases, self.hits, client, verify_retry, hasher=hasher)

    async def __aenter__(self) -> "WebRiskCache":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request_diff(
        self,
        category: str | ThreatCategory = "all",
        reset: bool = False,
        constraint: Mapping[str, object] | None = None,
    ) -> dict[ThreatCategory, SyncOutcome]:
        """Synchronize one category (or ``all``) right away.

        Every selected category is attempted. A single failed category raises
        its own error; several failures are reported together in one
        SyncExhaustedError.
        """
        categories = parse_categories(category)
        outcomes: dict[ThreatCategory, SyncOutcome] = {}
        failures: list[tuple[ThreatCategory, WebRiskCacheError]] = []
        for selected in categories:
            try:
                outcomes[selected] = await self.controllers[selected].request_diff(
                    reset, constraint
                )
            except (SyncExhaustedError, ChecksumMismatchError) as exc:
                failures.append((selected, exc))
        if failures:
            if len(failures) == 1:
                raise failures[0][1]
            failed = [selected for selected, _ in failures]
            raise SyncExhaustedError(
                failed,
                Messages.ERROR_SYNC_EXHAUSTED_MANY.format(
                    categories=", ".join(cat.value for cat in failed)
                ),
            ) from failures[-1][1]
        return outcomes

    async def check(self, uri_or_hash: str | bytes, is_hash: bool = False) -> list[str]:
        """Threat names (e.g. ``SOCIAL_ENGINEERING``) confirmed for a URL or full hash."""
        return await self.engine.check(uri_or_hash, is_hash)

    def find_hash(self, value: bytes | str) -> HashLocation:
        return self.engine.find_hash(value)

    @property
    def tokens(self) -> dict[ThreatCategory, bytes | None]:
        return {category: db.version_token for category, db in self.databases.items()}

    @property
    def prefix_sizes(self) -> dict[ThreatCategory, frozenset[int]]:
        return {category: db.prefix_sizes for category, db in self.databases.items()}

    def database(self, category: str | ThreatCategory) -> PrefixDatabase:
        categories = parse_categories(category)
        if len(categories) != 1:
            raise InvalidArgumentError(Messages.ERROR_CATEGORY_SINGLE)
        return self.databases[categories[0]]

    def close(self) -> None:
        """Release every pending sync timer. Safe to call more than once."""
        for controller in self.controllers.values():
            controller.close()

    async def aclose(self) -> None:
        self.close()
        aclose = getattr(self.client, "aclose", None)
        if aclose is not None:
            await aclose()
