from __future__ import annotations

import asyncio
import hashlib

import pytest

from webrisk_cache.database import PrefixDatabase
from webrisk_cache.errors import InvalidArgumentError
from webrisk_cache.hits import HitCache
from webrisk_cache.retry import exponential_backoff
from webrisk_cache.services.lookup_service import LookupEngine, coerce_hash
from webrisk_cache.threats import HashLocation, SearchResult, ThreatCategory, ThreatRecord

MALWARE = ThreatCategory.MALWARE
SOCIAL = ThreatCategory.SOCIAL_ENGINEERING
UNWANTED = ThreatCategory.UNWANTED_SOFTWARE

RISKY = hashlib.sha256(b"risky-website.com/").digest()
OTHER = hashlib.sha256(b"other.example/").digest()


def _engine(threat_list, clock, recorded_sleep, *, hashes=None, **prefixes):
    databases = {category: PrefixDatabase(category) for category in ThreatCategory}
    for name, entries in prefixes.items():
        databases[ThreatCategory[name.upper()]].apply_reset(entries)
    mapping = hashes or {}
    return LookupEngine(
        databases,
        HitCache(clock=clock),
        threat_list,
        exponential_backoff(3, 1.0, 4.0, sleep=recorded_sleep),
        hasher=lambda uri: mapping.get(uri, []),
    )


def test_find_hash_reports_category_and_prefix_length(threat_list, clock, recorded_sleep):
    full = b"\xaa\xbb\xcc\xdd" + b"\x00" * 28
    engine = _engine(threat_list, clock, recorded_sleep, malware=[b"\xaa\xbb\xcc\xdd"])

    assert engine.find_hash(full) == HashLocation("malware", 4)
    assert engine.find_hash(full.hex()) == ("malware", 4)
    assert engine.find_hash(b"\x01" * 32) == HashLocation(None, None)


def test_shortest_prefix_wins_across_categories(threat_list, clock, recorded_sleep):
    full = b"\xaa\xbb\xcc\xdd\xee" + b"\x00" * 27
    engine = _engine(
        threat_list,
        clock,
        recorded_sleep,
        malware=[b"\xaa\xbb\xcc\xdd\xee"],
        unwanted_software=[b"\xaa\xbb\xcc\xdd"],
    )

    assert engine.prefix_sizes() == [4, 5]
    assert engine.match_prefix(full) == (UNWANTED, 4)
    assert engine.find_hash(full) == HashLocation("unwanted", 4)


def test_same_length_ties_follow_category_order(threat_list, clock, recorded_sleep):
    full = b"\x10\x20\x30\x40" + b"\x00" * 28
    engine = _engine(
        threat_list,
        clock,
        recorded_sleep,
        social_engineering=[b"\x10\x20\x30\x40"],
        malware=[b"\x10\x20\x30\x40"],
    )

    assert engine.match_prefix(full) == (MALWARE, 4)


def test_check_without_local_match_skips_remote(threat_list, clock, recorded_sleep):
    engine = _engine(
        threat_list, clock, recorded_sleep, hashes={"http://safe/": [OTHER]}, malware=[RISKY[:4]]
    )

    assert asyncio.run(engine.check("http://safe/")) == []
    assert threat_list.search_calls == []


def test_check_confirms_threat_and_caches_positive(threat_list, clock, recorded_sleep):
    threat_list.set_search(
        RISKY[:4],
        SearchResult(
            threats=[ThreatRecord(RISKY, frozenset({SOCIAL}), clock() + 300)],
            negative_expire_time=clock() + 60,
        ),
    )
    engine = _engine(
        threat_list,
        clock,
        recorded_sleep,
        hashes={"https://risky-website.com/": [RISKY]},
        social_engineering=[RISKY[:4]],
    )

    async def scenario():
        first = await engine.check("https://risky-website.com/")
        second = await engine.check("https://risky-website.com/")
        return first, second

    first, second = asyncio.run(scenario())

    assert first == ["SOCIAL_ENGINEERING"]
    assert second == ["SOCIAL_ENGINEERING"]
    assert threat_list.search_calls == [(RISKY[:4], (MALWARE, SOCIAL, UNWANTED))]
    assert engine.find_hash(RISKY) == HashLocation("positive", 32)


def test_unrelated_full_hash_for_prefix_is_cached_but_not_reported(
    threat_list, clock, recorded_sleep
):
    sibling = RISKY[:4] + b"\xff" * 28
    threat_list.set_search(
        RISKY[:4],
        SearchResult(threats=[ThreatRecord(sibling, frozenset({MALWARE}), clock() + 300)]),
    )
    engine = _engine(threat_list, clock, recorded_sleep, malware=[RISKY[:4]])

    assert asyncio.run(engine.check(RISKY, is_hash=True)) == []
    assert engine.hits.peek_positive(sibling) == frozenset({MALWARE})


def test_negative_hit_prevents_repeat_verification(threat_list, clock, recorded_sleep):
    threat_list.set_search(RISKY[:4], SearchResult(negative_expire_time=clock() + 120))
    engine = _engine(threat_list, clock, recorded_sleep, malware=[RISKY[:4]])

    async def scenario():
        await engine.check(RISKY, is_hash=True)
        await engine.check(RISKY, is_hash=True)

    asyncio.run(scenario())

    assert len(threat_list.search_calls) == 1
    assert engine.find_hash(RISKY) == HashLocation("negative", 4)

    clock.advance(121)

    assert engine.find_hash(RISKY) == HashLocation("malware", 4)
    asyncio.run(engine.check(RISKY, is_hash=True))
    assert len(threat_list.search_calls) == 2


def test_expired_positive_hit_is_verified_again(threat_list, clock, recorded_sleep):
    threat_list.set_search(
        RISKY[:4],
        SearchResult(threats=[ThreatRecord(RISKY, frozenset({MALWARE}), clock() + 10)]),
    )
    engine = _engine(threat_list, clock, recorded_sleep, malware=[RISKY[:4]])

    asyncio.run(engine.check(RISKY, is_hash=True))
    clock.advance(10)
    assert asyncio.run(engine.check(RISKY, is_hash=True)) == ["MALWARE"]

    assert len(threat_list.search_calls) == 2


def test_verification_exhaustion_reports_no_threat(threat_list, clock, recorded_sleep, caplog):
    threat_list.set_search(RISKY[:4], ConnectionError("offline"))
    engine = _engine(threat_list, clock, recorded_sleep, malware=[RISKY[:4]])

    assert asyncio.run(engine.check(RISKY, is_hash=True)) == []
    assert len(threat_list.search_calls) == 3
    assert recorded_sleep.delays == [1.0, 2.0]
    assert "treating as safe" in caplog.text


def test_each_candidate_hash_is_verified(threat_list, clock, recorded_sleep):
    threat_list.set_search(
        RISKY[:4],
        SearchResult(threats=[ThreatRecord(RISKY, frozenset({MALWARE}), clock() + 60)]),
    )
    threat_list.set_search(
        OTHER[:4],
        SearchResult(threats=[ThreatRecord(OTHER, frozenset({UNWANTED}), clock() + 60)]),
    )
    engine = _engine(
        threat_list,
        clock,
        recorded_sleep,
        hashes={"http://both/": [OTHER, RISKY]},
        malware=[RISKY[:4]],
        unwanted_software=[OTHER[:4]],
    )

    assert asyncio.run(engine.check("http://both/")) == ["MALWARE", "UNWANTED_SOFTWARE"]


def test_find_hash_does_not_mutate_caches(threat_list, clock, recorded_sleep):
    engine = _engine(threat_list, clock, recorded_sleep, malware=[RISKY[:4]])
    engine.hits.put_negative(RISKY[:4], clock() + 1)
    clock.advance(5)

    engine.find_hash(RISKY)

    assert RISKY[:4] in engine.hits.negative_entries()


def test_coerce_hash_validation():
    assert coerce_hash("aa" * 32) == b"\xaa" * 32
    assert coerce_hash("aabbccdd", exact=False) == b"\xaa\xbb\xcc\xdd"
    with pytest.raises(InvalidArgumentError):
        coerce_hash("aabbccdd")
    with pytest.raises(InvalidArgumentError):
        coerce_hash("not-hex")
    with pytest.raises(InvalidArgumentError):
        coerce_hash("aabb", exact=False)
    with pytest.raises(InvalidArgumentError):
        coerce_hash(1234)


def test_check_rejects_non_string_uri(threat_list, clock, recorded_sleep):
    engine = _engine(threat_list, clock, recorded_sleep)

    with pytest.raises(InvalidArgumentError):
        asyncio.run(engine.check(b"http://x/"))
