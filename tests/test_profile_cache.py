"""
Tests for the chatter profile lookaside cache.
"""

import asyncio
import threading

import pytest

from stream_control.utils.profile_cache import (
    LookupFailed,
    ProfileCache,
    ProfileRecord,
    StorageUnavailable,
)

from conftest import FakeLookup, FakeStore


@pytest.mark.asyncio
async def test_miss_looks_up_and_stores(cache, store, lookup):
    """A cold key is fetched once and written back."""
    record = await cache.resolve("alice")
    await cache.flush()

    assert record == ProfileRecord("alice", "Alice", "https://x/a.png")
    assert lookup.calls == ["alice"]
    assert store.records == {"alice": record}
    assert cache.stats.misses == 1
    assert cache.stats.lookups == 1


@pytest.mark.asyncio
async def test_stored_record_skips_lookup():
    """An existing row wins even if Twitch would now say something else."""
    old = ProfileRecord("alice", "AliceOld", "https://x/old.png")
    store = FakeStore({"alice": old})
    lookup = FakeLookup({"alice": ("Alice", "https://x/a.png")})
    cache = ProfileCache(store=store, lookup=lookup)

    assert await cache.resolve("alice") == old
    assert lookup.calls == []
    assert cache.stats.hits == 1


@pytest.mark.asyncio
async def test_repeat_resolves_return_first_record(cache, lookup):
    first = await cache.resolve("alice")
    await cache.flush()
    lookup.profiles["alice"] = ("Renamed", "https://x/new.png")

    for _ in range(3):
        assert await cache.resolve("alice") == first
    assert lookup.calls == ["alice"]


@pytest.mark.asyncio
async def test_unknown_user_fails_and_stores_nothing(cache, store):
    with pytest.raises(LookupFailed) as exc_info:
        await cache.resolve("ghost")
    await cache.flush()

    assert exc_info.value.key == "ghost"
    assert "ghost" not in store.records
    assert cache.stats.lookup_failures == 1


@pytest.mark.asyncio
async def test_lookup_error_becomes_lookup_failed(cache, lookup, store):
    lookup.error = ConnectionError("twitch unreachable")

    with pytest.raises(LookupFailed) as exc_info:
        await cache.resolve("alice")

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert "twitch unreachable" in exc_info.value.reason
    assert store.records == {}


@pytest.mark.asyncio
async def test_lookup_failed_passes_through(cache, lookup):
    lookup.error = LookupFailed("alice", "rate limited")

    with pytest.raises(LookupFailed, match="rate limited"):
        await cache.resolve("alice")


@pytest.mark.asyncio
async def test_failed_lookup_is_retried_next_time(cache, lookup):
    lookup.error = LookupFailed("alice", "rate limited")
    with pytest.raises(LookupFailed):
        await cache.resolve("alice")

    lookup.error = None
    record = await cache.resolve("alice")

    assert record.display_name == "Alice"
    assert lookup.calls == ["alice", "alice"]


@pytest.mark.asyncio
async def test_write_failure_still_returns_record(cache, store, caplog):
    store.fail_writes = True

    record = await cache.resolve("alice")
    await cache.flush()

    assert record.display_name == "Alice"
    assert store.records == {}
    assert cache.stats.write_failures == 1
    assert "Profile store write failed for alice" in caplog.text


@pytest.mark.asyncio
async def test_read_failure_falls_through_to_lookup(cache, store, lookup, caplog):
    store.fail_reads = True

    record = await cache.resolve("bob")

    assert record.display_name == "Bob"
    assert lookup.calls == ["bob"]
    assert cache.stats.storage_errors == 1
    assert "Profile store read failed for bob" in caplog.text


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_lookup(store):
    lookup = FakeLookup({"bob": ("Bob", "https://x/b.png")}, delay=0.05)
    cache = ProfileCache(store=store, lookup=lookup)

    results = await asyncio.gather(*(cache.resolve("bob") for _ in range(5)))
    await cache.flush()

    assert lookup.calls == ["bob"]
    assert all(r == results[0] for r in results)
    assert store.inserts == 1
    assert list(store.records) == ["bob"]
    assert cache.stats.deduplicated == 4
    assert cache.in_flight == 0


@pytest.mark.asyncio
async def test_different_keys_load_in_parallel(store):
    lookup = FakeLookup(
        {"alice": ("Alice", "a.png"), "bob": ("Bob", "b.png")},
        delay=0.3,
    )
    cache = ProfileCache(store=store, lookup=lookup)

    loop = asyncio.get_running_loop()
    started = loop.time()
    alice, bob = await asyncio.gather(cache.resolve("alice"), cache.resolve("bob"))

    assert (alice.display_name, bob.display_name) == ("Alice", "Bob")
    assert loop.time() - started < 0.55
    assert sorted(lookup.calls) == ["alice", "bob"]


@pytest.mark.asyncio
async def test_concurrent_failure_reaches_every_caller(store):
    lookup = FakeLookup({}, delay=0.05)
    cache = ProfileCache(store=store, lookup=lookup)

    results = await asyncio.gather(
        cache.resolve("ghost"), cache.resolve("ghost"), return_exceptions=True
    )

    assert all(isinstance(r, LookupFailed) for r in results)
    assert lookup.calls == ["ghost"]


@pytest.mark.asyncio
async def test_pending_write_serves_later_calls(cache, store, lookup):
    """While the first write is still running, the key is not fetched again."""
    store.insert_gate = threading.Event()

    first = await cache.resolve("alice")
    assert cache.pending_writes == 1
    second = await cache.resolve("alice")

    store.insert_gate.set()
    await cache.flush()

    assert second is first
    assert lookup.calls == ["alice"]
    assert cache.pending_writes == 0


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_load(store):
    lookup = FakeLookup({"bob": ("Bob", "b.png")}, delay=0.1)
    cache = ProfileCache(store=store, lookup=lookup)

    impatient = asyncio.create_task(cache.resolve("bob"))
    patient = asyncio.create_task(cache.resolve("bob"))
    await asyncio.sleep(0.01)
    impatient.cancel()

    record = await patient
    assert record.display_name == "Bob"
    assert impatient.cancelled()
    assert lookup.calls == ["bob"]


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["", None, 42])
async def test_invalid_key_rejected(cache, key):
    with pytest.raises(ValueError):
        await cache.resolve(key)


@pytest.mark.asyncio
async def test_store_read_errors_are_advisory_not_fatal(cache, store, lookup):
    """A broken store and a failed lookup still surface as LookupFailed."""
    store.fail_reads = True
    lookup.error = LookupFailed("alice", "HTTP 503")

    with pytest.raises(LookupFailed):
        await cache.resolve("alice")
    assert cache.stats.storage_errors == 1


def test_storage_unavailable_is_a_cache_error():
    from stream_control.utils.profile_cache import ProfileCacheError

    assert issubclass(StorageUnavailable, ProfileCacheError)
    assert issubclass(LookupFailed, ProfileCacheError)
