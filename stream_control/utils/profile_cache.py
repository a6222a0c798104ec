"""
Lookaside cache for chatter profiles.

Resolves a Twitch login to a display name and avatar URL. The persistent store
is consulted first; on a miss the external lookup (the Twitch API) is called and
the result is written back for next time. Stored records are never updated.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Protocol

from .logger import get_logger

logger = get_logger("profile_cache")


class ProfileCacheError(Exception):
    """Base class for profile cache errors."""


class StorageUnavailable(ProfileCacheError):
    """Reading from or writing to the persistent store failed."""


class LookupFailed(ProfileCacheError):
    """The external lookup found nothing or errored."""

    def __init__(self, key: str, reason: str = "not found"):
        super().__init__(f"Profile lookup failed for {key!r}: {reason}")
        self.key = key
        self.reason = reason


@dataclass(frozen=True)
class ProfileRecord:
    """A cached chatter profile."""

    key: str
    display_name: str
    avatar_url: str


class ProfileStore(Protocol):
    def find_by_key(self, key: str) -> ProfileRecord | None: ...

    def insert(self, record: ProfileRecord) -> None: ...


class ProfileLookup(Protocol):
    def lookup_profile(self, key: str) -> ProfileRecord | None: ...


@dataclass
class CacheStats:
    """Running counters for the cache."""

    hits: int = 0
    misses: int = 0
    lookups: int = 0
    lookup_failures: int = 0
    storage_errors: int = 0
    write_failures: int = 0
    deduplicated: int = 0


@dataclass
class ProfileCache:
    """Read-through cache in front of a profile store and an external lookup.

    Concurrent ``resolve`` calls for the same key share one load, so at most one
    external lookup is in flight per key. Writes are scheduled as background
    tasks; a failed write is logged and counted but does not fail the caller.
    """

    store: ProfileStore
    lookup: ProfileLookup
    stats: CacheStats = field(default_factory=CacheStats)
    _in_flight: dict[str, asyncio.Task] = field(default_factory=dict)
    _pending: dict[str, ProfileRecord] = field(default_factory=dict)
    _writes: set[asyncio.Task] = field(default_factory=set)

    async def resolve(self, key: str) -> ProfileRecord:
        """Resolve a key to its profile record.

        Raises:
            ValueError: key is empty or not a string
            LookupFailed: the key is not stored and the external lookup failed
        """
        if not isinstance(key, str) or not key:
            raise ValueError("Profile key must be a non-empty string")

        task = self._in_flight.get(key)
        if task is not None:
            self.stats.deduplicated += 1
            logger.debug(f"Joining in-flight load for {key}")
        else:
            task = asyncio.create_task(self._load(key))
            self._in_flight[key] = task
            task.add_done_callback(lambda _t, k=key: self._in_flight.pop(k, None))

        # Shield so one caller's cancellation doesn't cancel the shared load
        return await asyncio.shield(task)

    async def _load(self, key: str) -> ProfileRecord:
        pending = self._pending.get(key)
        if pending is not None:
            self.stats.hits += 1
            return pending

        try:
            record = await asyncio.to_thread(self.store.find_by_key, key)
        except StorageUnavailable as e:
            # The external lookup is still authoritative, so keep going
            self.stats.storage_errors += 1
            logger.error(f"Profile store read failed for {key}: {e}")
            record = None

        if record is not None:
            self.stats.hits += 1
            return record

        self.stats.misses += 1
        self.stats.lookups += 1
        try:
            found = await asyncio.to_thread(self.lookup.lookup_profile, key)
        except LookupFailed:
            self.stats.lookup_failures += 1
            raise
        except Exception as e:
            self.stats.lookup_failures += 1
            raise LookupFailed(key, str(e)) from e

        if found is None:
            self.stats.lookup_failures += 1
            raise LookupFailed(key)

        record = ProfileRecord(
            key=key,
            display_name=found.display_name,
            avatar_url=found.avatar_url,
        )
        self._schedule_write(record)
        logger.debug(f"Resolved {key} via lookup as {record.display_name}")
        return record

    def _schedule_write(self, record: ProfileRecord) -> None:
        """Persist a record in the background."""
        self._pending[record.key] = record
        task = asyncio.create_task(asyncio.to_thread(self.store.insert, record))
        self._writes.add(task)
        task.add_done_callback(lambda t, r=record: self._write_done(t, r))

    def _write_done(self, task: asyncio.Task, record: ProfileRecord) -> None:
        self._writes.discard(task)
        if self._pending.get(record.key) is record:
            del self._pending[record.key]

        if task.cancelled():
            self.stats.write_failures += 1
            logger.warning(f"Profile write for {record.key} was cancelled")
            return

        error = task.exception()
        if error is not None:
            self.stats.write_failures += 1
            logger.error(f"Profile store write failed for {record.key}: {error}")

    async def flush(self) -> None:
        """Wait for all scheduled writes to finish."""
        while self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)

    @property
    def pending_writes(self) -> int:
        return len(self._writes)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)
