"""Probe cache - bounded-staleness view of an expensive instance probe.

Philosophy:
- Always returns, never throws: every failure becomes ``alive=False``
- Freshness from file mtime, one file per key
- Persistence is best-effort: a failed write-back never degrades a
  successful fetch
- No background work: refills happen inside ``get``

Public API:
    ProbeCache: Refill orchestrator (``get``, ``inspect``)
    CacheStatus: Diagnostic snapshot of one key
    Exporter: Fetch function signature

Refill protocol of ``get(key, context, force_update)``:

    no exporter              -> dead record, no I/O
    not forced, FRESH        -> stored record, verbatim
    not forced, stat error   -> dead record
    not forced, read error   -> dead record
    forced / ABSENT / STALE  -> exporter -> write back -> new record

Example:
    >>> def fetch(ctx, previous):
    ...     return ctx.client.get_status()
    >>> cache = ProbeCache("/tmp/probecache", exporter=fetch, ttl=30)
    >>> record = cache.get("nginx-01", ctx)
    >>> if record.alive:
    ...     handle(record.payload)
"""

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from probecache.cache.freshness import Freshness, classify, resolve_ttl
from probecache.cache.paths import CACHE_FILE_NAME
from probecache.cache.record import CacheRecord
from probecache.cache.store import CacheStore
from probecache.exceptions import (
    CacheConfigurationError,
    CacheDecodeError,
    CacheReadError,
    CacheStatError,
    CacheWriteError,
    FetchError,
    ProbeCacheError,
)
from probecache.file_lock_manager import DEFAULT_LOCK_TIMEOUT, LockTimeoutError

if TYPE_CHECKING:
    from probecache.config_manager import CacheSettings

logger = logging.getLogger(__name__)

ContextT = TypeVar("ContextT")

# exporter(context, previous_record) -> payload bytes; raises on failure
Exporter = Callable[[ContextT, CacheRecord | None], bytes]


@dataclass(frozen=True)
class CacheStatus:
    """Diagnostic snapshot of one cache key.

    Attributes:
        key: Cache key
        path: Cache file path
        freshness: Freshness classification (None if the stat failed)
        ttl: Effective TTL in seconds
        mtime: Last-modified timestamp of the cache file
        age: Seconds since last modification
        record: Decoded record, if the file was readable
        error: Description of the failure that prevented a full snapshot
    """

    key: str
    path: Path
    freshness: Freshness | None
    ttl: float
    mtime: float | None = None
    age: float | None = None
    record: CacheRecord | None = None
    error: str | None = None


class ProbeCache(Generic[ContextT]):
    """Refill orchestrator in front of an instance probe.

    The exporter is called with the caller's context and the record currently
    on disk (or None), so an exporter can fall back to or diff against stale
    data. Whatever it raises is treated as a fetch failure.
    """

    def __init__(
        self,
        root: Path | str,
        exporter: Exporter[ContextT] | None = None,
        ttl: float = 0,
        debug: bool = False,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        store: CacheStore | None = None,
    ):
        """Initialize probe cache.

        Args:
            root: Cache root directory
            exporter: Fetch function (None disables the cache: every get is dead)
            ttl: Time-to-live in seconds (0 = 60s default, negative = always stale)
            debug: Log the refill trace at INFO instead of DEBUG
            lock_timeout: Seconds to wait for the per-key write lock
            store: Custom store (default: CacheStore(root, lock_timeout))
        """
        self.root = Path(root)
        self.exporter = exporter
        self.ttl = resolve_ttl(ttl)
        self.debug = debug
        self.store = store or CacheStore(self.root, lock_timeout=lock_timeout)

    @classmethod
    def from_settings(
        cls, settings: "CacheSettings", exporter: Exporter[ContextT] | None = None
    ) -> "ProbeCache[ContextT]":
        """Build a cache from loaded settings."""
        return cls(
            root=settings.cache_root,
            exporter=exporter,
            ttl=settings.cache_ttl,
            debug=settings.debug,
            lock_timeout=settings.lock_timeout,
        )

    def cache_file_path(self, key: str) -> Path:
        return self.store.file_path(key)

    def cache_dir_path(self, key: str) -> Path:
        return self.store.dir_path(key)

    def get(self, key: str, context: ContextT, force_update: bool = False) -> CacheRecord:
        """Return the cached record for ``key``, refilling it when needed.

        Args:
            key: Cache key
            context: Opaque value handed to the exporter
            force_update: Skip the freshness check and always call the exporter

        Returns:
            CacheRecord; ``alive=False`` on any failure
        """
        exporter = self.exporter
        if exporter is None:
            error = CacheConfigurationError(f"No exporter configured for cache '{key}'")
            self._trace(f"Cache processing error: {error}")
            return CacheRecord.dead()

        cache_file = self.cache_file_path(key)

        if not force_update:
            self._trace(f"Checking whether cache '{key}' is fresh")
            try:
                freshness = classify(cache_file, self.ttl)
            except CacheStatError as e:
                logger.warning(f"Cache '{key}' unavailable: {e}")
                return CacheRecord.dead()

            if freshness is Freshness.FRESH:
                self._trace(f"Cache '{key}' is fresh, reading {cache_file}")
                try:
                    record = self.store.read(cache_file)
                except (CacheReadError, CacheDecodeError) as e:
                    logger.warning(f"Cache '{key}' unreadable: {e}")
                    return CacheRecord.dead()

                self._trace(f"Data retrieved from cache '{key}' (alive={record.alive})")
                return record

            self._trace(f"Cache '{key}' is {freshness}")

        record = self._fetch(key, exporter, context, cache_file)

        self._trace(f"Writing retrieved data to cache '{key}'")
        try:
            self.store.write(key, record)
        except (LockTimeoutError, CacheWriteError) as e:
            logger.warning(f"Cache '{key}' not persisted, returning fetched data: {e}")

        self._trace(f"Return data for '{key}' (alive={record.alive})")
        return record

    def keys(self) -> list[str]:
        """Keys that currently have a cache file under the root."""
        if not self.root.is_dir():
            return []
        return sorted(
            path.parent.relative_to(self.root).as_posix()
            for path in self.root.rglob(CACHE_FILE_NAME)
            if path.is_file() and path.parent != self.root
        )

    def inspect(self, key: str) -> CacheStatus:
        """Describe the cache file of ``key`` without refilling it."""
        cache_file = self.cache_file_path(key)

        try:
            freshness = classify(cache_file, self.ttl)
        except CacheStatError as e:
            return CacheStatus(key=key, path=cache_file, freshness=None, ttl=self.ttl, error=str(e))

        if freshness is Freshness.ABSENT:
            return CacheStatus(key=key, path=cache_file, freshness=freshness, ttl=self.ttl)

        mtime: float | None = None
        age: float | None = None
        try:
            mtime = os.stat(cache_file).st_mtime
            age = time.time() - mtime
            record = self.store.read(cache_file)
        except (OSError, CacheReadError, CacheDecodeError) as e:
            return CacheStatus(
                key=key,
                path=cache_file,
                freshness=freshness,
                ttl=self.ttl,
                mtime=mtime,
                age=age,
                error=str(e),
            )

        return CacheStatus(
            key=key,
            path=cache_file,
            freshness=freshness,
            ttl=self.ttl,
            mtime=mtime,
            age=age,
            record=record,
        )

    def _fetch(
        self, key: str, exporter: Exporter[ContextT], context: ContextT, cache_file: Path
    ) -> CacheRecord:
        """Call the exporter and build the new record."""
        previous = self._read_previous(cache_file)

        self._trace(f"Calling exporter for '{key}'")
        try:
            payload = self._call_exporter(exporter, context, previous)
        except FetchError as e:
            logger.warning(f"Exporter failed for '{key}': {e}")
            return CacheRecord.dead()

        self._trace(f"Got {len(payload)} bytes from exporter for '{key}'")
        return CacheRecord(alive=True, payload=payload)

    def _call_exporter(
        self, exporter: Exporter[ContextT], context: ContextT, previous: CacheRecord | None
    ) -> bytes:
        """Run the exporter, normalizing every failure to FetchError.

        Raises:
            FetchError: If the exporter raises or returns something other than bytes
        """
        try:
            payload = exporter(context, previous)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(f"{type(e).__name__}: {e}") from e

        if isinstance(payload, (bytearray, memoryview)):
            return bytes(payload)
        if not isinstance(payload, bytes):
            raise FetchError(f"Exporter returned {type(payload).__name__}, expected bytes")
        return payload

    def _read_previous(self, cache_file: Path) -> CacheRecord | None:
        """Current on-disk record, or None if missing or unusable."""
        try:
            return self.store.read(cache_file)
        except ProbeCacheError as e:
            if not isinstance(e.__cause__, FileNotFoundError):
                logger.debug(f"Previous cache record unusable: {e}")
            return None

    def _trace(self, message: str) -> None:
        logger.log(logging.INFO if self.debug else logging.DEBUG, message)


__all__ = ["CacheStatus", "Exporter", "ProbeCache"]
