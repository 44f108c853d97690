"""Cache Module - freshness/refill engine for instance probes.

Philosophy:
- One file per key, freshness from file mtime
- Dumb storage, policy in the orchestrator
- Cross-process safe write-back (file lock + atomic rename)
- Never raises from ``ProbeCache.get``

Public API (the "studs"):
    From record:
        CacheRecord: Immutable cache record (alive flag + payload)
        dump_record / load_record: YAML document codec

    From paths:
        cache_file_path / cache_dir_path: Key to path mapping

    From freshness:
        Freshness: ABSENT / STALE / FRESH
        classify: Classify a cache file against a TTL
        resolve_ttl: Apply the 60s default

    From store:
        CacheStore: Read and locked write of cache files

    From probe_cache:
        ProbeCache: Refill orchestrator
        CacheStatus: Diagnostic snapshot of one key
"""

from probecache.cache.freshness import DEFAULT_TTL, Freshness, classify, resolve_ttl
from probecache.cache.paths import CACHE_FILE_NAME, cache_dir_path, cache_file_path
from probecache.cache.probe_cache import CacheStatus, Exporter, ProbeCache
from probecache.cache.record import CacheRecord, dump_record, load_record
from probecache.cache.store import CacheStore

__all__ = [
    "CACHE_FILE_NAME",
    "DEFAULT_TTL",
    "CacheRecord",
    "CacheStatus",
    "CacheStore",
    "Exporter",
    "Freshness",
    "ProbeCache",
    "cache_dir_path",
    "cache_file_path",
    "classify",
    "dump_record",
    "load_record",
    "resolve_ttl",
]
