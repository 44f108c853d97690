"""Exception hierarchy for probecache.

Every failure the cache engine can hit has its own exception class so that
logs and diagnostics can tell them apart. Only ``ProbeCache.get`` converts
them into a degraded ``CacheRecord``; the store, the freshness oracle and the
lock manager raise.

Public API:
    ProbeCacheError: Base class
    CacheConfigurationError: No exporter configured
    CacheStatError: Cache file metadata check failed (not "missing")
    CacheReadError: Cache file could not be read
    CacheDecodeError: Cache file content is malformed
    FetchError: Exporter failed
    CacheWriteError: Persisting a record failed
    CacheDirectoryError: Cache directory could not be created
    CacheSerializeError: Record could not be serialized
    ConfigError: Settings could not be loaded or saved
    IdentityError: Process runs under an unexpected user or group
"""


class ProbeCacheError(Exception):
    """Base class for all probecache errors."""


class CacheConfigurationError(ProbeCacheError):
    """Raised when a cache is used without an exporter function."""


class CacheStatError(ProbeCacheError):
    """Raised when a cache file cannot be stat'ed for a reason other than absence."""


class CacheReadError(ProbeCacheError):
    """Raised when a cache file exists but cannot be read."""


class CacheDecodeError(ProbeCacheError):
    """Raised when cache file content cannot be parsed or decoded."""


class FetchError(ProbeCacheError):
    """Raised when the exporter fails to obtain data from the probe."""


class CacheWriteError(ProbeCacheError):
    """Raised when a cache record cannot be persisted."""


class CacheDirectoryError(CacheWriteError):
    """Raised when the per-key cache directory cannot be created."""


class CacheSerializeError(CacheWriteError):
    """Raised when a cache record cannot be serialized."""


class ConfigError(ProbeCacheError):
    """Raised when configuration operations fail."""


class IdentityError(ProbeCacheError):
    """Raised when the process user or group does not match the expected one."""


__all__ = [
    "CacheConfigurationError",
    "CacheDecodeError",
    "CacheDirectoryError",
    "CacheReadError",
    "CacheSerializeError",
    "CacheStatError",
    "CacheWriteError",
    "ConfigError",
    "FetchError",
    "IdentityError",
    "ProbeCacheError",
]
