"""On-disk storage for cache records.

The store is plain I/O: it does not decide whether a record is fresh (see
``probecache.cache.freshness``) and it never turns errors into degraded
records (see ``probecache.cache.probe_cache``).

Write protocol for key ``k`` under root ``r``:
1. Serialize the record
2. Create ``r/k/`` (mode 0750, parents included)
3. Take the exclusive lock on ``r/k/cache.lock`` (bounded wait)
4. Write a temporary file in ``r/k/``, chmod 0640, fsync, rename onto ``r/k/cache``

Readers take no lock. Thanks to the atomic rename they see either the
previous document or the new one, never a partial write.
"""

import logging
import os
import tempfile
from pathlib import Path

from probecache.cache.paths import cache_dir_path, cache_file_path
from probecache.cache.record import CacheRecord, dump_record, load_record
from probecache.exceptions import CacheDirectoryError, CacheReadError, CacheWriteError
from probecache.file_lock_manager import DEFAULT_LOCK_TIMEOUT, acquire_file_lock, lock_path_for

logger = logging.getLogger(__name__)

DIR_MODE = 0o750
FILE_MODE = 0o640


class CacheStore:
    """Reads and writes one cache file per key under a root directory.

    Example:
        >>> store = CacheStore(Path("/tmp/probecache"))
        >>> store.write("svc", CacheRecord(alive=True, payload=b"hello"))
        PosixPath('/tmp/probecache/svc/cache')
        >>> store.read(store.file_path("svc"))
        CacheRecord(alive=True, payload=b'hello')
    """

    def __init__(self, root: Path | str, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        """Initialize cache store.

        Args:
            root: Cache root directory (created on first write)
            lock_timeout: Seconds to wait for the per-key write lock (default: 30)
        """
        self.root = Path(root)
        self.lock_timeout = lock_timeout

    def file_path(self, key: str) -> Path:
        """Cache file path for ``key``."""
        return cache_file_path(self.root, key)

    def dir_path(self, key: str) -> Path:
        """Cache directory path for ``key``."""
        return cache_dir_path(self.root, key)

    def read(self, path: Path) -> CacheRecord:
        """Load a record from ``path``.

        Raises:
            CacheReadError: If the file cannot be read
            CacheDecodeError: If the content is malformed
        """
        try:
            raw = Path(path).read_bytes()
        except OSError as e:
            raise CacheReadError(f"Can't read cache {path}: {e}") from e

        record = load_record(raw)
        logger.debug(f"Read cache {path} (alive={record.alive}, {len(record.payload)} bytes)")
        return record

    def write(self, key: str, record: CacheRecord) -> Path:
        """Persist ``record`` as the cache file of ``key``.

        Returns:
            Path of the written cache file

        Raises:
            CacheSerializeError: If the record cannot be serialized
            CacheDirectoryError: If the cache directory cannot be created
            LockTimeoutError: If the write lock is not obtained within lock_timeout
            CacheWriteError: If writing or renaming the file fails
        """
        document = dump_record(record)

        directory = self.dir_path(key)
        self._ensure_dir(directory)

        target = self.file_path(key)
        lock_path = lock_path_for(target)
        try:
            with acquire_file_lock(
                lock_path, timeout=self.lock_timeout, operation=f"cache write '{key}'"
            ):
                self._write_atomic(target, document)
        except OSError as e:
            # _write_atomic wraps its own errors; what is left comes from the lock file
            raise CacheWriteError(f"Can't lock cache file {lock_path}: {e}") from e

        logger.debug(f"Wrote cache {target} (alive={record.alive}, {len(record.payload)} bytes)")
        return target

    def _ensure_dir(self, directory: Path) -> None:
        """Create ``directory`` and missing parents with mode 0750.

        Raises:
            CacheDirectoryError: If directory creation fails
        """
        try:
            directory.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        except OSError as e:
            raise CacheDirectoryError(f"Can't create cache dir {directory}: {e}") from e

    def _write_atomic(self, target: Path, document: bytes) -> None:
        """Write ``document`` to a temp file and rename it onto ``target``.

        Raises:
            CacheWriteError: If any step fails (the temp file is removed)
        """
        temp_path: Path | None = None
        try:
            fd, temp_name = tempfile.mkstemp(
                dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
            )
            temp_path = Path(temp_name)
            with os.fdopen(fd, "wb") as f:
                f.write(document)
                f.flush()
                os.fsync(f.fileno())

            os.chmod(temp_path, FILE_MODE)

            # Atomic rename
            temp_path.replace(target)

        except OSError as e:
            # Cleanup temp file on error
            if temp_path and temp_path.exists():
                temp_path.unlink()
            raise CacheWriteError(f"Can't write cache {target}: {e}") from e


__all__ = ["DIR_MODE", "FILE_MODE", "CacheStore"]
