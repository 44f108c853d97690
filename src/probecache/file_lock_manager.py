"""Cross-process file locking for cache write-back.

Cache writers for the same key may run in different processes (several
monitoring agent workers polling the same instance). This module serializes
them with an exclusive lock on a sidecar lock file next to the cache file.
Readers never take the lock.

Philosophy:
- Standard library only (fcntl/msvcrt are standard library)
- Cross-platform support (Unix/Windows)
- Exponential backoff for contention handling
- Context manager for automatic cleanup

Public API:
    acquire_file_lock: Context manager for acquiring an exclusive file lock
    lock_path_for: Sidecar lock file path for a target file
    LockTimeoutError: Exception raised when lock cannot be acquired within timeout
    DEFAULT_LOCK_TIMEOUT: Default bound on lock acquisition (30 seconds)

Example:
    >>> from pathlib import Path
    >>> from probecache.file_lock_manager import acquire_file_lock, lock_path_for
    >>>
    >>> target = Path("/tmp/probecache/svc/cache")
    >>> with acquire_file_lock(lock_path_for(target), operation="cache write"):
    ...     target.write_bytes(b"...")
    ...     # Lock automatically released on exit

Concurrency:
- Each process waits its turn (no interleaved documents)
- Exponential backoff: 0.1s -> 0.2s -> 0.4s -> 0.8s -> 1.6s -> 2.0s ...
"""

import logging
import os
import platform
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from probecache.exceptions import ProbeCacheError

# Platform-specific imports
_system = platform.system()
if TYPE_CHECKING or _system == "Windows":
    import msvcrt  # type: ignore[import-not-found]
if TYPE_CHECKING or _system != "Windows":
    import fcntl  # type: ignore[import-not-found]

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_LOCK_TIMEOUT", "LockTimeoutError", "acquire_file_lock", "lock_path_for"]

DEFAULT_LOCK_TIMEOUT = 30.0
LOCK_SUFFIX = ".lock"
LOCK_FILE_MODE = 0o640

_INITIAL_DELAY = 0.1
_MAX_DELAY = 2.0


class LockTimeoutError(ProbeCacheError):
    """Raised when file lock cannot be acquired within timeout period."""


def lock_path_for(target: Path) -> Path:
    """Return the sidecar lock file guarding ``target``.

    The target itself is replaced by atomic rename on every write, so the
    lock has to live on a file whose inode stays put.

    Example:
        >>> lock_path_for(Path("/tmp/probecache/svc/cache"))
        PosixPath('/tmp/probecache/svc/cache.lock')
    """
    return target.with_name(target.name + LOCK_SUFFIX)


@contextmanager
def acquire_file_lock(
    lock_path: Path,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    operation: str = "cache write",
) -> Generator[None, None, None]:
    """Acquire exclusive file lock with exponential backoff.

    The lock file is created (mode 0640) if it does not exist yet; its parent
    directory must already exist. Uses platform-appropriate locking:
    - Unix/macOS/Linux: fcntl.flock() (advisory whole-file lock)
    - Windows: msvcrt.locking() (mandatory byte-range lock)

    Args:
        lock_path: Path of the lock file
        timeout: Maximum seconds to wait for lock acquisition (default: 30.0)
        operation: Description of operation (used in error messages)

    Yields:
        None (lock is held within context)

    Raises:
        FileNotFoundError: If the lock file's directory does not exist
        PermissionError: If lacking permissions to open or lock the file
        LockTimeoutError: If lock cannot be acquired within timeout
    """
    fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, LOCK_FILE_MODE)
    with os.fdopen(fd, "r+b") as file_handle:
        _acquire_lock_with_backoff(file_handle, lock_path, timeout, operation)
        try:
            yield
        finally:
            # Always release lock
            _release_lock(file_handle)


def _acquire_lock_with_backoff(
    file_handle: BinaryIO,
    lock_path: Path,
    timeout: float,
    operation: str,
) -> None:
    """Try the lock until it is ours or ``timeout`` seconds have passed.

    Raises:
        LockTimeoutError: If lock cannot be acquired within timeout
        PermissionError: If lacking permissions to lock file
    """
    start_time = time.monotonic()
    delay = _INITIAL_DELAY
    attempt = 0

    while True:
        try:
            if _system == "Windows":
                _acquire_lock_windows(file_handle)
            else:
                _acquire_lock_unix(file_handle)
            if attempt:
                logger.debug(f"Acquired lock {lock_path} after {attempt} retries")
            return

        except (BlockingIOError, PermissionError) as e:
            # Windows reports contention as PermissionError; on Unix it is genuine
            if isinstance(e, PermissionError) and _system != "Windows":
                raise

        elapsed = time.monotonic() - start_time
        remaining = timeout - elapsed
        if remaining <= 0:
            raise LockTimeoutError(
                f"Failed to acquire file lock for {operation} after {timeout} seconds. "
                f"File: {lock_path}. Another process may be holding the lock."
            )

        time.sleep(min(delay, remaining))
        delay = min(delay * 2, _MAX_DELAY)
        attempt += 1


def _acquire_lock_unix(file_handle: BinaryIO) -> None:
    """Acquire file lock on Unix systems using fcntl.

    Raises:
        BlockingIOError: If lock is held by another process
    """
    fcntl.flock(file_handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _acquire_lock_windows(file_handle: BinaryIO) -> None:
    """Acquire file lock on Windows using msvcrt.

    Raises:
        PermissionError: If lock is held by another process
    """
    # Lock first byte of file (mandatory lock)
    msvcrt.locking(file_handle.fileno(), msvcrt.LK_NBLCK, 1)  # type: ignore[attr-defined]


def _release_lock(file_handle: BinaryIO) -> None:
    """Release file lock (platform-specific)."""
    try:
        if _system == "Windows":
            msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
        else:
            fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)
    except OSError as e:
        # Closing the handle drops the lock anyway
        logger.debug(f"Error during lock cleanup: {e}")
