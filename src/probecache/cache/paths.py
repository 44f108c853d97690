"""Cache key to filesystem path mapping.

Each key owns one directory under the cache root and one file inside it:

    <root>/<key>/cache
"""

from pathlib import Path

CACHE_FILE_NAME = "cache"


def cache_dir_path(root: Path | str, key: str) -> Path:
    """Directory holding the cache file for ``key``.

    Example:
        >>> cache_dir_path("/tmp/probecache", "svc")
        PosixPath('/tmp/probecache/svc')
    """
    return Path(root) / key


def cache_file_path(root: Path | str, key: str) -> Path:
    """Cache file for ``key``.

    Example:
        >>> cache_file_path("/tmp/probecache", "svc")
        PosixPath('/tmp/probecache/svc/cache')
    """
    return cache_dir_path(root, key) / CACHE_FILE_NAME


__all__ = ["CACHE_FILE_NAME", "cache_dir_path", "cache_file_path"]
