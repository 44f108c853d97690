"""Cache freshness classification.

A cache file is judged purely by its last-modified time:

- ABSENT: no file on disk
- STALE: ``now - mtime > ttl``
- FRESH: ``now - mtime <= ttl``

Any stat failure other than "file does not exist" is raised as
CacheStatError and is never reported as ABSENT.
"""

import os
import time
from enum import StrEnum
from pathlib import Path

from probecache.exceptions import CacheStatError

DEFAULT_TTL = 60.0


class Freshness(StrEnum):
    """Outcome of a freshness check."""

    ABSENT = "absent"
    STALE = "stale"
    FRESH = "fresh"


def resolve_ttl(ttl: float | None) -> float:
    """Return the effective TTL in seconds.

    Zero (or unset) means DEFAULT_TTL. Negative values are passed through
    unchanged and make every existing file STALE.
    """
    if not ttl:
        return DEFAULT_TTL
    return float(ttl)


def classify(path: Path, ttl: float | None, now: float | None = None) -> Freshness:
    """Classify the cache file at ``path``.

    Args:
        path: Cache file path
        ttl: Time-to-live in seconds (0/None -> DEFAULT_TTL)
        now: Current time as a UNIX timestamp (default: time.time())

    Returns:
        Freshness of the file

    Raises:
        CacheStatError: If the file cannot be stat'ed for a reason other than absence
    """
    effective_ttl = resolve_ttl(ttl)

    try:
        mtime = os.stat(path).st_mtime
    except FileNotFoundError:
        return Freshness.ABSENT
    except OSError as e:
        raise CacheStatError(f"Can't stat cache file {path}: {e}") from e

    if now is None:
        now = time.time()

    if now - mtime > effective_ttl:
        return Freshness.STALE
    return Freshness.FRESH


__all__ = ["DEFAULT_TTL", "Freshness", "classify", "resolve_ttl"]
