"""probecache - local data cache in front of slow instance probes

Philosophy:
- Ruthless simplicity
- Brick architecture (self-contained modules)
- Callers always get an answer: stale/unknown state, never a crash

probecache keeps the last known output of an expensive probe (a status
endpoint, a container runtime, a CLI) on disk, serves it while it is fresh,
and refills it through a caller-supplied exporter when it is not.
"""

from probecache.cache import CacheRecord, Freshness, ProbeCache
from probecache.exceptions import ProbeCacheError

__version__ = "0.1.0"
__all__ = ["CacheRecord", "Freshness", "ProbeCache", "ProbeCacheError", "__version__"]
