"""Ready-made exporters.

An exporter is any callable ``(context, previous_record) -> bytes`` that
raises on failure. ``CommandExporter`` covers the common case of a probe
that is an external program printing its findings to stdout.
"""

import logging
import subprocess
from typing import Any

from probecache.cache.record import CacheRecord
from probecache.exceptions import FetchError

logger = logging.getLogger(__name__)


class CommandExporter:
    """Run a command and use its stdout as the cache payload.

    The context and the previous record are ignored. A non-zero exit status,
    a timeout or a missing executable is a fetch failure.

    Example:
        >>> exporter = CommandExporter(["curl", "-sf", "http://127.0.0.1:8080/status"])
        >>> cache = ProbeCache("/tmp/probecache", exporter=exporter)
    """

    def __init__(self, argv: list[str], timeout: float | None = None):
        """Initialize command exporter.

        Args:
            argv: Command and arguments
            timeout: Seconds before the command is killed (default: no limit)

        Raises:
            ValueError: If argv is empty
        """
        if not argv:
            raise ValueError("Exporter command must not be empty")
        self.argv = list(argv)
        self.timeout = timeout

    def __call__(self, context: Any, previous: CacheRecord | None) -> bytes:
        logger.debug(f"Running exporter command: {' '.join(self.argv)}")
        try:
            result = subprocess.run(  # noqa: S603 - argv comes from the operator
                self.argv,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise FetchError(f"Command not found: {self.argv[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise FetchError(f"Command timed out after {self.timeout}s: {self.argv[0]}") from e
        except OSError as e:
            raise FetchError(f"Error executing command: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise FetchError(f"Command exited with {result.returncode}: {stderr}")

        return result.stdout


__all__ = ["CommandExporter"]
