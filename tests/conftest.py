"""
Shared test fixtures and configuration for probecache tests.

This module provides common fixtures used across all test types:
- Temporary cache roots
- Isolated configuration files (never ~/.probecache)
- Recording exporters
"""

import os

import pytest

from probecache.config_manager import ConfigManager

# ============================================================================
# DIRECTORY FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the default config file into the test's temporary directory.

    Also clears the environment overrides so a developer's shell settings
    never leak into tests.
    """
    config_dir = tmp_path / ".probecache"
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_DIR", config_dir)
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_FILE", config_dir / "config.toml")
    monkeypatch.delenv("PROBECACHE_CACHE_ROOT", raising=False)
    monkeypatch.delenv("PROBECACHE_CACHE_TTL", raising=False)
    return config_dir / "config.toml"


@pytest.fixture
def cache_root(tmp_path):
    """Cache root directory that does not exist yet."""
    return tmp_path / "cache-root"


@pytest.fixture
def default_umask():
    """Run the test under umask 022 so created modes are predictable."""
    previous = os.umask(0o022)
    yield
    os.umask(previous)


# ============================================================================
# EXPORTER FIXTURES
# ============================================================================


class RecordingExporter:
    """Exporter returning queued results and recording every call.

    Queue items are bytes (returned) or exceptions (raised). The last item
    is repeated once the queue is exhausted.
    """

    def __init__(self, *results):
        self.results = list(results) or [b"payload"]
        self.calls = []

    def __call__(self, context, previous):
        self.calls.append((context, previous))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result

    @property
    def call_count(self):
        return len(self.calls)


@pytest.fixture
def recording_exporter():
    """Factory for RecordingExporter instances."""
    return RecordingExporter
