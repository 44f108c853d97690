"""Unit tests for cache freshness classification."""

import os
from unittest.mock import patch

import pytest

from probecache.cache.freshness import DEFAULT_TTL, Freshness, classify, resolve_ttl
from probecache.exceptions import CacheStatError

T0 = 1_700_000_000.0


@pytest.fixture
def cache_file(tmp_path):
    """Cache file last modified at T0."""
    path = tmp_path / "svc" / "cache"
    path.parent.mkdir()
    path.write_bytes(b"instance_alive: true\ndata: ''\n")
    os.utime(path, (T0, T0))
    return path


class TestResolveTtl:
    """Tests for the TTL default."""

    @pytest.mark.parametrize("ttl", [0, 0.0, None])
    def test_zero_or_unset_uses_default(self, ttl):
        assert resolve_ttl(ttl) == DEFAULT_TTL == 60.0

    def test_positive_ttl_kept(self):
        assert resolve_ttl(5) == 5.0

    def test_negative_ttl_not_validated(self):
        """Negative TTLs pass through unchanged."""
        assert resolve_ttl(-10) == -10.0


class TestClassify:
    """Tests for classify()."""

    def test_missing_file_is_absent(self, tmp_path):
        """A never-written key is ABSENT, never STALE."""
        assert classify(tmp_path / "nope" / "cache", 60) is Freshness.ABSENT

    def test_missing_file_is_absent_with_negative_ttl(self, tmp_path):
        assert classify(tmp_path / "nope" / "cache", -1) is Freshness.ABSENT

    @pytest.mark.parametrize("epsilon", [0.001, 0.5])
    def test_fresh_just_before_ttl(self, cache_file, epsilon):
        assert classify(cache_file, 10, now=T0 + 10 - epsilon) is Freshness.FRESH

    @pytest.mark.parametrize("epsilon", [0.001, 0.5])
    def test_stale_just_after_ttl(self, cache_file, epsilon):
        assert classify(cache_file, 10, now=T0 + 10 + epsilon) is Freshness.STALE

    def test_exact_ttl_boundary_is_fresh(self, cache_file):
        """Stale only once age strictly exceeds the TTL."""
        assert classify(cache_file, 10, now=T0 + 10) is Freshness.FRESH

    def test_zero_ttl_uses_default(self, cache_file):
        """TTL 0 means 60 seconds."""
        assert classify(cache_file, 0, now=T0 + 59) is Freshness.FRESH
        assert classify(cache_file, 0, now=T0 + 61) is Freshness.STALE

    def test_negative_ttl_always_stale(self, cache_file):
        """Even a file modified right now is stale with a negative TTL."""
        assert classify(cache_file, -1, now=T0) is Freshness.STALE

    def test_defaults_to_current_time(self, cache_file):
        """Without an explicit now, the wall clock is used (T0 is long past)."""
        assert classify(cache_file, 60) is Freshness.STALE

    def test_recently_written_file_is_fresh(self, tmp_path):
        path = tmp_path / "cache"
        path.write_bytes(b"x")
        assert classify(path, 60) is Freshness.FRESH

    def test_permission_error_is_not_absent(self, cache_file):
        """Stat failures other than absence are raised, not reported ABSENT."""
        with patch("probecache.cache.freshness.os.stat", side_effect=PermissionError("denied")):
            with pytest.raises(CacheStatError, match="denied"):
                classify(cache_file, 60)

    def test_parent_is_a_file_raises_stat_error(self, tmp_path):
        """A path component that is a regular file is an error, not a miss."""
        blocker = tmp_path / "svc"
        blocker.write_text("not a directory")
        with pytest.raises(CacheStatError):
            classify(blocker / "cache", 60)
