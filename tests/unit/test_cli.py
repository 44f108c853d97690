"""Unit tests for the probecache CLI."""

import json
import sys

import pytest
from click.testing import CliRunner

from probecache.actions import MSG_NOT_SUPPORTED
from probecache.cache.record import CacheRecord
from probecache.cache.store import CacheStore
from probecache.cli import main


def _python(code):
    return [sys.executable, "-c", code]


PRINT_HELLO = _python("import sys; sys.stdout.write('hello')")
PRINT_JSON = _python("print('{\"conn\": {\"active\": 3}, \"name\": \"web\"}')")
FAIL = _python("import sys; sys.exit(1)")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, cache_root):
    """Invoke the CLI against the temporary cache root."""

    def _invoke(*args):
        return runner.invoke(main, ["--cache-root", str(cache_root), *args])

    return _invoke


class TestGet:
    """Tests for 'probecache get'."""

    def test_prints_payload(self, invoke, cache_root):
        result = invoke("get", "svc", "--", *PRINT_HELLO)

        assert result.exit_code == 0
        assert result.output == "hello"
        assert (cache_root / "svc" / "cache").is_file()

    def test_fresh_cache_served_when_probe_fails(self, invoke):
        invoke("get", "svc", "--", *PRINT_HELLO)

        result = invoke("get", "svc", "--", *FAIL)

        assert result.exit_code == 0
        assert result.output == "hello"

    def test_force_refetches(self, invoke):
        invoke("get", "svc", "--", *PRINT_HELLO)

        result = invoke("get", "svc", "--force", "--", *FAIL)

        assert result.exit_code == 1
        assert MSG_NOT_SUPPORTED in result.output

    def test_failing_probe(self, invoke):
        result = invoke("get", "svc", "--", *FAIL)

        assert result.exit_code == 1
        assert MSG_NOT_SUPPORTED in result.output

    def test_command_required(self, invoke):
        result = invoke("get", "svc")
        assert result.exit_code == 2
        assert "Usage" in result.output


class TestMetric:
    """Tests for 'probecache metric'."""

    def test_prints_value(self, invoke):
        result = invoke("metric", "svc", "conn.active", "--", *PRINT_JSON)

        assert result.exit_code == 0
        assert result.output.strip() == "3"

    def test_missing_metric(self, invoke):
        result = invoke("metric", "svc", "conn.idle", "--", *PRINT_JSON)

        assert result.exit_code == 1
        assert MSG_NOT_SUPPORTED in result.output


class TestAction:
    """Tests for 'probecache action'."""

    def test_discovery_lists_cached_keys(self, invoke):
        invoke("get", "web", "--", *PRINT_HELLO)
        invoke("get", "db", "--", *PRINT_HELLO)

        result = invoke("action", "discovery")

        assert result.exit_code == 0
        assert json.loads(result.output) == {"data": [{"{#NAME}": "db"}, {"{#NAME}": "web"}]}

    def test_check_conf(self, invoke):
        result = invoke("action", "check_conf")
        assert result.output.strip() == "1"

    def test_check_alive(self, invoke):
        result = invoke("action", "check_alive", "--key", "svc", "--", *PRINT_HELLO)
        assert result.output.strip() == "1"

    def test_check_alive_dead_probe(self, invoke):
        result = invoke("action", "check_alive", "--key", "svc", "--", *FAIL)
        assert result.output.strip() == "0"

    def test_check_alive_without_probe(self, invoke):
        result = invoke("action", "check_alive", "--key", "svc")
        assert result.output.strip() == "0"

    def test_metric(self, invoke):
        result = invoke(
            "action", "metric", "--key", "svc", "--metric", "name", "--", *PRINT_JSON
        )
        assert result.output.strip() == "web"

    def test_unknown_action(self, invoke):
        result = invoke("action", "reboot")
        assert result.output.strip() == MSG_NOT_SUPPORTED


class TestStatusAndList:
    """Tests for 'probecache status' and 'probecache list'."""

    def test_status_absent(self, invoke):
        result = invoke("status", "svc")
        assert result.exit_code == 0
        assert "absent" in result.output

    def test_status_fresh(self, invoke):
        invoke("get", "svc", "--", *PRINT_HELLO)

        result = invoke("status", "svc")

        assert result.exit_code == 0
        assert "fresh" in result.output
        assert "5 bytes" in result.output

    def test_status_corrupt(self, invoke, cache_root):
        path = cache_root / "svc" / "cache"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"nonsense")

        result = invoke("status", "svc")

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_list_empty(self, invoke):
        result = invoke("list")
        assert "No cached keys" in result.output

    def test_list(self, invoke, cache_root):
        CacheStore(cache_root).write("web", CacheRecord(alive=True, payload=b"x"))
        CacheStore(cache_root).write("db", CacheRecord(alive=False))

        result = invoke("list")

        assert result.exit_code == 0
        assert "web" in result.output
        assert "db" in result.output


class TestConfigCommands:
    """Tests for 'probecache config'."""

    def test_show_defaults_with_overrides(self, runner):
        result = runner.invoke(main, ["--ttl", "15", "config", "show"])

        assert result.exit_code == 0
        assert "cache_ttl = 15.0" in result.output
        assert "lock_timeout = 30.0" in result.output

    def test_set_persists(self, runner, isolated_config):
        result = runner.invoke(main, ["config", "set", "cache_ttl", "25"])

        assert result.exit_code == 0
        assert isolated_config.exists()
        shown = runner.invoke(main, ["config", "show"])
        assert "cache_ttl = 25.0" in shown.output

    def test_set_unknown_key(self, runner):
        result = runner.invoke(main, ["config", "set", "colour", "blue"])

        assert result.exit_code == 1
        assert "Unknown config key" in result.output

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(main, ["--config", str(tmp_path / "nope.toml"), "list"])

        assert result.exit_code == 1
        assert "Config file not found" in result.output
