"""probecache command line interface.

Commands:
    get          Print the cached payload of a key, refilling it from a command
    metric       Print one value from a key's JSON payload
    action       Answer a monitoring agent action (discovery/check_conf/check_alive/metric)
    status       Show freshness and content of one key
    list         Show every key under the cache root
    config       Show or change persistent settings

The probe command follows ``--`` and is run only when the cache is absent,
stale or ``--force`` is given.
"""

import logging
import sys
from datetime import datetime
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from probecache import __version__
from probecache.actions import MSG_NOT_SUPPORTED, ActionDispatcher, lookup_metric
from probecache.cache import ProbeCache
from probecache.click_group import ProbeCacheGroup
from probecache.config_manager import CacheSettings, ConfigManager
from probecache.exceptions import ConfigError
from probecache.exporters import CommandExporter

logger = logging.getLogger(__name__)


def _settings(ctx: click.Context) -> CacheSettings:
    return ctx.obj["settings"]


def _build_cache(
    ctx: click.Context, command: tuple[str, ...], timeout: float | None = None
) -> ProbeCache[None]:
    exporter = CommandExporter(list(command), timeout=timeout) if command else None
    return ProbeCache.from_settings(_settings(ctx), exporter)


def _fail(ctx: click.Context) -> NoReturn:
    click.echo(MSG_NOT_SUPPORTED)
    ctx.exit(1)


@click.group(cls=ProbeCacheGroup)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file path")
@click.option("--cache-root", type=click.Path(file_okay=False), help="Cache root directory")
@click.option("--ttl", type=float, help="Cache TTL in seconds (0 = 60s default)")
@click.option("--debug", is_flag=True, help="Show the cache refill trace")
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: str | None,
    cache_root: str | None,
    ttl: float | None,
    debug: bool,
) -> None:
    """Local cache in front of slow or unreliable instance probes.

    \b
    Examples:
        # Cached output of a status endpoint (refilled every 60s)
        probecache get nginx-01 -- curl -sf http://127.0.0.1/status

        # One value of a JSON payload
        probecache --ttl 30 metric redis-01 clients.connected -- redis-json-probe

        # Inspect cached keys
        probecache list
    """
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format="%(message)s")

    try:
        settings = ConfigManager.load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    if cache_root:
        settings.cache_root = cache_root
    if ttl is not None:
        settings.cache_ttl = ttl
    if debug:
        settings.debug = True

    ctx.obj = {"settings": settings, "config_path": config_path}


@main.command()
@click.argument("key")
@click.argument("command", nargs=-1, required=True)
@click.option("--force", is_flag=True, help="Refill even if the cache is fresh")
@click.option("--timeout", type=float, help="Kill the probe command after this many seconds")
@click.pass_context
def get(
    ctx: click.Context, key: str, command: tuple[str, ...], force: bool, timeout: float | None
) -> None:
    """Print the payload cached under KEY, running COMMAND to refill it."""
    record = _build_cache(ctx, command, timeout).get(key, None, force_update=force)
    if not record.alive:
        _fail(ctx)
    click.echo(record.payload, nl=False)


@main.command()
@click.argument("key")
@click.argument("path")
@click.argument("command", nargs=-1, required=True)
@click.option("--timeout", type=float, help="Kill the probe command after this many seconds")
@click.pass_context
def metric(
    ctx: click.Context, key: str, path: str, command: tuple[str, ...], timeout: float | None
) -> None:
    """Print the value at dotted PATH of KEY's JSON payload."""
    record = _build_cache(ctx, command, timeout).get(key, None)
    if not record.alive:
        _fail(ctx)

    try:
        click.echo(lookup_metric(record.payload, path))
    except (KeyError, ValueError) as e:
        logger.warning(str(e))
        _fail(ctx)


@main.command()
@click.argument("action_name", metavar="ACTION")
@click.argument("command", nargs=-1)
@click.option("--key", help="Cache key of the instance")
@click.option("--metric", "metric_path", help="Dotted path of the metric (metric action)")
@click.option("--timeout", type=float, help="Kill the probe command after this many seconds")
@click.pass_context
def action(
    ctx: click.Context,
    action_name: str,
    command: tuple[str, ...],
    key: str | None,
    metric_path: str | None,
    timeout: float | None,
) -> None:
    """Answer a monitoring agent ACTION for the instance cached under --key."""
    settings = _settings(ctx)
    cache = _build_cache(ctx, command, timeout)

    def require_key() -> str:
        if not key:
            raise ValueError("--key is required for this action")
        return key

    def check_conf(_: None) -> None:
        settings.validate()

    def check_alive(_: None) -> bool:
        return cache.get(require_key(), None).alive

    def read_metric(_: None) -> str:
        if not metric_path:
            raise ValueError("--metric is required for the metric action")
        record = cache.get(require_key(), None)
        if not record.alive:
            raise ValueError("InstanceAlive: fail")
        return lookup_metric(record.payload, metric_path)

    dispatcher: ActionDispatcher[None] = ActionDispatcher(
        discovery=lambda _: [{"{#NAME}": name} for name in cache.keys()],
        check_conf=check_conf,
        check_alive=check_alive,
        metric=read_metric,
        check_identity=settings.check_identity,
        user=settings.user,
        group=settings.group,
    )
    click.echo(dispatcher.dispatch(action_name, None))


@main.command()
@click.argument("key")
@click.pass_context
def status(ctx: click.Context, key: str) -> None:
    """Show freshness and content of the cache under KEY."""
    state = ProbeCache.from_settings(_settings(ctx)).inspect(key)

    table = Table(title=f"Cache '{key}'", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Path", str(state.path))
    table.add_row("Freshness", str(state.freshness) if state.freshness else "unknown")
    table.add_row("TTL", f"{state.ttl:g}s")
    if state.mtime is not None:
        table.add_row("Modified", datetime.fromtimestamp(state.mtime).isoformat(sep=" "))
    if state.age is not None:
        table.add_row("Age", f"{state.age:.1f}s")
    if state.record is not None:
        table.add_row("Alive", "yes" if state.record.alive else "no")
        table.add_row("Payload", f"{len(state.record.payload)} bytes")
    if state.error:
        table.add_row("Error", Text(state.error, style="red"))

    Console().print(table)
    if state.error:
        ctx.exit(1)


@main.command(name="list")
@click.pass_context
def list_keys(ctx: click.Context) -> None:
    """Show every key under the cache root."""
    cache = ProbeCache.from_settings(_settings(ctx))
    keys = cache.keys()
    if not keys:
        click.echo(f"No cached keys under {cache.root}")
        return

    table = Table(title=f"Cache root {cache.root}")
    table.add_column("Key", style="cyan")
    table.add_column("Freshness")
    table.add_column("Age", justify="right")
    table.add_column("Alive")
    for key in keys:
        state = cache.inspect(key)
        table.add_row(
            key,
            str(state.freshness) if state.freshness else "unknown",
            f"{state.age:.1f}s" if state.age is not None else "-",
            ("yes" if state.record.alive else "no") if state.record else "-",
        )
    Console().print(table)


@main.group(cls=ProbeCacheGroup)
def config() -> None:
    """Show or change persistent settings."""


@config.command(name="show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print effective settings."""
    for name, value in _settings(ctx).to_dict().items():
        click.echo(f"{name} = {value}")


@config.command(name="set")
@click.argument("name")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, name: str, value: str) -> None:
    """Persist setting NAME as VALUE."""
    updates: dict[str, Any] = {name: value}
    try:
        ConfigManager.update_config(ctx.obj["config_path"], **updates)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"{name} = {value}")


if __name__ == "__main__":
    sys.exit(main())
