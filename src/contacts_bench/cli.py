"""CLI for contacts-bench — migrate contacts into the indexed store and time reads."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import click

from contacts_bench.config import BenchConfig, ConfigError, load_config
from contacts_bench.core.logging import configure_logging
from contacts_bench.core.telemetry import init_telemetry, shutdown_telemetry
from contacts_bench.errors import ContactsBenchError
from contacts_bench.runner import ContactsBench
from contacts_bench.sources import JsonFileContactSource
from contacts_bench.store import ContactStore, open_store

logger = logging.getLogger(__name__)

BenchAction = Callable[[ContactsBench], Awaitable[Any]]


def _build_bench(config: BenchConfig, source_path: Path | None) -> ContactsBench:
    source = JsonFileContactSource(source_path or Path(config.source.path))

    async def _open() -> ContactStore:
        return await open_store(config.database.build())

    return ContactsBench(
        source=source,
        store_factory=_open,
        sink=click.echo,
        sort_hint=config.source.sort_hint,
    )


async def _run(bench: ContactsBench, actions: list[BenchAction]) -> None:
    try:
        for action in actions:
            await action(bench)
    finally:
        await bench.close()


def _execute(ctx: click.Context, *actions: BenchAction) -> None:
    config: BenchConfig = ctx.obj["config"]
    bench = _build_bench(config, ctx.obj["source_path"])
    try:
        asyncio.run(_run(bench, list(actions)))
    except ContactsBenchError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        shutdown_telemetry()


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to contacts_bench.toml",
)
@click.option(
    "--source",
    "source_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON contacts file; overrides [source].path",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, source_path: Path | None) -> None:
    """contacts-bench — migrate native contacts into an indexed store and time reads."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    log_root = Path(config.logging.log_root) if config.logging.log_root else None
    configure_logging(level=config.logging.level, fmt=config.logging.format, log_root=log_root)
    init_telemetry()

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["source_path"] = source_path


@cli.command("check-source")
@click.pass_context
def check_source(ctx: click.Context) -> None:
    """Time a full walk of the native contact source."""
    _execute(ctx, ContactsBench.check_source)


@cli.command()
@click.pass_context
def fill(ctx: click.Context) -> None:
    """Migrate every source contact into the store."""
    _execute(ctx, ContactsBench.fill)


@cli.command()
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Remove every record from the store."""
    _execute(ctx, ContactsBench.clear)


@cli.command()
@click.pass_context
def scan(ctx: click.Context) -> None:
    """Time a full ordered traversal of the store."""
    _execute(ctx, ContactsBench.scan)


@cli.command("run-all")
@click.pass_context
def run_all(ctx: click.Context) -> None:
    """Clear the store, fill it from the source, then scan it."""
    _execute(ctx, ContactsBench.clear, ContactsBench.fill, ContactsBench.scan)


def main() -> None:
    cli()
