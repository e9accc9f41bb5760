"""WatchVuln CLI Entry Point.

This module provides the command-line interface for running the watcher
daemon and inspecting its local state.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer

from watchvuln import __version__
from watchvuln.app import SOURCE_REGISTRY, build_app
from watchvuln.core.config import Settings, create_settings
from watchvuln.core.exceptions import ConfigurationError, StoreError
from watchvuln.daemon.scheduler import PassScheduler
from watchvuln.daemon.server import run_daemon

log = structlog.get_logger()

app = typer.Typer(
    name="watchvuln",
    help="WatchVuln - vulnerability advisory watcher",
    no_args_is_help=True,
)


def configure_logging(settings: Settings) -> None:
    """Configure structlog rendering and level from settings."""
    cfg = settings.logging
    renderer = (
        structlog.processors.JSONRenderer()
        if cfg.format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(cfg.level)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Path to system configuration file",
    ),
    env: Optional[str] = typer.Option(
        None, "--env", "-e",
        help="Environment name (selects <env>.yaml next to the config file)",
    ),
) -> None:
    """WatchVuln CLI."""
    if config is not None and not config.exists():
        typer.echo(f"Error: Config file '{config}' not found", err=True)
        raise typer.Exit(code=1)

    try:
        settings = create_settings(system_config_path=config, environment=env)
    except ConfigurationError as e:
        typer.echo(f"Error loading config: {e}", err=True)
        raise typer.Exit(code=1)

    configure_logging(settings)
    if config is not None:
        log.info("config_loaded", path=str(config), environment=settings.environment)
    ctx.obj = settings


@app.command()
def run(ctx: typer.Context) -> None:
    """Run the watcher until interrupted."""
    settings = _settings(ctx)
    try:
        context = build_app(settings)
    except (ConfigurationError, StoreError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    asyncio.run(run_daemon(context))


@app.command()
def once(
    ctx: typer.Context,
    volume: Optional[int] = typer.Option(
        None, "--volume", "-v", min=1,
        help="Volume hint for sources (defaults to the bootstrap volume)",
    ),
) -> None:
    """Run a single pass and exit."""
    settings = _settings(ctx)
    try:
        context = build_app(settings)
    except (ConfigurationError, StoreError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    volume_hint = volume or settings.task.bootstrap_volume
    try:
        report = asyncio.run(PassScheduler(context).run_pass(volume_hint))
    finally:
        context.close()

    reconcile = report.reconcile
    delivery = report.delivery
    typer.echo(
        f"collected={report.collected} "
        f"new={len(reconcile.new) if reconcile else 0} "
        f"changed={len(reconcile.changed) if reconcile else 0} "
        f"delivered={len(delivery.delivered) if delivery else 0} "
        f"undelivered={len(delivery.failed) if delivery else 0}"
    )
    if not report.ok:
        typer.echo(f"Error: {report.error}", err=True)
        raise typer.Exit(code=1)


@app.command()
def count(ctx: typer.Context) -> None:
    """Print the number of records in the local store."""
    settings = _settings(ctx)
    try:
        context = build_app(settings, sources=[], channels=[])
        try:
            total = context.store.count()
        finally:
            context.close()
    except StoreError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(str(total))


@app.command()
def sources(ctx: typer.Context) -> None:
    """List registered sources and whether they are enabled."""
    enabled = set(_settings(ctx).sources.enabled)
    for name in sorted(SOURCE_REGISTRY):
        marker = "*" if name in enabled else " "
        typer.echo(f"{marker} {name}")


@app.command()
def version() -> None:
    """Print the version."""
    typer.echo(__version__)


if __name__ == "__main__":
    app()
