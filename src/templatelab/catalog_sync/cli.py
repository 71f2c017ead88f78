"""Typer CLI for the model catalog sync service."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..logging_utils import configure_logging
from .catalog import Catalog
from .config import SyncConfig
from .errors import StartupError
from .orchestrator import open_orchestrator
from .state import SyncStateStore

app = typer.Typer(
    name="templatelab-sync",
    help="Discover, validate and cache chat-template capable models",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger(__name__)


def _load_config(
    public_dir: Optional[Path] = None, state_dir: Optional[Path] = None
) -> SyncConfig:
    config = SyncConfig.load()
    if public_dir is not None:
        config = replace(config, public_dir=public_dir)
    if state_dir is not None:
        config = replace(config, state_dir=state_dir)
    return config


async def _run_once(config: SyncConfig, reset: bool, startup: bool) -> None:
    async with open_orchestrator(config) as orchestrator:
        await orchestrator.run_batch(reset=reset, startup=startup)


async def _run_loop(config: SyncConfig, interval_min: float, reset: bool) -> None:
    async with open_orchestrator(config) as orchestrator:
        await orchestrator.run_forever(interval_min, reset=reset)


@app.command("run")
def cmd_run(
    reset: bool = typer.Option(
        False, "--reset", help="Discard the saved cursor and run counter first"
    ),
    startup: bool = typer.Option(
        False, "--startup", help="Log a completion marker for startup hooks"
    ),
    public_dir: Optional[Path] = typer.Option(None, "--public-dir"),
    state_dir: Optional[Path] = typer.Option(None, "--state-dir"),
):
    """Run a single sync batch."""
    configure_logging("catalog_sync")
    config = _load_config(public_dir, state_dir)
    try:
        asyncio.run(_run_once(config, reset or config.reset_on_start, startup))
    except Exception as exc:  # noqa: BLE001
        logger.error("[catalog-sync] Failed: %s", exc)
        raise typer.Exit(1)


@app.command("loop")
def cmd_loop(
    interval_min: Optional[float] = typer.Option(
        None, "--interval-min", min=0.01, help="Minutes to sleep between batches"
    ),
    reset: bool = typer.Option(
        False, "--reset", help="Discard the saved cursor before the first batch"
    ),
    public_dir: Optional[Path] = typer.Option(None, "--public-dir"),
    state_dir: Optional[Path] = typer.Option(None, "--state-dir"),
):
    """Sync forever, one batch per interval."""
    configure_logging("catalog_sync")
    config = _load_config(public_dir, state_dir)
    interval = interval_min if interval_min is not None else config.interval_min
    try:
        asyncio.run(_run_loop(config, interval, reset or config.reset_on_start))
    except KeyboardInterrupt:
        logger.info("[catalog-sync] Interrupted; stopping")


@app.command("status")
def cmd_status(
    public_dir: Optional[Path] = typer.Option(None, "--public-dir"),
    state_dir: Optional[Path] = typer.Option(None, "--state-dir"),
):
    """Show the saved sync state and catalog size."""
    config = _load_config(public_dir, state_dir)

    async def _collect():
        return (
            await SyncStateStore(config.state_path).load(),
            await Catalog(config.catalog_path).load(),
        )

    state, models = asyncio.run(_collect())
    table = Table(title="Catalog sync status")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Run", str(state.run))
    table.add_row("Next cursor", state.next_cursor or "none (first page)")
    table.add_row("Last batch size", str(state.last_batch_size))
    table.add_row("Added valid models", str(state.added_valid_models))
    table.add_row("Updated at", state.updated_at or "never")
    table.add_row("Catalog size", str(len(models)))
    console.print(table)


@app.command("serve")
def cmd_serve(
    port: Optional[int] = typer.Option(None, "--port", help="Port for the HTTP facade"),
    interval_min: Optional[float] = typer.Option(None, "--interval-min", min=0.01),
    reset: bool = typer.Option(False, "--reset"),
    public_dir: Optional[Path] = typer.Option(None, "--public-dir"),
    state_dir: Optional[Path] = typer.Option(None, "--state-dir"),
):
    """Serve the catalog over HTTP with the sync loop as a supervised child."""
    from ..model_fetcher.server import serve

    configure_logging("model_fetcher")
    config = _load_config(public_dir, state_dir)
    if port is not None:
        config = replace(config, port=port)
    if interval_min is not None:
        config = replace(config, interval_min=interval_min)
    try:
        config.ensure_directories()
    except StartupError as exc:
        logger.error("[model-fetcher] Startup failed: %s", exc)
        raise typer.Exit(1)
    code = asyncio.run(serve(config, reset=reset or config.reset_on_start))
    raise typer.Exit(code)
