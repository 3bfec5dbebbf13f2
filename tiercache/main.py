"""Main entry point for the tiercache command-line tool.

Sets up the Typer CLI application, wires the cache tiers from configuration
(Composition Root) and exposes get/put/delete/clear/info commands over a
``TieredCache`` made of an in-memory tier and a disk tier.
"""

import logging
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

import typer

from tiercache.core.tiered_cache import MutationHandle, TieredCache
from tiercache.domain.models.common import MISSING
from tiercache.domain.models.errors import CacheError, PropagationError, RemoteStoreError
from tiercache.infrastructure.cache.bounded_cache import BoundedCache
from tiercache.infrastructure.cache.disk_store import DiskStore
from tiercache.infrastructure.cache.memory_store import InMemoryStore
from tiercache.infrastructure.cli.display import ConsoleDisplay
from tiercache.infrastructure.config.settings import (
    DEFAULT_CONFIG_FILE,
    get_config,
    load_cache_settings,
    load_configuration,
)
from tiercache.infrastructure.monitoring.logger_setup import resolve_log_level, setup_logging

logger = logging.getLogger(__name__)

EXIT_NOT_FOUND = 1
EXIT_CACHE_ERROR = 2


def create_dependencies(config_file: Path = DEFAULT_CONFIG_FILE, verbose: bool = False) -> Dict[str, Any]:
    """Creates and wires up the cache tiers and UI.

    This acts as the Composition Root.
    """
    load_configuration(config_file=config_file, reload=True)
    log_level = logging.DEBUG if verbose else resolve_log_level(get_config("logging.level"))
    setup_logging(
        log_level=log_level,
        log_file=get_config("logging.file"),
        log_format=get_config("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
    )

    settings = load_cache_settings()
    dependencies: Dict[str, Any] = {"settings": settings, "ui": ConsoleDisplay()}
    dependencies["local"] = InMemoryStore(
        BoundedCache(settings.local_max_entries),
        promote_on_read=settings.promote_on_read,
    )
    dependencies["remote"] = DiskStore(
        settings.disk_directory,
        timeout=settings.disk_timeout,
        ttl_seconds=settings.disk_ttl_seconds,
    )
    dependencies["cache"] = TieredCache(
        dependencies["local"],
        dependencies["remote"],
        max_workers=settings.max_workers,
        write_back=settings.write_back,
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


def close_dependencies(dependencies: Dict[str, Any]) -> None:
    dependencies["cache"].close(wait=True)
    dependencies["remote"].close()


# --- Typer App Definition ---
app = typer.Typer(
    name="tiercache",
    help="Inspect and modify a two-tier (memory + disk) cache.",
    add_completion=False,
)

TimeoutOption = Annotated[
    Optional[float],
    typer.Option("--timeout", "-t", help="Seconds to wait for both tiers to apply the change."),
]


def _dependencies(ctx: typer.Context) -> Dict[str, Any]:
    return ctx.obj


def _wait_for(ctx: typer.Context, handle: MutationHandle, timeout: Optional[float], done_message: str) -> None:
    ui: ConsoleDisplay = _dependencies(ctx)["ui"]
    try:
        handle.result(timeout=timeout)
    except PropagationError as e:
        ui.display_error(str(e))
        raise typer.Exit(code=EXIT_CACHE_ERROR)
    except TimeoutError as e:
        ui.display_error(str(e))
        raise typer.Exit(code=EXIT_CACHE_ERROR)
    ui.display_info(done_message)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Annotated[Path, typer.Option("--config", "-c", help="Path to a YAML configuration file.")] = DEFAULT_CONFIG_FILE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Wires the cache before any command runs."""
    try:
        dependencies = create_dependencies(config_file=config, verbose=verbose)
    except (CacheError, ValueError) as e:
        logger.error(f"Fatal Error during initialization: {e}", exc_info=True)
        ConsoleDisplay().display_error(f"Initialization failed: {e}")
        raise typer.Exit(code=EXIT_CACHE_ERROR)
    ctx.obj = dependencies
    ctx.call_on_close(lambda: close_dependencies(dependencies))


@app.command()
def get(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key to look up.")],
):
    """Print the value stored under KEY (memory tier first, then disk)."""
    deps = _dependencies(ctx)
    ui: ConsoleDisplay = deps["ui"]
    try:
        value = deps["cache"].read(key)
    except RemoteStoreError as e:
        ui.display_error(str(e))
        raise typer.Exit(code=EXIT_CACHE_ERROR)
    if value is MISSING:
        ui.display_error(f"Key not found: {key}")
        raise typer.Exit(code=EXIT_NOT_FOUND)
    ui.display_value(value)


@app.command()
def put(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key to store.")],
    value: Annotated[str, typer.Argument(help="Value to store.")],
    timeout: TimeoutOption = None,
):
    """Store VALUE under KEY in both tiers."""
    handle = _dependencies(ctx)["cache"].write(key, value)
    _wait_for(ctx, handle, timeout, f"Stored key: {key}")


@app.command()
def delete(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key to remove.")],
    timeout: TimeoutOption = None,
):
    """Remove KEY from both tiers."""
    handle = _dependencies(ctx)["cache"].delete(key)
    _wait_for(ctx, handle, timeout, f"Deleted key: {key}")


@app.command()
def clear(
    ctx: typer.Context,
    timeout: TimeoutOption = None,
):
    """Remove every entry from both tiers."""
    handle = _dependencies(ctx)["cache"].clear()
    _wait_for(ctx, handle, timeout, "Cleared both tiers.")


@app.command()
def info(ctx: typer.Context):
    """Show the effective settings and disk tier usage."""
    deps = _dependencies(ctx)
    settings = deps["settings"]
    remote: DiskStore = deps["remote"]
    rows = {
        "Local max entries": settings.local_max_entries,
        "Promote on read": settings.promote_on_read,
        "Write back": settings.write_back,
        "Executor workers": settings.max_workers,
        "Disk directory": remote.directory,
        "Disk timeout (s)": settings.disk_timeout,
        "Disk TTL (s)": settings.disk_ttl_seconds if settings.disk_ttl_seconds is not None else "none",
        "Disk entries": len(remote),
        "Disk volume (bytes)": remote.volume(),
    }
    deps["ui"].display_table("tiercache", rows)


def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
