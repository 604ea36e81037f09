"""utility functions for commands"""

import asyncio
from contextlib import contextmanager
from typing import Awaitable, Iterator, Optional, TypeVar

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from ratify.config import RatifyConfig, get_config
from ratify.services.catalog_service import CatalogService
from ratify.services.exceptions import RatifyError
from ratify.sync.reconcile import ProgressCallback

# Exit codes: verification findings are not crashes
EXIT_VERIFICATION_FAILED = 1
EXIT_ERROR = 2

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

T = TypeVar("T")


def load_config(**overrides) -> RatifyConfig:
    try:
        return get_config(**overrides)
    except ValidationError as e:
        err_console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_ERROR)


def get_catalog_service(**overrides) -> CatalogService:
    return CatalogService(load_config(**overrides))


def run_operation(operation: Awaitable[T], action: str) -> T:
    """
    Run an async service call. Anything that stopped the run exits with 2.
    """
    try:
        return asyncio.run(operation)
    except RatifyError as e:
        logger.debug(f"{action} failed: {e!r}")
        err_console.print(f"[red]Error during {action}:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_ERROR)
    except OSError as e:
        logger.exception(f"{action} failed")
        err_console.print(f"[red]Error during {action}:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_ERROR)
    except KeyboardInterrupt:
        err_console.print("[red]Interrupted, catalog left unchanged[/red]")
        raise typer.Exit(EXIT_ERROR)


@contextmanager
def hashing_progress(description: str) -> Iterator[Optional[ProgressCallback]]:
    """Show a progress display on stderr while files are hashed.

    Yields a callback for the reconciliation engine, or None when stderr is
    not a terminal.
    """
    if not err_console.is_terminal:
        yield None
        return

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed} files"),
        TextColumn("{task.fields[size]}"),
        TimeElapsedColumn(),
        console=err_console,
        transient=True,
    )
    task = progress.add_task(description, total=None, size="")
    hashed_bytes = 0

    def on_progress(size: int) -> None:
        nonlocal hashed_bytes
        hashed_bytes += size
        progress.update(task, advance=1, size=f"{hashed_bytes / 1_000_000:.1f} MB")

    with progress:
        yield on_progress
