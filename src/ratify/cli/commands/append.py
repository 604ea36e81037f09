"""Append command: add unknown files to an existing catalog."""

from pathlib import Path
from typing import Optional

import typer

from ratify.algorithms import DigestAlgorithm
from ratify.cli.app import app
from ratify.cli.commands.command_utils import (
    console,
    get_catalog_service,
    hashing_progress,
    run_operation,
)
from ratify.services.catalog_service import CatalogService


async def run_append(
    service: CatalogService,
    path: Path,
    algo: Optional[DigestAlgorithm],
    catalog_file: Optional[Path],
):
    with hashing_progress("Appending") as on_progress:
        return await service.append(
            path, catalog_file=catalog_file, algorithm=algo, on_progress=on_progress
        )


@app.command()
def append(
    path: Path = typer.Argument(Path("."), help="Signed directory."),
    algo: Optional[DigestAlgorithm] = typer.Option(
        None, "--algo", "-a", help="Algorithm of the catalog.", case_sensitive=False
    ),
    catalog_file: Optional[Path] = typer.Option(
        None, "--catalog-file", help="Catalog file, absolute or relative to PATH."
    ),
) -> None:
    """Add entries for unknown files to an already-existing catalog."""
    service = get_catalog_service()
    outcome = run_operation(run_append(service, path, algo, catalog_file), "append")
    if outcome.inserted:
        console.print(f"[green]Added {len(outcome.inserted)} files to the catalog[/green]")
    else:
        console.print("Nothing to do.")
    if outcome.errors:
        console.print(f"[yellow]{len(outcome.errors)} paths could not be read[/yellow]")
