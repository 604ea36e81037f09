"""Sign command: build a new catalog for a directory."""

import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger

from ratify.algorithms import DigestAlgorithm
from ratify.cli.app import app
from ratify.cli.commands.command_utils import (
    console,
    get_catalog_service,
    hashing_progress,
    run_operation,
)
from ratify.services.catalog_service import CatalogService, SignResult
from ratify.services.exceptions import CatalogExistsError


def confirm_overwrite(error: CatalogExistsError) -> bool:
    """Ask before replacing an existing catalog. Never asks without a terminal."""
    if not sys.stdin.isatty():
        return False
    try:
        return typer.confirm(f"{error}. Overwrite?", default=False)
    except typer.Abort:
        return False


async def sign_with_progress(
    service: CatalogService,
    path: Path,
    algo: Optional[DigestAlgorithm],
    catalog_file: Optional[Path],
    overwrite: bool,
) -> SignResult:
    with hashing_progress("Signing") as on_progress:
        return await service.sign(
            path,
            algorithm=algo,
            catalog_file=catalog_file,
            overwrite=overwrite,
            on_progress=on_progress,
        )


async def run_sign(
    service: CatalogService,
    path: Path,
    algo: Optional[DigestAlgorithm],
    catalog_file: Optional[Path],
    overwrite: bool,
) -> SignResult:
    try:
        return await sign_with_progress(service, path, algo, catalog_file, overwrite)
    except CatalogExistsError as e:
        if overwrite or not confirm_overwrite(e):
            raise
        logger.info(f"Overwriting {e.path}")
        return await sign_with_progress(service, path, algo, catalog_file, True)


@app.command()
def sign(
    path: Path = typer.Argument(Path("."), help="Directory to sign."),
    algo: Optional[DigestAlgorithm] = typer.Option(
        None,
        "--algo",
        "-a",
        help="Algorithm to use for hashing (run list-algos to view available algorithms).",
        case_sensitive=False,
    ),
    catalog_file: Optional[Path] = typer.Option(
        None,
        "--catalog-file",
        help="Catalog file to write, absolute or relative to PATH.",
    ),
    overwrite: bool = typer.Option(
        False,
        "--overwrite",
        help="Replace an existing catalog file.",
    ),
) -> None:
    """Create a new catalog for a directory, signing its contents recursively."""
    service = get_catalog_service()
    result = run_operation(run_sign(service, path, algo, catalog_file, overwrite), "sign")
    console.print(
        f"[green]Signed {len(result.catalog)} files with {result.catalog.algorithm}[/green]"
    )
    if result.errors:
        console.print(f"[yellow]{len(result.errors)} paths could not be read[/yellow]")
