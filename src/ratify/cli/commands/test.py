"""Test command: verify a directory against its catalog."""

import sys
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from loguru import logger

from ratify.algorithms import DigestAlgorithm
from ratify.cli.app import app
from ratify.cli.commands.command_utils import (
    EXIT_ERROR,
    EXIT_VERIFICATION_FAILED,
    err_console,
    get_catalog_service,
    hashing_progress,
    run_operation,
)
from ratify.reporting import get_formatter, verification_outcome
from ratify.services.catalog_service import CatalogService
from ratify.services.exceptions import VerificationFailed
from ratify.sync.utils import ReconciliationReport


class ReportType(str, Enum):
    """Kinds of report test can write."""

    PLAIN = "plain"
    JSON = "json"


async def run_test(
    service: CatalogService,
    path: Path,
    algo: Optional[DigestAlgorithm],
    catalog_file: Optional[Path],
) -> ReconciliationReport:
    with hashing_progress("Verifying") as on_progress:
        return await service.test(
            path, algorithm=algo, catalog_file=catalog_file, on_progress=on_progress
        )


def write_report(
    report: ReconciliationReport, report_type: ReportType, report_filename: Optional[Path]
) -> None:
    formatter = get_formatter(report_type.value)
    if report_filename is None:
        formatter.format(report, sys.stdout)
        return

    logger.debug(f"Opening report file {report_filename} for writing...")
    try:
        with report_filename.open("x", encoding="utf-8") as f:
            formatter.format(report, f)
    except OSError as e:
        err_console.print(f"[red]Failed opening report file {report_filename}:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)


@app.command("test")
def test_command(
    path: Path = typer.Argument(Path("."), help="Signed directory to verify."),
    algo: Optional[DigestAlgorithm] = typer.Option(
        None,
        "--algo",
        "-a",
        help="Algorithm to use; deduced from the catalog file name when omitted.",
        case_sensitive=False,
    ),
    catalog_file: Optional[Path] = typer.Option(
        None, "--catalog-file", help="Catalog file, absolute or relative to PATH."
    ),
    report_type: ReportType = typer.Option(
        ReportType.PLAIN, "--report", help="Kind of report to generate."
    ),
    report_filename: Optional[Path] = typer.Option(
        None, "--report-filename", help="File to write the report to instead of stdout."
    ),
) -> None:
    """Verify a catalog against the actual directory contents."""
    service = get_catalog_service()
    report = run_operation(run_test(service, path, algo, catalog_file), "test")
    write_report(report, report_type, report_filename)
    try:
        verification_outcome(report)
    except VerificationFailed as e:
        err_console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(EXIT_VERIFICATION_FAILED)
