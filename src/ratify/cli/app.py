from typing import Optional

import typer

from ratify.utils.logging import setup_logging


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        import ratify

        typer.echo(f"ratify version: {ratify.__version__}")
        raise typer.Exit()


app = typer.Typer(name="ratify", no_args_is_help=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase log verbosity (-v info, -vv debug).",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """ratify - sign directory trees and verify them against checksum catalogs."""
    setup_logging(verbose)
    ctx.obj = {"verbose": verbose}
