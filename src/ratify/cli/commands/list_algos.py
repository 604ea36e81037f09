"""List the supported hashing algorithms."""

import typer

from ratify.algorithms import DigestAlgorithm
from ratify.cli.app import app


@app.command("list-algos")
def list_algos() -> None:
    """List available signature (hashing) algorithms."""
    for algorithm in DigestAlgorithm:
        typer.echo(algorithm.value)
