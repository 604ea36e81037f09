"""Main CLI entry point for ratify."""  # pragma: no cover

from ratify.cli.app import app  # pragma: no cover

# Register commands
from ratify.cli.commands import append, list_algos, sign, test, update  # pragma: no cover

__all__ = ["app", "append", "list_algos", "sign", "test", "update"]  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    app()
