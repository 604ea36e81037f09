"""CLI commands for ratify."""

from . import append, list_algos, sign, test, update

__all__ = ["append", "list_algos", "sign", "test", "update"]
