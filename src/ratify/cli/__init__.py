"""Command line interface for ratify."""
