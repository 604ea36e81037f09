"""Utilities for file operations."""

from pathlib import Path

from loguru import logger


class FileError(Exception):
    """Base exception for file operations."""

    pass


class FileWriteError(FileError):
    """Raised when file operations fail."""

    pass


def temp_path_for(path: Path) -> Path:
    """Sibling temp file used while writing ``path``: ``name.ext.tmp``."""
    return path.with_name(f"{path.name}.tmp")


async def ensure_directory(path: Path) -> None:
    """
    Ensure directory exists, creating if necessary.

    Args:
        path: Directory path to ensure

    Raises:
        FileWriteError: If directory creation fails
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create directory: {path}: {e}")
        raise FileWriteError(f"Failed to create directory {path}: {e}") from e


async def write_file_atomic(path: Path, content: str) -> None:
    """
    Write file with atomic operation using temporary file.

    The temp file lives next to the target so the final rename never crosses
    filesystems. Readers see either the old file or the complete new one.

    Args:
        path: Target file path
        content: Content to write

    Raises:
        FileWriteError: If write operation fails
    """
    temp_path = temp_path_for(path)
    try:
        # newline="" keeps "\n" line endings on every platform
        with open(temp_path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
            f.write(content)
        temp_path.replace(path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to write file: {path}: {e}")
        raise FileWriteError(f"Failed to write file {path}: {e}") from e
