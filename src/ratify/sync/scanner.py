"""Recursive enumeration of the files under a signing root."""

import asyncio
import os
from pathlib import Path
from typing import Iterable, Set, Tuple

from loguru import logger

from ratify.services.exceptions import IoError
from ratify.sync.utils import LiveFile, ScanResult


def is_hidden(name: str) -> bool:
    return name.startswith(".")


class TreeScanner:
    """
    Lists the live files under a root, relative to that root.

    Symlinks are not followed by default so a link back up the tree cannot
    send the walk into a cycle. Hidden entries are skipped unless
    ``include_hidden`` is set.
    """

    def __init__(self, follow_symlinks: bool = False, include_hidden: bool = False):
        self.follow_symlinks = follow_symlinks
        self.include_hidden = include_hidden

    async def scan(self, root: Path, exclude: Iterable[Path] = ()) -> ScanResult:
        """
        Scan directory for files.

        Args:
            root: Directory to scan
            exclude: Absolute paths never reported, e.g. the catalog file

        Returns:
            ScanResult containing found files and any errors
        """
        return await asyncio.to_thread(self.scan_sync, root, exclude)

    def scan_sync(self, root: Path, exclude: Iterable[Path] = ()) -> ScanResult:
        logger.debug(f"Scanning directory: {root}")
        result = ScanResult()
        root = Path(os.path.abspath(root))
        excluded = {os.path.abspath(p) for p in exclude}
        visited: Set[Tuple[int, int]] = set()

        def on_error(error: OSError) -> None:
            failed = Path(error.filename) if error.filename else root
            rel_path = self._relative(failed, root)
            logger.error(f"Failed to read {failed}: {error.strerror or error}")
            result.errors[rel_path] = IoError(rel_path, error.strerror or str(error))

        for dirpath, dirnames, filenames in os.walk(
            root, onerror=on_error, followlinks=self.follow_symlinks
        ):
            if self.follow_symlinks:
                try:
                    st = os.stat(dirpath)
                except OSError as e:
                    on_error(e)
                    dirnames[:] = []
                    continue
                key = (st.st_dev, st.st_ino)
                if key in visited:
                    logger.warning(f"Skipping {dirpath}: directory already visited (symlink cycle)")
                    dirnames[:] = []
                    continue
                visited.add(key)

            if not self.include_hidden:
                dirnames[:] = [d for d in dirnames if not is_hidden(d)]
            dirnames.sort()

            for name in sorted(filenames):
                if not self.include_hidden and is_hidden(name):
                    continue
                path = Path(dirpath) / name
                if str(path) in excluded:
                    continue
                if path.is_symlink() and not self.follow_symlinks:
                    logger.debug(f"Skipping symlink: {path}")
                    continue
                rel_path = self._relative(path, root)
                result.files[rel_path] = LiveFile(relative_path=rel_path, absolute_path=path)

        logger.debug(f"Found {len(result.files)} files")
        if result.errors:
            logger.warning(f"Encountered {len(result.errors)} errors while scanning")

        return result

    @staticmethod
    def _relative(path: Path, root: Path) -> str:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            return path.as_posix()
