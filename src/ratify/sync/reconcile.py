"""Reconciliation of a catalog against the live filesystem."""

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from ratify.algorithms import DigestAlgorithm, hash_file
from ratify.catalog import Catalog
from ratify.services.exceptions import IoError
from ratify.sync.scanner import TreeScanner
from ratify.sync.utils import (
    EntryStatus,
    LiveFile,
    ReconciliationReport,
    ReconciliationResult,
    ScanResult,
)

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class HashOutcome:
    """Digest of one live file, or the error that prevented it."""

    size: int = 0
    digest: Optional[bytes] = None
    error: Optional[IoError] = None
    # deleted between the scan and hashing
    vanished: bool = False


class ReconciliationEngine:
    """
    Compares a catalog against the files under its root.

    Every live file is hashed at most once per run. Hashing runs in worker
    threads, at most ``worker_pool_size`` files at a time, and results come
    back sorted by path whatever order the workers finish in.
    """

    def __init__(self, scanner: TreeScanner, worker_pool_size: int = 4):
        if worker_pool_size < 1:
            raise ValueError("worker_pool_size must be at least 1")
        self.scanner = scanner
        self.worker_pool_size = worker_pool_size

    async def hash_files(
        self,
        files: Iterable[LiveFile],
        algorithm: DigestAlgorithm,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, HashOutcome]:
        """Hash files in parallel. Returns relative path -> outcome."""
        semaphore = asyncio.Semaphore(self.worker_pool_size)

        async def hash_one(live_file: LiveFile) -> HashOutcome:
            async with semaphore:
                try:
                    size, digest = await asyncio.to_thread(
                        hash_file, live_file.absolute_path, algorithm
                    )
                    outcome = HashOutcome(size=size, digest=digest)
                except FileNotFoundError:
                    logger.info(f"{live_file.relative_path} disappeared before it was hashed")
                    outcome = HashOutcome(vanished=True)
                except OSError as e:
                    logger.error(f"Failed hashing {live_file.absolute_path}: {e}")
                    outcome = HashOutcome(
                        error=IoError(live_file.relative_path, e.strerror or str(e))
                    )
            if on_progress is not None:
                on_progress(outcome.size)
            return outcome

        files = list(files)
        outcomes = await asyncio.gather(*(hash_one(f) for f in files))
        return {f.relative_path: outcome for f, outcome in zip(files, outcomes)}

    async def reconcile(
        self,
        catalog: Catalog,
        root: Path,
        exclude: Iterable[Path] = (),
        on_progress: Optional[ProgressCallback] = None,
    ) -> ReconciliationReport:
        """
        Classify every path of the catalog and of the tree.

        Args:
            catalog: Catalog to verify
            root: Directory the catalog's relative paths refer to
            exclude: Absolute paths the scan must skip
            on_progress: Called with the byte count of each hashed file

        Returns:
            ReconciliationReport with one result per path, sorted by path
        """
        start = time.monotonic()
        scan = await self.scanner.scan(root, exclude=exclude)
        hashed = await self.hash_files(scan.files.values(), catalog.algorithm, on_progress)

        results: List[ReconciliationResult] = []
        for rel_path, outcome in hashed.items():
            entry = catalog.get(rel_path)
            if outcome.vanished:
                if entry is not None:
                    results.append(
                        ReconciliationResult(
                            relative_path=rel_path,
                            status=EntryStatus.MISSING,
                            catalog_digest=entry.digest,
                        )
                    )
                continue
            if entry is None:
                status = EntryStatus.UNKNOWN
            elif outcome.digest is not None and outcome.digest == entry.digest:
                status = EntryStatus.OK
            else:
                status = EntryStatus.FAIL
            results.append(
                ReconciliationResult(
                    relative_path=rel_path,
                    status=status,
                    catalog_digest=entry.digest if entry else None,
                    live_digest=outcome.digest,
                    size=outcome.size,
                    error=outcome.error,
                )
            )

        for entry in catalog:
            if entry.relative_path in scan.files:
                continue
            scan_error = self._scan_error_for(entry.relative_path, scan)
            if scan_error is not None:
                # presence unknown, must not be treated as deleted
                results.append(
                    ReconciliationResult(
                        relative_path=entry.relative_path,
                        status=EntryStatus.FAIL,
                        catalog_digest=entry.digest,
                        error=scan_error,
                    )
                )
                continue
            logger.info(f"{entry.relative_path} is missing!")
            results.append(
                ReconciliationResult(
                    relative_path=entry.relative_path,
                    status=EntryStatus.MISSING,
                    catalog_digest=entry.digest,
                )
            )

        return self._build_report(root, results, scan, hashed, start)

    async def find_unknown(
        self,
        catalog: Catalog,
        root: Path,
        exclude: Iterable[Path] = (),
        on_progress: Optional[ProgressCallback] = None,
    ) -> ReconciliationReport:
        """Report only files absent from the catalog. Catalogued files are not hashed."""
        start = time.monotonic()
        scan = await self.scanner.scan(root, exclude=exclude)
        new_files = [f for path, f in scan.files.items() if path not in catalog]
        hashed = await self.hash_files(new_files, catalog.algorithm, on_progress)

        results = [
            ReconciliationResult(
                relative_path=rel_path,
                status=EntryStatus.UNKNOWN,
                live_digest=outcome.digest,
                size=outcome.size,
                error=outcome.error,
            )
            for rel_path, outcome in hashed.items()
            if not outcome.vanished
        ]
        return self._build_report(root, results, scan, hashed, start)

    @staticmethod
    def _scan_error_for(relative_path: str, scan: ScanResult) -> Optional[IoError]:
        for error_path, error in scan.errors.items():
            if error_path == "." or relative_path.startswith(f"{error_path}/"):
                return error
        return None

    @staticmethod
    def _build_report(
        root: Path,
        results: List[ReconciliationResult],
        scan: ScanResult,
        hashed: Dict[str, HashOutcome],
        start: float,
    ) -> ReconciliationReport:
        results.sort(key=lambda r: r.relative_path)
        errors = list(scan.errors.values())
        errors.extend(o.error for o in hashed.values() if o.error is not None)
        report = ReconciliationReport(
            root=root,
            results=results,
            errors=errors,
            total_size=sum(o.size for o in hashed.values()),
            elapsed=time.monotonic() - start,
        )
        logger.debug(
            f"Reconciled {len(results)} paths: {len(report.ok)} ok, {len(report.failed)} failed, "
            f"{len(report.missing)} missing, {len(report.unknown)} unknown"
        )
        return report
