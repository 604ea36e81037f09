"""Types shared by the scanner and the reconciliation engine."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from ratify.services.exceptions import IoError


class EntryStatus(str, Enum):
    """Classification of a path after reconciliation."""

    OK = "OK"
    FAIL = "FAIL"
    MISSING = "MISSING"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class LiveFile:
    """A file found on disk during a scan."""

    relative_path: str
    absolute_path: Path


@dataclass
class ScanResult:
    """Result of scanning a directory."""

    # relative path -> live file
    files: Dict[str, LiveFile] = field(default_factory=dict)
    # relative path of an unreadable entry -> error
    errors: Dict[str, IoError] = field(default_factory=dict)


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome for one path found in the catalog, on disk, or both.

    ``live_digest`` is None for MISSING paths and for files that could not be
    hashed; ``error`` tells the latter apart.
    """

    relative_path: str
    status: EntryStatus
    catalog_digest: Optional[bytes] = None
    live_digest: Optional[bytes] = None
    size: int = 0
    error: Optional[IoError] = None

    @property
    def directory(self) -> str:
        """Parent directory of the path, "" for files at the root."""
        return self.relative_path.rpartition("/")[0]

    def is_under(self, directory: str) -> bool:
        if not directory:
            return True
        return self.relative_path.startswith(f"{directory.rstrip('/')}/")


@dataclass
class ReconciliationReport:
    """Ordered results of one reconciliation run.

    Attributes:
        root: Signing root the relative paths refer to
        results: One result per path, sorted by relative path
        errors: Per-path I/O errors from scanning and hashing
        total_size: Bytes hashed during the run
        elapsed: Wall clock seconds spent reconciling
    """

    root: Path
    results: List[ReconciliationResult] = field(default_factory=list)
    errors: List[IoError] = field(default_factory=list)
    total_size: int = 0
    elapsed: float = 0.0

    def by_status(self, status: EntryStatus) -> List[ReconciliationResult]:
        return [r for r in self.results if r.status == status]

    @property
    def ok(self) -> List[ReconciliationResult]:
        return self.by_status(EntryStatus.OK)

    @property
    def failed(self) -> List[ReconciliationResult]:
        return self.by_status(EntryStatus.FAIL)

    @property
    def missing(self) -> List[ReconciliationResult]:
        return self.by_status(EntryStatus.MISSING)

    @property
    def unknown(self) -> List[ReconciliationResult]:
        return self.by_status(EntryStatus.UNKNOWN)

    @property
    def pending(self) -> List[ReconciliationResult]:
        """Every result that is not OK, in path order."""
        return [r for r in self.results if r.status != EntryStatus.OK]

    @property
    def total_changes(self) -> int:
        """Total number of paths that need attention."""
        return len(self.pending)

    @property
    def paths(self) -> List[str]:
        return [r.relative_path for r in self.results]
