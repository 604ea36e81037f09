from pathlib import Path
from typing import Optional, Union


class RatifyError(Exception):
    """Base class for all ratify errors."""

    pass


class IoError(RatifyError):
    """Raised when a single file or directory cannot be read.

    Per-path I/O errors never abort a run; they are collected and reported
    next to the regular results.
    """

    def __init__(self, path: Union[str, Path], cause: Union[str, BaseException]):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"{self.path}: {cause}")


class DigestFormatError(RatifyError):
    """Raised when a hex digest does not match the algorithm's format"""

    pass


class CatalogParseError(RatifyError):
    """Raised when a catalog file is structurally broken"""

    def __init__(self, line_number: int, reason: str, source: Optional[Path] = None):
        self.line_number = line_number
        self.reason = reason
        self.source = source
        where = f"{source}:{line_number}" if source else f"line {line_number}"
        super().__init__(f"{where}: {reason}")


class AlgorithmMismatchError(RatifyError):
    """Raised when an explicit algorithm conflicts with the catalog contents"""

    pass


class AlgorithmDetectionError(RatifyError):
    """Raised when no algorithm can be determined for a catalog"""

    pass


class CatalogNotFoundError(RatifyError):
    """Raised when the catalog file does not exist"""

    pass


class CatalogExistsError(RatifyError):
    """Raised when refusing to overwrite an existing catalog"""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Catalog file {path} already exists")


class AppendViolationError(RatifyError):
    """Raised when append is asked to touch an entry already in the catalog"""

    pass


class VerificationFailed(RatifyError):
    """Raised when verification found failed, missing or unknown entries.

    This is a completion signal, not a crash: the run itself finished.
    """

    pass
