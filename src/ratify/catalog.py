"""
Checksum catalog model and the legacy line format.

A catalog file holds one entry per line::

    <hex-digest> *<relative-path>     binary marker (what ratify writes)
    <hex-digest>  <relative-path>     text marker

Lines starting with ``;`` or ``#`` are comments. The path is everything after
the marker and is kept literally, including surrounding whitespace.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Union

from loguru import logger

from ratify.algorithms import DigestAlgorithm, format_digest, parse_digest
from ratify.services.exceptions import (
    AlgorithmDetectionError,
    AlgorithmMismatchError,
    CatalogExistsError,
    CatalogNotFoundError,
    CatalogParseError,
    DigestFormatError,
    RatifyError,
)
from ratify.utils.file_utils import (
    FileError,
    ensure_directory,
    temp_path_for,
    write_file_atomic,
)

COMMENT_PREFIXES = (";", "#")
BINARY_SEPARATOR = " *"
TEXT_SEPARATOR = "  "


@dataclass(frozen=True)
class CatalogEntry:
    """A single (path, digest) pair of a catalog."""

    relative_path: str
    digest: bytes
    algorithm: DigestAlgorithm
    binary: bool = True

    def to_line(self) -> str:
        separator = BINARY_SEPARATOR if self.binary else TEXT_SEPARATOR
        return f"{format_digest(self.digest)}{separator}{self.relative_path}"


@dataclass(frozen=True)
class CatalogWarning:
    """A catalog line that was skipped while parsing."""

    line_number: int
    reason: str


@dataclass
class Catalog:
    """
    In-memory checksum catalog.

    Entries keep their insertion order so a catalog re-serializes the way it was
    read. Paths are unique.
    """

    algorithm: DigestAlgorithm
    entries: Dict[str, CatalogEntry] = field(default_factory=dict)
    # lines skipped while parsing, not part of the catalog's identity
    warnings: List[CatalogWarning] = field(default_factory=list, compare=False)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries.values())

    def __contains__(self, relative_path: object) -> bool:
        return relative_path in self.entries

    @property
    def paths(self) -> List[str]:
        return list(self.entries)

    def get(self, relative_path: str) -> Optional[CatalogEntry]:
        return self.entries.get(relative_path)

    def add(self, relative_path: str, digest: bytes, binary: bool = True) -> CatalogEntry:
        """Insert a new entry. Raises ValueError if the path is already present."""
        if relative_path in self.entries:
            raise ValueError(f"Entry {relative_path!r} already in catalog")
        return self.update_entry(relative_path, digest, binary=binary)

    def update_entry(
        self, relative_path: str, digest: bytes, binary: Optional[bool] = None
    ) -> CatalogEntry:
        """Set the digest of an entry, inserting it at the end if it is new.

        An existing entry keeps its position and, unless given, its mode marker.
        """
        if len(digest) != self.algorithm.digest_size:
            raise ValueError(
                f"{self.algorithm} digests are {self.algorithm.digest_size} bytes, got {len(digest)}"
            )
        existing = self.entries.get(relative_path)
        if binary is None:
            binary = existing.binary if existing else True
        entry = CatalogEntry(
            relative_path=relative_path,
            digest=digest,
            algorithm=self.algorithm,
            binary=binary,
        )
        self.entries[relative_path] = entry
        return entry

    def remove_entry(self, relative_path: str) -> None:
        self.entries.pop(relative_path, None)

    def copy(self) -> "Catalog":
        return Catalog(
            algorithm=self.algorithm,
            entries=dict(self.entries),
            warnings=list(self.warnings),
        )


def _split_line(line: str) -> Optional[tuple[str, str, bool]]:
    """Split a catalog line into (hex digest, path, binary flag)."""
    digest, sep, rest = line.partition(" ")
    if not sep or len(rest) < 2:
        return None
    marker, path = rest[0], rest[1:]
    if marker == "*":
        return digest, path, True
    if marker == " ":
        return digest, path, False
    return None


def parse(
    text: str,
    algorithm: DigestAlgorithm,
    *,
    strict: bool = False,
    source: Optional[Path] = None,
) -> Catalog:
    """
    Parse catalog text.

    Malformed lines are skipped and recorded as warnings so the rest of the
    catalog stays usable. A path listed twice makes the whole catalog
    untrustworthy and raises.

    Args:
        text: Catalog file contents
        algorithm: Algorithm the digests were computed with
        strict: Raise on the first malformed line instead of collecting warnings
        source: Catalog file path, used in messages only

    Returns:
        Parsed Catalog, with warnings attached

    Raises:
        CatalogParseError: On a duplicate path, or any malformed line when strict
    """
    catalog = Catalog(algorithm=algorithm)

    for line_number, raw_line in enumerate(text.split("\n"), start=1):
        line = raw_line.rstrip("\r")
        if not line.strip() or line.startswith(COMMENT_PREFIXES):
            continue

        parts = _split_line(line)
        try:
            if parts is None:
                raise DigestFormatError("expected '<digest> *<path>' or '<digest>  <path>'")
            hex_digest, relative_path, binary = parts
            digest = parse_digest(hex_digest, algorithm)
        except DigestFormatError as e:
            if strict:
                raise CatalogParseError(line_number, str(e), source) from e
            where = f"{source}:{line_number}" if source else f"line {line_number}"
            logger.warning(f"Skipping malformed catalog line {where}: {e}")
            catalog.warnings.append(CatalogWarning(line_number=line_number, reason=str(e)))
            continue

        if relative_path in catalog:
            raise CatalogParseError(
                line_number, f"Entry {relative_path!r} appears multiple times", source
            )
        catalog.add(relative_path, digest, binary=binary)

    logger.debug(f"Parsed {len(catalog)} catalog entries ({len(catalog.warnings)} warnings)")
    return catalog


def serialize(
    catalog: Catalog, *, sort_key: Optional[Callable[[CatalogEntry], object]] = None
) -> str:
    """Render a catalog in the legacy line format.

    Entries are written in insertion order unless a sort key is given.
    """
    entries: List[CatalogEntry] = list(catalog)
    if sort_key is not None:
        entries = sorted(entries, key=sort_key)
    return "".join(f"{entry.to_line()}\n" for entry in entries)


def sniff_hex_length(text: str) -> Optional[int]:
    """Length of the digest on the first entry line, if there is one."""
    for line in text.split("\n"):
        line = line.rstrip("\r")
        if not line.strip() or line.startswith(COMMENT_PREFIXES):
            continue
        parts = _split_line(line)
        if parts is not None:
            return len(parts[0])
    return None


class CatalogLocation:
    """
    Where a catalog lives: the signing root and the catalog file path.

    Without an explicit catalog file the catalog of ``foo/`` is
    ``foo/foo.<algo>``. A relative catalog file is resolved against the root.
    """

    def __init__(self, root: Union[str, Path], catalog_file: Optional[Union[str, Path]] = None):
        root = Path(root)
        try:
            self.root = root.resolve(strict=True)
        except OSError as e:
            raise RatifyError(f"Failed to resolve path {root}: {e}") from e
        if not self.root.is_dir():
            raise RatifyError(f"{self.root} is not a directory")

        self.catalog_file: Optional[Path] = None
        if catalog_file is not None:
            catalog_file = Path(catalog_file)
            if not catalog_file.is_absolute():
                catalog_file = self.root / catalog_file
            self.catalog_file = catalog_file

    def default_file_name(self, algorithm: DigestAlgorithm) -> str:
        name = self.root.name or "signatures"
        return f"{name}{algorithm.extension}"

    def catalog_path(self, algorithm: DigestAlgorithm) -> Path:
        """The catalog file used with ``algorithm``."""
        if self.catalog_file is not None:
            return self.catalog_file
        return self.root / self.default_file_name(algorithm)

    def resolve_algorithm(self, algorithm: Optional[DigestAlgorithm] = None) -> DigestAlgorithm:
        """Explicit algorithm, else deduced from the catalog file name or the root."""
        if algorithm is not None:
            return algorithm
        if self.catalog_file is not None:
            deduced = DigestAlgorithm.from_file_name(self.catalog_file)
            if deduced is None:
                raise AlgorithmDetectionError(
                    f"Failed to detect algorithm from catalog file {self.catalog_file}. "
                    "Please specify algorithm explicitly using --algo"
                )
            return deduced
        deduced = DigestAlgorithm.deduce_from_directory(self.root)
        if deduced is None:
            raise AlgorithmDetectionError(f"Failed to detect signature file in {self.root}")
        return deduced

    def empty_catalog(self, algorithm: DigestAlgorithm) -> Catalog:
        return Catalog(algorithm=algorithm)

    def load(self, algorithm: Optional[DigestAlgorithm] = None, *, strict: bool = False) -> Catalog:
        """
        Read and parse the catalog file.

        Args:
            algorithm: Explicit algorithm, deduced when None
            strict: Treat malformed lines as fatal

        Raises:
            AlgorithmDetectionError: If no algorithm could be determined
            AlgorithmMismatchError: If the explicit algorithm contradicts the file
            CatalogNotFoundError: If the catalog file does not exist
            CatalogParseError: If the catalog is structurally broken
        """
        resolved = self.resolve_algorithm(algorithm)
        path = self.catalog_path(resolved)
        logger.debug(f"Opening catalog file {path}...")
        if not path.exists():
            raise CatalogNotFoundError(f"Catalog file {path} not found")
        try:
            text = path.read_text(encoding="utf-8", errors="surrogateescape")
        except OSError as e:
            raise RatifyError(f"Failed opening {path}: {e}") from e

        if algorithm is not None:
            hex_length = sniff_hex_length(text)
            if hex_length is not None and hex_length != algorithm.hex_length:
                candidates = ", ".join(str(a) for a in DigestAlgorithm.from_hex_length(hex_length))
                raise AlgorithmMismatchError(
                    f"{path} holds {hex_length}-character digests "
                    f"({candidates or 'no known algorithm'}), not {algorithm}"
                )

        return parse(text, resolved, strict=strict, source=path)

    async def write(self, catalog: Catalog, *, overwrite: bool = False) -> Path:
        """Atomically write the catalog file and return its path.

        Raises:
            CatalogExistsError: If the file exists and overwrite is False
        """
        path = self.catalog_path(catalog.algorithm)
        if path.exists() and not overwrite:
            raise CatalogExistsError(path)
        try:
            await ensure_directory(path.parent)
            await write_file_atomic(path, serialize(catalog))
        except FileError as e:
            raise RatifyError(f"Failed writing catalog file {path}: {e}") from e
        logger.info(f"Wrote {len(catalog)} entries to {path}")
        return path

    def excluded_paths(self, algorithm: DigestAlgorithm) -> List[Path]:
        """Paths the scanner must skip so a catalog never signs itself."""
        path = self.catalog_path(algorithm)
        return [path, temp_path_for(path)]
