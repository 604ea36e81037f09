"""Digest algorithms, streaming hashing and hex digest handling."""

import hashlib
import string
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Tuple

import blake3
from loguru import logger

from ratify.services.exceptions import DigestFormatError

# Read files in 1 MiB chunks so memory stays bounded for any file size
CHUNK_SIZE = 1024 * 1024

HEX_DIGITS = frozenset(string.hexdigits)


class DigestAlgorithm(str, Enum):
    """Supported hash algorithms.

    Member order matters: it is the order used when searching a directory for
    a default catalog file.
    """

    BLAKE3 = "blake3"
    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA512 = "sha512"

    def __str__(self) -> str:
        return self.value

    @property
    def extension(self) -> str:
        """Catalog file extension, e.g. ``.sha256``."""
        return f".{self.value}"

    @property
    def digest_size(self) -> int:
        """Digest length in bytes."""
        return _DIGEST_SIZES[self]

    @property
    def hex_length(self) -> int:
        """Digest length in hex characters."""
        return self.digest_size * 2

    def new_hasher(self):
        """Return a fresh hash object with the hashlib ``update``/``digest`` interface."""
        return _HASHERS[self]()

    @classmethod
    def from_extension(cls, extension: str) -> Optional["DigestAlgorithm"]:
        """Map a file extension (with or without the dot) to an algorithm."""
        ext = extension.lstrip(".").lower()
        for algorithm in cls:
            if algorithm.value == ext:
                return algorithm
        return None

    @classmethod
    def from_file_name(cls, path: Path) -> Optional["DigestAlgorithm"]:
        """Deduce the algorithm from the last dot-separated part of a file name."""
        name = Path(path).name
        if "." not in name:
            return None
        return cls.from_extension(name.rsplit(".", 1)[-1])

    @classmethod
    def deduce_from_directory(cls, root: Path) -> Optional["DigestAlgorithm"]:
        """Find the first algorithm with a default catalog file in ``root``.

        The default catalog of a directory ``foo`` is ``foo/foo.<algo>``.
        """
        for algorithm in cls:
            candidate = root / f"{root.name}{algorithm.extension}"
            logger.debug(f"Searching for {candidate}...")
            if candidate.exists():
                return algorithm
        return None

    @classmethod
    def from_hex_length(cls, length: int) -> List["DigestAlgorithm"]:
        """All algorithms whose hex digests have ``length`` characters."""
        return [algorithm for algorithm in cls if algorithm.hex_length == length]


_DIGEST_SIZES = {
    DigestAlgorithm.BLAKE3: 32,
    DigestAlgorithm.MD5: 16,
    DigestAlgorithm.SHA1: 20,
    DigestAlgorithm.SHA256: 32,
    DigestAlgorithm.SHA512: 64,
}

_HASHERS: dict[DigestAlgorithm, Callable] = {
    DigestAlgorithm.BLAKE3: blake3.blake3,
    DigestAlgorithm.MD5: hashlib.md5,
    DigestAlgorithm.SHA1: hashlib.sha1,
    DigestAlgorithm.SHA256: hashlib.sha256,
    DigestAlgorithm.SHA512: hashlib.sha512,
}


def compute(stream: BinaryIO, algorithm: DigestAlgorithm) -> Tuple[int, bytes]:
    """
    Hash a binary stream chunk by chunk.

    Args:
        stream: Readable binary stream
        algorithm: Algorithm to hash with

    Returns:
        Tuple of (number of bytes read, raw digest)
    """
    hasher = algorithm.new_hasher()
    size = 0
    while chunk := stream.read(CHUNK_SIZE):
        hasher.update(chunk)
        size += len(chunk)
    return size, hasher.digest()


def hash_file(path: Path, algorithm: DigestAlgorithm) -> Tuple[int, bytes]:
    """Open, stream and hash a single file. Raises OSError on I/O failure."""
    logger.debug(f"Hashing {path}...")
    with open(path, "rb") as f:
        size, digest = compute(f, algorithm)
    logger.debug(f"Hashing {path} complete: {digest.hex()[:8]}")
    return size, digest


def parse_digest(hex_string: str, algorithm: DigestAlgorithm) -> bytes:
    """
    Decode a hex digest and check it fits the algorithm.

    Args:
        hex_string: Hex encoded digest
        algorithm: Algorithm the digest claims to come from

    Returns:
        Raw digest bytes

    Raises:
        DigestFormatError: If the length or the character set is wrong
    """
    if len(hex_string) != algorithm.hex_length:
        raise DigestFormatError(
            f"expected {algorithm.hex_length} hex characters for {algorithm}, "
            f"got {len(hex_string)}"
        )
    if not HEX_DIGITS.issuperset(hex_string):
        raise DigestFormatError(f"invalid hex digest {hex_string!r}")
    return bytes.fromhex(hex_string)


def format_digest(digest: bytes) -> str:
    """Encode a raw digest as lowercase hex."""
    return digest.hex()
