"""Common test fixtures."""

import errno
import os
import random
from pathlib import Path
from typing import Callable

import pytest

from ratify.algorithms import DigestAlgorithm
from ratify.config import RatifyConfig
from ratify.services.catalog_service import CatalogService
from ratify.sync import reconcile
from ratify.sync.reconcile import ReconciliationEngine
from ratify.sync.scanner import TreeScanner

SIGNED_FILES = ["a/1", "a/2", "b/3", "b/4", "c"]


def random_data() -> bytes:
    return random.randbytes(random.randrange(1000, 100_000))


def write_file(path: Path, content: bytes | str = b"test content") -> Path:
    """Create a file with given content, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode()
    path.write_bytes(content)
    return path


@pytest.fixture(autouse=True)
def config_home(tmp_path_factory, monkeypatch) -> Path:
    """Point HOME at an empty directory so no user config is picked up."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    # On Windows, also set USERPROFILE
    if os.name == "nt":
        monkeypatch.setenv("USERPROFILE", str(home))
    for key in list(os.environ):
        if key.startswith("RATIFY_"):
            monkeypatch.delenv(key)
    return home


@pytest.fixture
def signed_files() -> list[str]:
    return list(SIGNED_FILES)


@pytest.fixture
def random_data_gen() -> Callable[[], bytes]:
    return random_data


@pytest.fixture
def directory(tmp_path) -> Path:
    """A signing root named ``dirname`` holding a few nested files."""
    root = tmp_path / "dirname"
    for filename in SIGNED_FILES:
        write_file(root / filename, random_data())
    return root


@pytest.fixture
def empty_directory(tmp_path) -> Path:
    root = tmp_path / "empty"
    root.mkdir()
    return root


@pytest.fixture(params=list(DigestAlgorithm), ids=lambda a: a.value)
def algorithm(request) -> DigestAlgorithm:
    return request.param


@pytest.fixture
def test_config() -> RatifyConfig:
    return RatifyConfig(worker_pool_size=4)


@pytest.fixture
def tree_scanner() -> TreeScanner:
    return TreeScanner()


@pytest.fixture
def engine(tree_scanner: TreeScanner) -> ReconciliationEngine:
    return ReconciliationEngine(tree_scanner, worker_pool_size=4)


@pytest.fixture
def catalog_service(test_config: RatifyConfig) -> CatalogService:
    return CatalogService(test_config)


@pytest.fixture
def unreadable_directory(monkeypatch) -> Callable[[Path], None]:
    """Make listing the given directories fail with EACCES, whoever runs the tests."""
    locked: set[str] = set()
    real_scandir = os.scandir

    def scandir(path="."):
        if os.path.realpath(os.fspath(path)) in locked:
            raise PermissionError(errno.EACCES, os.strerror(errno.EACCES), os.fspath(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)
    return lambda path: locked.add(os.path.realpath(path))


@pytest.fixture
def failing_hash(monkeypatch) -> Callable[..., None]:
    """Make hashing the given files raise the OSError matching an errno code."""
    failures: dict[str, int] = {}
    real_hash_file = reconcile.hash_file

    def hash_file(path, algorithm):
        code = failures.get(os.path.realpath(path))
        if code is not None:
            raise OSError(code, os.strerror(code), str(path))
        return real_hash_file(path, algorithm)

    monkeypatch.setattr(reconcile, "hash_file", hash_file)

    def fail(path: Path, code: int = errno.EACCES) -> None:
        failures[os.path.realpath(path)] = code

    return fail


@pytest.fixture
def project_root() -> Path:
    return Path(__file__).parent.parent
