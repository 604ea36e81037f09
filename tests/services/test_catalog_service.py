"""Tests for the catalog service."""

import hashlib
from pathlib import Path

import pytest

from ratify.algorithms import DigestAlgorithm
from ratify.config import RatifyConfig
from ratify.services.catalog_service import CatalogService
from ratify.services.exceptions import (
    AlgorithmDetectionError,
    AlgorithmMismatchError,
    CatalogExistsError,
    CatalogNotFoundError,
    CatalogParseError,
)
from ratify.services.update_machine import Skip, UpdateThis, confirm_all, skip_all
from ratify.sync.utils import EntryStatus

SHA256 = DigestAlgorithm.SHA256


def create_test_file(path: Path, content: str = "test content") -> None:
    """Create a test file with given content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def catalog_lines(path: Path) -> dict:
    """relative path -> hex digest"""
    entries = {}
    for line in path.read_text().splitlines():
        digest, relpath = line.split(" *", 1)
        entries[relpath] = digest
    return entries


@pytest.mark.asyncio
async def test_sign(catalog_service: CatalogService, directory: Path, signed_files):
    result = await catalog_service.sign(directory, SHA256)

    catalog_path = directory / "dirname.sha256"
    assert result.path == catalog_path.resolve()
    assert result.errors == []
    assert sorted(result.catalog.paths) == sorted(signed_files)
    entries = catalog_lines(catalog_path)
    assert sorted(entries) == sorted(signed_files)
    for path, digest in entries.items():
        assert digest == hashlib.sha256((directory / path).read_bytes()).hexdigest()


@pytest.mark.asyncio
async def test_sign_every_algorithm(
    catalog_service: CatalogService, directory: Path, algorithm: DigestAlgorithm
):
    await catalog_service.sign(directory, algorithm)
    report = await catalog_service.test(directory)
    assert len(report.ok) == 5
    assert report.pending == []


@pytest.mark.asyncio
async def test_sign_refuses_to_overwrite(catalog_service: CatalogService, directory: Path):
    await catalog_service.sign(directory, SHA256)
    catalog_path = directory / "dirname.sha256"
    original = catalog_path.read_text()
    (directory / "c").write_bytes(b"changed")

    with pytest.raises(CatalogExistsError):
        await catalog_service.sign(directory, SHA256)
    assert catalog_path.read_text() == original

    await catalog_service.sign(directory, SHA256, overwrite=True)
    assert catalog_lines(catalog_path)["c"] == hashlib.sha256(b"changed").hexdigest()


@pytest.mark.asyncio
async def test_sign_uses_configured_default_algorithm(directory: Path):
    service = CatalogService(RatifyConfig(default_sign_algo=DigestAlgorithm.MD5))
    result = await service.sign(directory)
    assert result.catalog.algorithm == DigestAlgorithm.MD5
    assert (directory / "dirname.md5").exists()


@pytest.mark.asyncio
async def test_sign_requires_algorithm(catalog_service: CatalogService, directory: Path):
    with pytest.raises(AlgorithmDetectionError):
        await catalog_service.sign(directory)


@pytest.mark.asyncio
async def test_sign_custom_catalog_file(catalog_service: CatalogService, directory: Path):
    catalog_file = directory.parent / "elsewhere" / "sums.sha512"
    await catalog_service.sign(directory, DigestAlgorithm.SHA512, catalog_file=catalog_file)
    assert catalog_file.exists()

    report = await catalog_service.test(directory, catalog_file=catalog_file)
    assert len(report.ok) == 5


@pytest.mark.asyncio
async def test_test_reports_changes(catalog_service: CatalogService, directory: Path):
    await catalog_service.sign(directory, SHA256)
    (directory / "a" / "1").write_bytes(b"changed")
    (directory / "b" / "4").unlink()
    create_test_file(directory / "new")

    report = await catalog_service.test(directory)

    assert [r.relative_path for r in report.failed] == ["a/1"]
    assert [r.relative_path for r in report.missing] == ["b/4"]
    assert [r.relative_path for r in report.unknown] == ["new"]


@pytest.mark.asyncio
async def test_test_without_catalog(catalog_service: CatalogService, directory: Path):
    with pytest.raises(AlgorithmDetectionError):
        await catalog_service.test(directory)
    with pytest.raises(CatalogNotFoundError):
        await catalog_service.test(directory, SHA256)


@pytest.mark.asyncio
async def test_test_algorithm_mismatch(catalog_service: CatalogService, directory: Path):
    await catalog_service.sign(directory, SHA256)
    with pytest.raises(AlgorithmMismatchError):
        await catalog_service.test(
            directory, DigestAlgorithm.SHA1, catalog_file=directory / "dirname.sha256"
        )


@pytest.mark.asyncio
async def test_append(catalog_service: CatalogService, directory: Path):
    """Append adds new files and leaves existing lines byte-identical."""
    await catalog_service.sign(directory, SHA256)
    catalog_path = directory / "dirname.sha256"
    original_lines = catalog_path.read_text().splitlines()
    (directory / "c").write_bytes(b"changed")
    (directory / "a" / "2").unlink()
    create_test_file(directory / "a" / "3", "three")

    outcome = await catalog_service.append(directory)

    assert outcome.inserted == ["a/3"]
    assert outcome.written
    lines = catalog_path.read_text().splitlines()
    assert lines[: len(original_lines)] == original_lines
    assert lines[len(original_lines) :] == [f"{hashlib.sha256(b'three').hexdigest()} *a/3"]


@pytest.mark.asyncio
async def test_append_nothing_new(catalog_service: CatalogService, directory: Path):
    await catalog_service.sign(directory, SHA256)
    catalog_path = directory / "dirname.sha256"
    mtime = catalog_path.stat().st_mtime_ns

    outcome = await catalog_service.append(directory)

    assert not outcome.changed
    assert not outcome.written
    assert catalog_path.stat().st_mtime_ns == mtime


@pytest.mark.asyncio
async def test_update_all_then_reconcile_is_clean(
    catalog_service: CatalogService, directory: Path
):
    await catalog_service.sign(directory, SHA256)
    (directory / "a" / "1").write_bytes(b"changed")
    (directory / "b" / "4").unlink()
    create_test_file(directory / "new")

    outcome = await catalog_service.update(directory)

    assert outcome.written
    assert outcome.updated == ["a/1"]
    assert outcome.removed == ["b/4"]
    assert outcome.inserted == ["new"]
    report = await catalog_service.test(directory)
    assert all(r.status == EntryStatus.OK for r in report.results)
    assert sorted(report.paths) == ["a/1", "a/2", "b/3", "c", "new"]

    again = await catalog_service.update(directory)
    assert not again.changed
    assert not again.written


@pytest.mark.asyncio
async def test_update_skip_writes_nothing(catalog_service: CatalogService, directory: Path):
    await catalog_service.sign(directory, SHA256)
    catalog_path = directory / "dirname.sha256"
    original = catalog_path.read_text()
    (directory / "c").write_bytes(b"changed")

    outcome = await catalog_service.update(directory, decide=skip_all)

    assert outcome.skipped == ["c"]
    assert not outcome.written
    assert catalog_path.read_text() == original


@pytest.mark.asyncio
async def test_update_confirm_refused(catalog_service: CatalogService, directory: Path):
    await catalog_service.sign(directory, SHA256)
    catalog_path = directory / "dirname.sha256"
    original = catalog_path.read_text()
    (directory / "c").write_bytes(b"changed")
    seen = []

    def refuse(outcome):
        seen.append(outcome.updated)
        return False

    outcome = await catalog_service.update(directory, confirm=refuse)

    assert seen == [["c"]]
    assert not outcome.written
    assert catalog_path.read_text() == original


@pytest.mark.asyncio
async def test_update_mixed_decisions(catalog_service: CatalogService, directory: Path):
    await catalog_service.sign(directory, SHA256)
    (directory / "a" / "1").write_bytes(b"changed")
    (directory / "c").write_bytes(b"changed")
    decisions = iter([UpdateThis(), Skip()])

    outcome = await catalog_service.update(directory, decide=lambda r: next(decisions))

    assert outcome.updated == ["a/1"]
    assert outcome.skipped == ["c"]
    report = await catalog_service.test(directory)
    assert [r.relative_path for r in report.failed] == ["c"]


@pytest.mark.asyncio
async def test_broken_catalog_aborts_without_writing(
    catalog_service: CatalogService, directory: Path
):
    digest = hashlib.sha256(b"x").hexdigest()
    catalog_path = directory / "dirname.sha256"
    text = f"{digest} *c\n{digest} *c\n"
    catalog_path.write_text(text)

    with pytest.raises(CatalogParseError):
        await catalog_service.update(directory)
    with pytest.raises(CatalogParseError):
        await catalog_service.append(directory)
    assert catalog_path.read_text() == text


@pytest.mark.asyncio
async def test_plan_then_write_updates(catalog_service: CatalogService, directory: Path):
    await catalog_service.sign(directory, SHA256)
    catalog_path = directory / "dirname.sha256"
    original = catalog_path.read_text()
    (directory / "c").write_bytes(b"changed")

    pending = await catalog_service.prepare_update(directory)
    outcome = catalog_service.plan_updates(pending, confirm_all)

    assert outcome.updated == ["c"]
    assert not outcome.written
    assert catalog_path.read_text() == original

    outcome = await catalog_service.write_updates(pending, outcome)
    assert outcome.written
    assert catalog_lines(catalog_path)["c"] == hashlib.sha256(b"changed").hexdigest()


@pytest.mark.asyncio
async def test_write_updates_without_changes(catalog_service: CatalogService, directory: Path):
    await catalog_service.sign(directory, SHA256)
    catalog_path = directory / "dirname.sha256"
    mtime = catalog_path.stat().st_mtime_ns
    (directory / "c").write_bytes(b"changed")

    pending = await catalog_service.prepare_update(directory)
    outcome = await catalog_service.write_updates(
        pending, catalog_service.plan_updates(pending, skip_all)
    )

    assert not outcome.written
    assert catalog_path.stat().st_mtime_ns == mtime


@pytest.mark.asyncio
async def test_unreadable_paths_are_counted(
    catalog_service: CatalogService, directory: Path, unreadable_directory
):
    create_test_file(directory / "newdir" / "h")
    unreadable_directory(directory / "newdir")

    result = await catalog_service.sign(directory, SHA256)
    assert "newdir/h" not in result.catalog
    assert [e.path for e in result.errors] == ["newdir"]

    outcome = await catalog_service.append(directory)
    assert not outcome.changed
    assert [e.path for e in outcome.errors] == ["newdir"]

    outcome = await catalog_service.update(directory)
    assert not outcome.changed
    assert [e.path for e in outcome.errors] == ["newdir"]
