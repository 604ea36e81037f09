"""Rendering of reconciliation reports."""

import json
from typing import List, Protocol, TextIO

from rich.filesize import decimal

from ratify.services.exceptions import IoError, VerificationFailed
from ratify.sync.utils import EntryStatus, ReconciliationReport

PLAIN_MESSAGES = {
    EntryStatus.FAIL: "failed verification",
    EntryStatus.MISSING: "missing",
    EntryStatus.UNKNOWN: "is unknown",
}


def unattached_errors(report: ReconciliationReport) -> List[IoError]:
    """I/O errors not already shown through a result, such as an unreadable new directory."""
    # a directory error is shared by every catalog entry under that directory
    attached = {id(r.error) for r in report.results if r.error is not None}
    return [e for e in report.errors if id(e) not in attached]


class ReportFormatter(Protocol):
    def format(self, report: ReconciliationReport, writer: TextIO) -> None: ...


class PlainFormatter:
    """Human readable summary, one line per path that needs attention."""

    def format(self, report: ReconciliationReport, writer: TextIO) -> None:
        for result in report.pending:
            absolute = report.root / result.relative_path
            if result.error is not None:
                writer.write(f"* {str(absolute)!r} could not be read: {result.error.cause}\n")
            else:
                writer.write(f"* {str(absolute)!r} {PLAIN_MESSAGES[result.status]}\n")
        for error in unattached_errors(report):
            absolute = report.root / error.path
            writer.write(f"* {str(absolute)!r} could not be read: {error.cause}\n")

        writer.write(f"{len(report.results)} entries checked\n")
        writer.write(f"{len(report.ok)} OK\n")
        if report.failed:
            writer.write(f"{len(report.failed)} entries failed verification\n")
        if report.missing:
            writer.write(f"{len(report.missing)} entries missing\n")
        if report.unknown:
            writer.write(f"{len(report.unknown)} entries unknown\n")
        if report.errors:
            writer.write(f"{len(report.errors)} paths could not be read\n")

        throughput = report.total_size / report.elapsed if report.elapsed > 0 else 0.0
        writer.write(
            f"{decimal(report.total_size)} done in {report.elapsed:.2f}s "
            f"({throughput / 1_000_000:.02f} MB/sec)\n"
        )


class JsonFormatter:
    """Machine readable report listing every path that is not OK."""

    def format(self, report: ReconciliationReport, writer: TextIO) -> None:
        failed = [
            {
                "path": str(report.root / result.relative_path),
                "relative_path": result.relative_path,
                "status": result.status.value.lower(),
            }
            for result in report.pending
        ]
        errors = [{"path": error.path, "error": str(error.cause)} for error in report.errors]
        json.dump(
            {
                "root": str(report.root),
                "processed": len(report.results),
                "total_size": report.total_size,
                "failed": failed,
                "errors": errors,
            },
            writer,
        )
        writer.write("\n")


FORMATTERS = {
    "plain": PlainFormatter,
    "json": JsonFormatter,
}


def get_formatter(report_type: str) -> ReportFormatter:
    try:
        return FORMATTERS[report_type]()
    except KeyError:
        raise ValueError(f"Unknown report type {report_type!r}") from None


def verification_outcome(report: ReconciliationReport) -> None:
    """
    Turn a report into a completion signal.

    Raises:
        VerificationFailed: With the most severe finding, failed entries first,
            unreadable paths last
    """
    if report.failed:
        raise VerificationFailed("Failed entries found")
    if report.missing:
        raise VerificationFailed("Missing entries found")
    if report.unknown:
        raise VerificationFailed("Unknown entries found")
    if report.errors:
        raise VerificationFailed("Unreadable entries found")
