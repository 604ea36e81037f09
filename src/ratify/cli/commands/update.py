"""Update command: repair a catalog interactively or with --confirm."""

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.tree import Tree

from ratify.algorithms import DigestAlgorithm
from ratify.cli.app import app
from ratify.cli.commands.command_utils import (
    console,
    get_catalog_service,
    hashing_progress,
    run_operation,
)
from ratify.services.catalog_service import CatalogService, PendingUpdate
from ratify.services.update_machine import (
    UpdateDecision,
    UpdateOutcome,
    confirm_all,
    decision_from_word,
)
from ratify.sync.utils import EntryStatus, ReconciliationResult

DECISION_PROMPT = "[S]kip [U]pdate [D]irectory [A]ll (default: Skip)"

STATUS_STYLES = {
    EntryStatus.FAIL: ("yellow", "changed"),
    EntryStatus.MISSING: ("red", "missing"),
    EntryStatus.UNKNOWN: ("green", "new"),
}


def describe(result: ReconciliationResult) -> str:
    style, label = STATUS_STYLES[result.status]
    if result.error is not None:
        label = f"unreadable: {result.error.cause}"
    return f"[{style}]{escape(result.relative_path)}[/{style}] ({escape(label)})"


def prompt_decision(result: ReconciliationResult) -> Optional[UpdateDecision]:
    """Ask about one pending path. End of input counts as no answer."""
    console.print(describe(result))
    while True:
        try:
            answer = typer.prompt(DECISION_PROMPT, default="", show_default=False)
        except typer.Abort:
            return None
        decision = decision_from_word(answer, result)
        if decision is not None:
            return decision
        console.print(f"[red]Unrecognized answer {escape(repr(answer))}[/red]")


def display_planned_changes(outcome: UpdateOutcome) -> None:
    """Show what is about to be written, grouped by kind of change."""
    tree = Tree("[bold]Planned catalog changes[/bold]")
    for title, style, paths in [
        ("Updated", "yellow", outcome.updated),
        ("Added", "green", outcome.inserted),
        ("Removed", "red", outcome.removed),
    ]:
        if paths:
            branch = tree.add(f"[{style}]{title}[/{style}] ({len(paths)})")
            for path in paths:
                branch.add(f"[{style}]{escape(path)}[/{style}]")
    console.print(tree)


def confirm_proceed(outcome: UpdateOutcome) -> bool:
    display_planned_changes(outcome)
    try:
        return typer.confirm("Proceed with updates?", default=False)
    except typer.Abort:
        return False


async def prepare_with_progress(
    service: CatalogService,
    path: Path,
    algo: Optional[DigestAlgorithm],
    catalog_file: Optional[Path],
) -> PendingUpdate:
    with hashing_progress("Verifying") as on_progress:
        return await service.prepare_update(
            path, algorithm=algo, catalog_file=catalog_file, on_progress=on_progress
        )


@app.command()
def update(
    path: Path = typer.Argument(Path("."), help="Signed directory to update."),
    algo: Optional[DigestAlgorithm] = typer.Option(
        None, "--algo", "-a", help="Algorithm of the catalog.", case_sensitive=False
    ),
    catalog_file: Optional[Path] = typer.Option(
        None, "--catalog-file", help="Catalog file, absolute or relative to PATH."
    ),
    confirm: bool = typer.Option(
        False,
        "--confirm",
        help="Update every changed, new and missing entry without asking.",
    ),
) -> None:
    """Update catalog entries that no longer match the directory."""
    service = get_catalog_service()
    pending = run_operation(prepare_with_progress(service, path, algo, catalog_file), "update")

    # decisions may block on the terminal, so they run outside the event loop
    decide = confirm_all if confirm else prompt_decision
    outcome = service.plan_updates(pending, decide)
    if outcome.changed and (confirm or confirm_proceed(outcome)):
        outcome = run_operation(service.write_updates(pending, outcome), "update")

    if not outcome.changed:
        console.print("Nothing to do.")
    elif outcome.written:
        console.print(
            f"[green]Catalog updated[/green]: {len(outcome.updated)} updated, "
            f"{len(outcome.inserted)} added, {len(outcome.removed)} removed"
        )
    else:
        console.print("Catalog left unchanged.")
    if outcome.errors:
        console.print(f"[yellow]{len(outcome.errors)} paths could not be read[/yellow]")
