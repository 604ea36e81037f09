"""
Interactive catalog repair.

Every result that is not OK starts out pending. A decision source is asked
about one pending result at a time, in path order, and each decision resolves
that result and possibly others:

- Skip: leave the catalog alone for this path
- UpdateThis: make the catalog match the disk for this path
- UpdateDirectory: the same for every pending path under a directory
- UpdateAll: the same for every pending path, ending the loop
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Union

from loguru import logger

from ratify.catalog import Catalog
from ratify.services.exceptions import AppendViolationError, IoError
from ratify.sync.utils import EntryStatus, ReconciliationResult


@dataclass(frozen=True)
class Skip:
    pass


@dataclass(frozen=True)
class UpdateThis:
    pass


@dataclass(frozen=True)
class UpdateDirectory:
    directory: str


@dataclass(frozen=True)
class UpdateAll:
    pass


UpdateDecision = Union[Skip, UpdateThis, UpdateDirectory, UpdateAll]

# A decision source returns None when it got no input, which counts as Skip
DecisionSource = Callable[[ReconciliationResult], Optional[UpdateDecision]]

# Interactive vocabulary, first letter is the shortcut
DECISION_WORDS = ("Skip", "Update", "Directory", "All")


def decision_from_word(word: str, result: ReconciliationResult) -> Optional[UpdateDecision]:
    """
    Map an interactive answer to a decision.

    Accepts the full word or its first letter, case-insensitive. An empty
    answer is Skip. "Directory" scopes to the directory of ``result``.

    Returns:
        The decision, or None when the answer is not part of the vocabulary
    """
    word = word.strip().lower()
    if not word:
        return Skip()
    for candidate in DECISION_WORDS:
        if word in (candidate.lower(), candidate[0].lower()):
            if candidate == "Skip":
                return Skip()
            if candidate == "Update":
                return UpdateThis()
            if candidate == "Directory":
                return UpdateDirectory(result.directory)
            return UpdateAll()
    return None


def confirm_all(result: ReconciliationResult) -> UpdateDecision:
    """Decision source for ``--confirm``: update everything without asking."""
    return UpdateAll()


def skip_all(result: ReconciliationResult) -> UpdateDecision:
    return Skip()


@dataclass
class UpdateOutcome:
    """What an update run did to the catalog.

    Attributes:
        updated: FAIL paths whose digest was replaced
        inserted: UNKNOWN paths added to the catalog
        removed: MISSING paths dropped from the catalog
        skipped: Paths left as they were by decision
        unresolvable: Paths that could not be updated because they were unreadable
        errors: Every I/O error met while reconciling, including unreadable
            directories with nothing catalogued under them
        written: Whether the catalog file was rewritten with these changes
    """

    updated: List[str] = field(default_factory=list)
    inserted: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    unresolvable: List[str] = field(default_factory=list)
    errors: List[IoError] = field(default_factory=list)
    written: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.updated or self.inserted or self.removed)

    @property
    def total_changes(self) -> int:
        return len(self.updated) + len(self.inserted) + len(self.removed)


class UpdateMachine:
    """
    Applies update decisions to a catalog, one pending result at a time.

    The catalog is mutated in memory only; writing it back is the caller's job.
    """

    def __init__(self, catalog: Catalog, results: Iterable[ReconciliationResult]):
        self.catalog = catalog
        self.outcome = UpdateOutcome()
        self._pending: Dict[str, ReconciliationResult] = {
            r.relative_path: r
            for r in sorted(results, key=lambda r: r.relative_path)
            if self._visits(r)
        }

    def _visits(self, result: ReconciliationResult) -> bool:
        return result.status != EntryStatus.OK

    @property
    def pending(self) -> List[ReconciliationResult]:
        return list(self._pending.values())

    @property
    def done(self) -> bool:
        return not self._pending

    def is_pending(self, relative_path: str) -> bool:
        return relative_path in self._pending

    def next_pending(self) -> Optional[ReconciliationResult]:
        """The next result needing a decision, or None when all are resolved."""
        return next(iter(self._pending.values()), None)

    def apply(self, result: ReconciliationResult, decision: Optional[UpdateDecision]) -> List[str]:
        """
        Resolve ``result`` (and, for scoped decisions, other pending results).

        Args:
            result: A pending result
            decision: Decision for it; None means no input and counts as Skip

        Returns:
            Relative paths resolved by this decision

        Raises:
            ValueError: If ``result`` is not pending
        """
        if result.relative_path not in self._pending:
            raise ValueError(f"{result.relative_path} is not pending")
        if decision is None:
            decision = Skip()

        if isinstance(decision, Skip):
            targets = [result]
        elif isinstance(decision, UpdateThis):
            targets = [result]
        elif isinstance(decision, UpdateDirectory):
            targets = [result] + [
                r
                for r in self._pending.values()
                if r is not result and r.is_under(decision.directory)
            ]
        elif isinstance(decision, UpdateAll):
            targets = [result] + [r for r in self._pending.values() if r is not result]
        else:
            raise TypeError(f"Unknown update decision {decision!r}")

        for target in targets:
            del self._pending[target.relative_path]
            if isinstance(decision, Skip):
                logger.debug(f"Skipping {target.relative_path}")
                self.outcome.skipped.append(target.relative_path)
            else:
                self._update_this(target)
        return [t.relative_path for t in targets]

    def _update_this(self, result: ReconciliationResult) -> None:
        path = result.relative_path
        if result.status == EntryStatus.MISSING:
            logger.info(f"Removing {path} from catalog")
            self.catalog.remove_entry(path)
            self.outcome.removed.append(path)
            return

        if result.live_digest is None:
            logger.warning(f"Cannot update {path}: {result.error or 'no digest available'}")
            self.outcome.unresolvable.append(path)
            return

        if result.status == EntryStatus.UNKNOWN:
            logger.info(f"Adding {path} to catalog")
            self.catalog.update_entry(path, result.live_digest)
            self.outcome.inserted.append(path)
        else:
            logger.info(f"Updating {path} in catalog")
            self.catalog.update_entry(path, result.live_digest)
            self.outcome.updated.append(path)

    def run(self, decide: DecisionSource) -> UpdateOutcome:
        """Ask ``decide`` about each pending result until everything is resolved."""
        while (result := self.next_pending()) is not None:
            self.apply(result, decide(result))
        return self.outcome


class AppendMachine(UpdateMachine):
    """
    Restricted machine for append: visits UNKNOWN results only and only ever
    inserts. Existing catalog entries are never touched.
    """

    def _visits(self, result: ReconciliationResult) -> bool:
        return result.status == EntryStatus.UNKNOWN

    def _update_this(self, result: ReconciliationResult) -> None:
        if result.relative_path in self.catalog:
            raise AppendViolationError(
                f"Refusing to modify existing catalog entry {result.relative_path}"
            )
        super()._update_this(result)

    def run(self, decide: DecisionSource = confirm_all) -> UpdateOutcome:
        return super().run(decide)
