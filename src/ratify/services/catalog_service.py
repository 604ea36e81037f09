"""Service for signing, verifying and repairing catalogs."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Union

from loguru import logger

from ratify.algorithms import DigestAlgorithm
from ratify.catalog import Catalog, CatalogLocation
from ratify.config import RatifyConfig
from ratify.services.exceptions import AlgorithmDetectionError, CatalogExistsError, IoError
from ratify.services.update_machine import (
    AppendMachine,
    DecisionSource,
    UpdateMachine,
    UpdateOutcome,
    confirm_all,
)
from ratify.sync.reconcile import ProgressCallback, ReconciliationEngine
from ratify.sync.scanner import TreeScanner
from ratify.sync.utils import ReconciliationReport

PathLike = Union[str, Path]

# Called with the planned outcome before anything is written; False aborts
ConfirmCallback = Callable[[UpdateOutcome], bool]


@dataclass
class SignResult:
    """A freshly written catalog and the paths that could not be signed."""

    catalog: Catalog
    path: Path
    errors: List[IoError] = field(default_factory=list)


@dataclass
class PendingUpdate:
    """A loaded catalog and its reconciliation, waiting for decisions."""

    location: CatalogLocation
    catalog: Catalog
    report: ReconciliationReport


class CatalogService:
    """
    Runs catalog operations for one configuration.

    Every operation loads (or creates) the catalog, works on it in memory and
    writes it back atomically at the very end. If anything raises before that,
    the catalog file on disk is left as it was.
    """

    def __init__(self, config: RatifyConfig, engine: Optional[ReconciliationEngine] = None):
        self.config = config
        self.engine = engine or ReconciliationEngine(
            TreeScanner(
                follow_symlinks=config.follow_symlinks,
                include_hidden=config.include_hidden,
            ),
            worker_pool_size=config.worker_pool_size,
        )

    def location(self, root: PathLike, catalog_file: Optional[PathLike] = None) -> CatalogLocation:
        return CatalogLocation(root, catalog_file or self.config.catalog_file)

    async def sign(
        self,
        root: PathLike,
        algorithm: Optional[DigestAlgorithm] = None,
        catalog_file: Optional[PathLike] = None,
        overwrite: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SignResult:
        """
        Build a new catalog for every file under ``root``.

        Raises:
            AlgorithmDetectionError: If no algorithm is given or configured
            CatalogExistsError: If the catalog exists and overwrite is False
        """
        algorithm = algorithm or self.config.default_sign_algo
        if algorithm is None:
            raise AlgorithmDetectionError(
                "No algorithm specified. Use --algo or set default_sign_algo in the config file"
            )
        location = self.location(root, catalog_file)
        catalog_path = location.catalog_path(algorithm)
        # fail before hashing anything
        if catalog_path.exists() and not overwrite:
            raise CatalogExistsError(catalog_path)

        logger.info(f"Signing {location.root} with {algorithm}")
        catalog = location.empty_catalog(algorithm)
        report = await self.engine.reconcile(
            catalog,
            location.root,
            exclude=location.excluded_paths(algorithm),
            on_progress=on_progress,
        )
        UpdateMachine(catalog, report.results).run(confirm_all)
        if report.errors:
            logger.warning(f"{len(report.errors)} paths could not be read and were not signed")

        path = await location.write(catalog, overwrite=overwrite)
        return SignResult(catalog=catalog, path=path, errors=report.errors)

    async def test(
        self,
        root: PathLike,
        algorithm: Optional[DigestAlgorithm] = None,
        catalog_file: Optional[PathLike] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ReconciliationReport:
        """Verify ``root`` against its catalog."""
        location = self.location(root, catalog_file)
        catalog = location.load(algorithm)
        logger.info(f"Verifying {len(catalog)} catalog entries under {location.root}")
        return await self.engine.reconcile(
            catalog,
            location.root,
            exclude=location.excluded_paths(catalog.algorithm),
            on_progress=on_progress,
        )

    async def append(
        self,
        root: PathLike,
        catalog_file: Optional[PathLike] = None,
        algorithm: Optional[DigestAlgorithm] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UpdateOutcome:
        """Add entries for files not yet in the catalog. Existing entries are untouched."""
        location = self.location(root, catalog_file)
        catalog = location.load(algorithm)
        report = await self.engine.find_unknown(
            catalog,
            location.root,
            exclude=location.excluded_paths(catalog.algorithm),
            on_progress=on_progress,
        )
        outcome = AppendMachine(catalog, report.results).run()
        outcome.errors = list(report.errors)
        if outcome.errors:
            logger.warning(f"{len(outcome.errors)} paths could not be read and were not appended")
        if outcome.changed:
            await location.write(catalog, overwrite=True)
            outcome.written = True
        else:
            logger.info("No new files to append")
        return outcome

    async def update(
        self,
        root: PathLike,
        decide: DecisionSource = confirm_all,
        algorithm: Optional[DigestAlgorithm] = None,
        catalog_file: Optional[PathLike] = None,
        confirm: Optional[ConfirmCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UpdateOutcome:
        """
        Reconcile, then let ``decide`` repair the catalog path by path.

        Args:
            root: Signing root
            decide: Decision source consulted for each pending result
            algorithm: Explicit algorithm, deduced when None
            catalog_file: Catalog file override
            confirm: Asked once with the planned outcome; returning False discards it
            on_progress: Hashing progress callback

        Returns:
            The outcome; ``written`` is False when nothing changed or confirm refused
        """
        pending = await self.prepare_update(
            root, algorithm=algorithm, catalog_file=catalog_file, on_progress=on_progress
        )
        outcome = self.plan_updates(pending, decide)
        if outcome.changed and confirm is not None and not confirm(outcome):
            logger.info("Update cancelled, catalog left unchanged")
            return outcome
        return await self.write_updates(pending, outcome)

    async def prepare_update(
        self,
        root: PathLike,
        algorithm: Optional[DigestAlgorithm] = None,
        catalog_file: Optional[PathLike] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PendingUpdate:
        """Load and reconcile, the first step of update. Nothing is written."""
        location = self.location(root, catalog_file)
        catalog = location.load(algorithm)
        report = await self.engine.reconcile(
            catalog,
            location.root,
            exclude=location.excluded_paths(catalog.algorithm),
            on_progress=on_progress,
        )
        return PendingUpdate(location=location, catalog=catalog, report=report)

    def plan_updates(
        self, pending: PendingUpdate, decide: DecisionSource = confirm_all
    ) -> UpdateOutcome:
        """Run the decision loop over a prepared update.

        Only the in-memory catalog changes, so ``decide`` may block on user input.
        """
        outcome = UpdateMachine(pending.catalog, pending.report.results).run(decide)
        outcome.errors = list(pending.report.errors)
        return outcome

    async def write_updates(self, pending: PendingUpdate, outcome: UpdateOutcome) -> UpdateOutcome:
        """Write the planned catalog back, if anything changed."""
        if not outcome.changed:
            logger.info("Nothing to update")
            return outcome
        await pending.location.write(pending.catalog, overwrite=True)
        outcome.written = True
        return outcome
