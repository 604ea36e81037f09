from .scanner import TreeScanner
from .reconcile import ReconciliationEngine
from .utils import EntryStatus, ReconciliationReport, ReconciliationResult

__all__ = [
    "TreeScanner",
    "ReconciliationEngine",
    "EntryStatus",
    "ReconciliationReport",
    "ReconciliationResult",
]
