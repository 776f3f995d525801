"""
Startup Reconciler

Runs once before the API serves traffic:

1. Load the solid mirror file
2. Purge every non-solid record from the store
3. Restore mirrored snapshots whose id is missing from the store

Re-running against an unchanged file and store is a no-op.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging

from .contracts.base import Matter, MatterError
from .storage import MatterStore
from .storage.solid_mirror import SolidMirrorFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationReport:
    """Outcome of a reconciliation pass."""
    purged: int = 0
    restored: int = 0
    skipped: int = 0


class StartupReconciler:
    """Brings the store in line with the solid mirror file."""

    def __init__(self, store: MatterStore, mirror: SolidMirrorFile):
        self._store = store
        self._mirror = mirror

    def run(self) -> ReconciliationReport:
        snapshots = self._mirror.load()
        purged = self._store.delete_non_solid()

        restored = 0
        skipped = 0
        for snapshot in snapshots:
            try:
                matter = Matter.from_document(snapshot)
            except MatterError as e:
                logger.warning("Skipping unreadable solid snapshot %r: %s", snapshot, e)
                skipped += 1
                continue

            if self._store.exists(matter.id):
                continue

            try:
                self._store.insert(matter)
            except MatterError as e:
                logger.warning("Could not restore matter %s: %s", matter.id, e)
                skipped += 1
                continue
            restored += 1

        report = ReconciliationReport(purged=purged, restored=restored, skipped=skipped)
        logger.info(
            "Reconciled store: purged %d non-solid, restored %d solid, skipped %d",
            report.purged, report.restored, report.skipped,
        )
        return report
