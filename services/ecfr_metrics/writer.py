"""
Snapshot Writer
===============

Persists one immutable snapshot per unit per run. Always inserts: identical
snapshots from repeated runs accumulate, each being an independent
observation.

Version: 0.1.0
"""

from services.ecfr_metrics.errors import PersistenceError
from services.ecfr_metrics.store import SnapshotStore
from shared.logging import get_logger
from shared.models.snapshot import Snapshot


logger = get_logger(__name__)


class SnapshotWriter:
    """Writes snapshots to an injected store."""

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store

    async def write(self, snapshot: Snapshot) -> Snapshot:
        """
        Insert a snapshot.

        Args:
            snapshot: Snapshot without a storage identifier

        Returns:
            The persisted snapshot, carrying its storage identifier

        Raises:
            PersistenceError: The store is unavailable or rejected the write
        """
        if snapshot.id is not None:
            raise PersistenceError(
                f"Snapshot {snapshot.id} is already persisted; snapshots are never rewritten",
                unit_id=snapshot.unit_id,
            )

        snapshot_id = await self.store.insert(snapshot)

        logger.debug(
            "snapshot_written",
            unit_id=snapshot.unit_id,
            snapshot_id=snapshot_id,
            as_of_date=snapshot.as_of_date.isoformat(),
        )

        return snapshot.model_copy(update={"id": snapshot_id})
