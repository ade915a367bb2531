"""Storage of Kindle library snapshots used as the diff baseline."""

from datetime import datetime
from typing import Optional

from ..config import get_config
from ..db.models import KindleSnapshot
from ..db.schemas import KindleBookSnapshot
from ..db.sqlite import Database
from ..logging_config import get_logger

logger = get_logger(__name__)


class SnapshotStore:
    """Append-only snapshot history with bounded retention."""

    def __init__(self, db: Database, retention: Optional[int] = None):
        self.db = db
        self.retention = retention if retention is not None else get_config().snapshot_retention

    def get_previous(self) -> Optional[list[KindleBookSnapshot]]:
        """Books of the most recent snapshot, or None if no sync has completed."""
        snapshot = self.db.get_latest_snapshot()
        if snapshot is None:
            return None
        return snapshot.get_books()

    def save(
        self, books: list[KindleBookSnapshot], snapshot_at: Optional[datetime] = None
    ) -> KindleSnapshot:
        """Append a snapshot, then drop all but the newest ``retention``."""
        with self.db.get_session() as session:
            snapshot = self.db.add_snapshot(books, snapshot_at=snapshot_at, session=session)
            pruned = self.db.prune_snapshots(self.retention, session=session)
            session.flush()
            session.expunge(snapshot)

        if pruned:
            logger.debug("Pruned old snapshots", pruned=pruned, kept=self.retention)
        return snapshot

    def count(self) -> int:
        return self.db.count_snapshots()
