"""
Snapshot Store
==============

Append-only durable store for metric snapshots, plus the read-only queries
consumed by the presentation layer:

- unit_ids(): distinct unit identifiers
- latest(unit_id): most recently written snapshot
- history(unit_id, start, end): (as_of_date, word_count) ascending by date

Records are only ever inserted, so concurrent writers need no locking.

Version: 0.1.0
"""

from datetime import UTC, date, datetime, time
from typing import Any, Protocol

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from services.ecfr_metrics.errors import PersistenceError
from shared.logging import get_logger
from shared.models.snapshot import HistoryPoint, Snapshot


logger = get_logger(__name__)


class SnapshotStore(Protocol):
    """Protocol for snapshot storage backends."""

    async def insert(self, snapshot: Snapshot) -> str:
        """Insert a snapshot and return its storage identifier."""
        ...

    async def unit_ids(self) -> list[str]:
        """Distinct unit identifiers with at least one snapshot."""
        ...

    async def latest(self, unit_id: str) -> Snapshot | None:
        """Most recently written snapshot for a unit."""
        ...

    async def history(
        self,
        unit_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[HistoryPoint]:
        """Word-count time series for a unit, ascending by as-of date."""
        ...


def sort_unit_ids(unit_ids: list[str]) -> list[str]:
    """Sort title numbers numerically, anything else after them by name."""
    return sorted(unit_ids, key=lambda u: (0, int(u), "") if u.isdigit() else (1, 0, u))


def _as_datetime(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=UTC)


class MongoSnapshotStore:
    """
    MongoDB snapshot store.

    Wraps one motor collection; PyMongo failures surface as PersistenceError.
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:  # type: ignore[type-arg]
        self.collection = collection

    async def insert(self, snapshot: Snapshot) -> str:
        try:
            result = await self.collection.insert_one(snapshot.to_document())
        except PyMongoError as e:
            raise PersistenceError(
                f"Snapshot insert failed: {e}", unit_id=snapshot.unit_id
            ) from e

        return str(result.inserted_id)

    async def unit_ids(self) -> list[str]:
        try:
            values = await self.collection.distinct("unit_id")
        except PyMongoError as e:
            raise PersistenceError(f"Unit listing failed: {e}") from e

        return sort_unit_ids([str(v) for v in values])

    async def latest(self, unit_id: str) -> Snapshot | None:
        try:
            doc = await self.collection.find_one(
                {"unit_id": unit_id},
                sort=[("captured_at", DESCENDING), ("_id", DESCENDING)],
            )
        except PyMongoError as e:
            raise PersistenceError(f"Latest snapshot lookup failed: {e}", unit_id=unit_id) from e

        if doc is None:
            return None

        return Snapshot.from_document(doc)

    async def history(
        self,
        unit_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[HistoryPoint]:
        query: dict[str, Any] = {"unit_id": unit_id}

        date_range: dict[str, datetime] = {}
        if start:
            date_range["$gte"] = _as_datetime(start)
        if end:
            date_range["$lte"] = _as_datetime(end)
        if date_range:
            query["as_of_date"] = date_range

        cursor = self.collection.find(
            query,
            projection={"as_of_date": 1, "word_count": 1, "_id": 0},
        ).sort([("as_of_date", ASCENDING), ("captured_at", ASCENDING)])

        points: list[HistoryPoint] = []
        try:
            async for doc in cursor:
                as_of = doc["as_of_date"]
                points.append(
                    HistoryPoint(
                        as_of_date=as_of.date() if isinstance(as_of, datetime) else as_of,
                        word_count=doc["word_count"],
                    )
                )
        except PyMongoError as e:
            raise PersistenceError(f"History query failed: {e}", unit_id=unit_id) from e

        logger.debug("snapshot_history_read", unit_id=unit_id, points=len(points))

        return points
