"""
Snapshot Models
===============

Models for persisted metric snapshots and the read-side views over them.

Version: 0.1.0
"""

from datetime import UTC, date, datetime, time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Snapshot(BaseModel):
    """One immutable metrics record for one unit, captured by one run."""

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(default=None, description="Storage-assigned identifier")

    unit_id: str = Field(..., description="Unit identifier (CFR title number)")
    display_title: str
    as_of_date: date = Field(..., description="Publisher version marker at capture time")

    # Metrics
    word_count: int = Field(..., ge=0)
    fingerprint: str = Field(..., pattern=r"^[0-9a-f]{64}$", description="SHA-256 of normalized text")
    ref_density: float = Field(..., ge=0, description="Section references per 1,000 words")
    def_density: float = Field(..., ge=0, description="Quoted defined terms per word")

    # Set when extraction fell back to the raw document
    degraded: bool = False

    captured_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_document(self) -> dict[str, Any]:
        """Convert to a MongoDB document (BSON has no plain date type)."""
        return {
            "unit_id": self.unit_id,
            "display_title": self.display_title,
            "as_of_date": datetime.combine(self.as_of_date, time.min, tzinfo=UTC),
            "word_count": self.word_count,
            "fingerprint": self.fingerprint,
            "ref_density": self.ref_density,
            "def_density": self.def_density,
            "degraded": self.degraded,
            "captured_at": self.captured_at,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Snapshot":
        """Build a snapshot from a stored MongoDB document."""
        as_of = doc["as_of_date"]
        if isinstance(as_of, datetime):
            as_of = as_of.date()

        return cls(
            id=str(doc["_id"]) if doc.get("_id") is not None else None,
            unit_id=doc["unit_id"],
            display_title=doc.get("display_title", ""),
            as_of_date=as_of,
            word_count=doc["word_count"],
            fingerprint=doc["fingerprint"],
            ref_density=doc["ref_density"],
            def_density=doc["def_density"],
            degraded=doc.get("degraded", False),
            captured_at=doc["captured_at"],
        )


class MetricsSummary(BaseModel):
    """Latest metrics for one unit, as shown by the presentation layer."""

    unit_id: str
    word_count: int
    fingerprint: str
    ref_density: float
    def_density: float
    degraded: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "MetricsSummary":
        return cls(
            unit_id=snapshot.unit_id,
            word_count=snapshot.word_count,
            fingerprint=snapshot.fingerprint,
            ref_density=snapshot.ref_density,
            def_density=snapshot.def_density,
            degraded=snapshot.degraded,
        )


class HistoryPoint(BaseModel):
    """One point of a unit's word-count time series."""

    as_of_date: date
    word_count: int
