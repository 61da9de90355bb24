"""
Shared Models
=============

Pydantic models shared across the ingestion service.

Models:
- Snapshot models (Snapshot, MetricsSummary, HistoryPoint)
- Health models (HealthResponse)
"""

from shared.models.common import HealthResponse
from shared.models.snapshot import HistoryPoint, MetricsSummary, Snapshot

__all__ = [
    # Snapshot
    "Snapshot",
    "MetricsSummary",
    "HistoryPoint",
    # Common
    "HealthResponse",
]
