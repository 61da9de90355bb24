"""
eCFR Metrics Services
=====================

Services built on the shared library.

Services:
- ecfr_metrics: eCFR title ingestion and metric snapshots
"""

__all__ = [
    "ecfr_metrics",
]
