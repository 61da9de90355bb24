"""
eCFR Metrics Ingestion Service
==============================

Periodically retrieves every CFR title from the eCFR versioner API, reduces
each title to integrity and complexity metrics, and appends one immutable
snapshot per title per run to MongoDB.

Pipeline:
    catalog → fetch → extract → compute → write

Version: 0.1.0
"""

__version__ = "0.1.0"
