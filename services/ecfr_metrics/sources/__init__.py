"""
Publisher Sources
=================

Clients for the eCFR versioner API.

- PublisherClient: pooled HTTP client with concurrency cap and timeouts
- CatalogClient: unit list and current version markers (titles.json)
- UnitFetcher: full title XML at an exact as-of date

Version: 0.1.0
"""

from services.ecfr_metrics.sources.base import PublisherClient, SourceConfig
from services.ecfr_metrics.sources.catalog import (
    CatalogClient,
    CatalogIndex,
    Unit,
    VersionMarker,
)
from services.ecfr_metrics.sources.fetcher import UnitFetcher

__all__ = [
    # Base
    "PublisherClient",
    "SourceConfig",
    # Catalog
    "CatalogClient",
    "CatalogIndex",
    "Unit",
    "VersionMarker",
    # Fetcher
    "UnitFetcher",
]
