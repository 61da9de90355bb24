"""
eCFR Catalog Client
===================

Resolves the ingestible units (CFR titles) and each title's current version
marker from the versioner index (`titles.json`).

Index shape:
    {
        "titles": [
            {"number": 1, "name": "General Provisions",
             "up_to_date_as_of": "2024-05-01", "reserved": false},
            ...
        ],
        "meta": {"date": "2024-05-01", "import_in_progress": false}
    }

Version: 0.1.0
"""

from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from services.ecfr_metrics.errors import CatalogUnavailable
from services.ecfr_metrics.sources.base import PublisherClient
from shared.logging import get_logger


logger = get_logger(__name__)


INDEX_PATH = "titles.json"


@dataclass(frozen=True)
class Unit:
    """One ingestible CFR title."""

    unit_id: str
    display_name: str
    number: int


@dataclass(frozen=True)
class VersionMarker:
    """Publisher's "as of" declaration for a unit."""

    unit_id: str
    as_of_date: date
    import_in_progress: bool = False


@dataclass
class CatalogIndex:
    """Parsed catalog index."""

    titles: dict[str, dict[str, Any]]
    import_in_progress: bool = False


def _is_transient(exc: BaseException) -> bool:
    """Connect errors, timeouts, throttling and server errors are worth retrying."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


class CatalogClient:
    """
    Client for the eCFR catalog index.

    The index is cached after each fetch so that `current_version` does not
    re-download it for every unit of a run. `list_units` always refreshes.
    """

    def __init__(self, http: PublisherClient) -> None:
        self.http = http
        self._index: CatalogIndex | None = None

    async def _fetch_index(self) -> CatalogIndex:
        """Download and parse the index, retrying transient failures."""
        config = self.http.config

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_transient),
                stop=stop_after_attempt(config.retry_count),
                wait=wait_exponential(multiplier=config.retry_delay_seconds, max=60),
                before_sleep=lambda retry_state: logger.warning(
                    "catalog_retry",
                    attempt=retry_state.attempt_number,
                    error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
                ),
                reraise=True,
            ):
                with attempt:
                    response = await self.http.get(INDEX_PATH)
            data = response.json()
        except httpx.HTTPError as e:
            raise CatalogUnavailable(f"Catalog index request failed: {e}") from e
        except ValueError as e:
            raise CatalogUnavailable(f"Catalog index is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("titles"), list):
            raise CatalogUnavailable("Catalog index has no titles list")

        titles: dict[str, dict[str, Any]] = {}
        for entry in data["titles"]:
            if not isinstance(entry, dict) or entry.get("number") is None:
                continue
            titles[str(entry["number"])] = entry

        meta = data.get("meta") or {}
        index = CatalogIndex(
            titles=titles,
            import_in_progress=bool(meta.get("import_in_progress", False)),
        )

        if index.import_in_progress:
            logger.warning(
                "catalog_import_in_progress",
                detail="publisher is republishing; data may be stale",
            )

        logger.info("catalog_index_fetched", titles=len(titles))
        return index

    async def get_index(self, refresh: bool = False) -> CatalogIndex:
        """Return the cached index, fetching it when absent or on refresh."""
        if self._index is None or refresh:
            self._index = await self._fetch_index()
        return self._index

    async def list_units(self) -> list[Unit]:
        """
        List every ingestible unit in catalog order.

        Reserved titles carry no text and are skipped.

        Raises:
            CatalogUnavailable: The index could not be retrieved
        """
        index = await self.get_index(refresh=True)
        units: list[Unit] = []

        for unit_id, entry in index.titles.items():
            if entry.get("reserved"):
                logger.debug("catalog_reserved_title_skipped", unit_id=unit_id)
                continue

            units.append(
                Unit(
                    unit_id=unit_id,
                    display_name=entry.get("name") or f"Title {unit_id}",
                    number=int(entry["number"]),
                )
            )

        return units

    async def current_version(self, unit_id: str) -> VersionMarker:
        """
        Resolve the current version marker for a unit.

        Args:
            unit_id: Unit identifier (title number as a string)

        Raises:
            CatalogUnavailable: Index unavailable, unit absent, or no date published
        """
        index = await self.get_index()

        entry = index.titles.get(unit_id)
        if entry is None:
            raise CatalogUnavailable(f"Title {unit_id} not found in catalog", unit_id=unit_id)

        raw_date = entry.get("up_to_date_as_of")
        if not raw_date:
            raise CatalogUnavailable(
                f"Title {unit_id} has no up_to_date_as_of date", unit_id=unit_id
            )

        try:
            as_of = date.fromisoformat(raw_date)
        except (TypeError, ValueError) as e:
            raise CatalogUnavailable(
                f"Title {unit_id} has invalid date {raw_date!r}", unit_id=unit_id
            ) from e

        return VersionMarker(
            unit_id=unit_id,
            as_of_date=as_of,
            import_in_progress=index.import_in_progress,
        )
