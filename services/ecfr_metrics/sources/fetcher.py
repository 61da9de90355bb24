"""
eCFR Unit Fetcher
=================

Retrieves the full XML of one CFR title at an exact as-of date from
`/api/versioner/v1/full/{date}/title-{n}.xml`.

The requested date is always the one supplied by the caller, never "latest",
so a snapshot can be reproduced for its date. Fetches are not retried.

Version: 0.1.0
"""

from datetime import date

import httpx

from services.ecfr_metrics.errors import FetchFailed
from services.ecfr_metrics.sources.base import PublisherClient
from shared.logging import get_logger


logger = get_logger(__name__)


def document_path(unit_id: str, as_of_date: date) -> str:
    """Versioner path of a title's full XML at a date."""
    return f"full/{as_of_date.isoformat()}/title-{unit_id}.xml"


class UnitFetcher:
    """Fetches raw unit documents from the publisher."""

    def __init__(self, http: PublisherClient) -> None:
        self.http = http

    async def fetch(self, unit_id: str, as_of_date: date) -> bytes:
        """
        Fetch the raw XML document for a unit at a date.

        Args:
            unit_id: Unit identifier (title number as a string)
            as_of_date: Exact version date to request

        Returns:
            Raw document bytes

        Raises:
            FetchFailed: Network error, timeout, non-success status or empty body
        """
        path = document_path(unit_id, as_of_date)

        try:
            response = await self.http.get(path)
        except httpx.HTTPStatusError as e:
            raise FetchFailed(unit_id, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchFailed(unit_id, f"{type(e).__name__}: {e}") from e

        body = response.content
        if not body.strip():
            raise FetchFailed(unit_id, "empty response body")

        logger.info(
            "unit_document_fetched",
            unit_id=unit_id,
            as_of_date=as_of_date.isoformat(),
            bytes=len(body),
        )

        return body
