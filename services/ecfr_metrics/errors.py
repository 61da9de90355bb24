"""
Ingestion Errors
================

Exception taxonomy for the ingestion pipeline. Every per-unit failure is one
of these, so the orchestrator can record the reason class in the run report.

Version: 0.1.0
"""


class IngestionError(Exception):
    """Base class for ingestion pipeline errors."""

    def __init__(self, message: str, unit_id: str | None = None) -> None:
        super().__init__(message)
        self.unit_id = unit_id

    @property
    def reason(self) -> str:
        """Reason class reported for the failed unit."""
        return type(self).__name__


class CatalogUnavailable(IngestionError):
    """The catalog index could not be retrieved or does not list the unit."""


class FetchFailed(IngestionError):
    """A unit document could not be retrieved for the requested date."""

    def __init__(self, unit_id: str, cause: str) -> None:
        super().__init__(f"Fetch failed for unit {unit_id}: {cause}", unit_id=unit_id)
        self.cause = cause


class MalformedDocument(IngestionError):
    """The raw document is not recognizable as XML, even by the recovering parser."""


class PersistenceError(IngestionError):
    """The snapshot store rejected or could not accept a write."""
