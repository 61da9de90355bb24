"""
Ingestion Orchestrator
======================

Drives the per-unit pipeline across the whole catalog:

    PENDING → VERSIONED → FETCHED → EXTRACTED → COMPUTED → WRITTEN
                        ↘ FAILED(reason) at any stage

Units are processed by a bounded pool of worker tasks pulling from a queue.
A failure ends only that unit's pipeline and is recorded in the run report;
the run itself fails only when the catalog cannot list any unit.

Version: 0.1.0
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from services.ecfr_metrics.errors import IngestionError, MalformedDocument
from services.ecfr_metrics.extraction import ExtractionStatus, TextExtractor
from services.ecfr_metrics.metrics import compute
from services.ecfr_metrics.sources.catalog import CatalogClient, Unit
from services.ecfr_metrics.sources.fetcher import UnitFetcher
from services.ecfr_metrics.writer import SnapshotWriter
from shared.logging import bind_context, get_logger
from shared.models.snapshot import Snapshot


logger = get_logger(__name__)


class UnitStage(str, Enum):
    """Pipeline stage reached by a unit."""

    PENDING = "pending"
    VERSIONED = "versioned"
    FETCHED = "fetched"
    EXTRACTED = "extracted"
    COMPUTED = "computed"
    WRITTEN = "written"
    FAILED = "failed"


@dataclass
class UnitOutcome:
    """Terminal state of one unit's pipeline."""

    unit_id: str
    stage: UnitStage = UnitStage.PENDING

    # Stage at which a failure happened
    failed_at: UnitStage | None = None
    reason: str | None = None
    detail: str | None = None

    extraction: ExtractionStatus | None = None
    import_in_progress: bool = False
    snapshot: Snapshot | None = None

    @property
    def succeeded(self) -> bool:
        return self.stage == UnitStage.WRITTEN


@dataclass(frozen=True)
class FailedUnit:
    """A failed unit as reported to operators."""

    unit_id: str
    reason: str
    detail: str = ""
    stage: UnitStage | None = None


@dataclass
class RunReport:
    """Result of one ingestion run."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    succeeded: list[str] = field(default_factory=list)
    failed: list[FailedUnit] = field(default_factory=list)

    # Advisories
    degraded: list[str] = field(default_factory=list)
    import_in_progress: bool = False

    # Timing
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def failure_reasons(self) -> dict[str, int]:
        """Failure count per reason class."""
        counts: dict[str, int] = {}
        for failure in self.failed:
            counts[failure.reason] = counts.get(failure.reason, 0) + 1
        return counts

    def add(self, outcome: UnitOutcome) -> None:
        if outcome.succeeded:
            self.succeeded.append(outcome.unit_id)
            if outcome.extraction == ExtractionStatus.DEGRADED:
                self.degraded.append(outcome.unit_id)
        else:
            self.failed.append(
                FailedUnit(
                    unit_id=outcome.unit_id,
                    reason=outcome.reason or "Unknown",
                    detail=outcome.detail or "",
                    stage=outcome.failed_at,
                )
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "succeeded": list(self.succeeded),
            "failed": [
                {
                    "unit_id": f.unit_id,
                    "reason": f.reason,
                    "detail": f.detail,
                    "stage": f.stage.value if f.stage else None,
                }
                for f in self.failed
            ],
            "degraded": list(self.degraded),
            "import_in_progress": self.import_in_progress,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


class IngestionOrchestrator:
    """
    Runs the ingestion pipeline for every unit in the catalog.

    Features:
    - Bounded worker pool (max_concurrency)
    - Error isolation (one unit's failure doesn't stop others)
    - CPU-bound extraction and metrics off the event loop
    """

    def __init__(
        self,
        catalog: CatalogClient,
        fetcher: UnitFetcher,
        writer: SnapshotWriter,
        extractor: TextExtractor | None = None,
        max_concurrency: int = 4,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            catalog: Catalog client
            fetcher: Unit fetcher
            writer: Snapshot writer (owns the injected store)
            extractor: Text extractor
            max_concurrency: Number of concurrent unit pipelines
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.catalog = catalog
        self.fetcher = fetcher
        self.writer = writer
        self.extractor = extractor or TextExtractor()
        self.max_concurrency = max_concurrency

    async def run_all(self, only: set[str] | None = None) -> RunReport:
        """
        Ingest every unit in the catalog.

        Args:
            only: Restrict the run to these unit ids (e.g. a previous run's failures)

        Returns:
            RunReport with succeeded and failed units

        Raises:
            CatalogUnavailable: The unit list could not be retrieved
        """
        report = RunReport()
        bind_context(run_id=report.run_id)

        units = await self.catalog.list_units()
        if only is not None:
            units = [u for u in units if u.unit_id in only]

        logger.info(
            "run_started",
            units=len(units),
            max_concurrency=self.max_concurrency,
        )

        queue: asyncio.Queue[Unit] = asyncio.Queue()
        for unit in units:
            queue.put_nowait(unit)

        outcomes: list[UnitOutcome] = []
        workers = [
            asyncio.create_task(self._worker(queue, outcomes), name=f"ingest-worker-{i}")
            for i in range(min(self.max_concurrency, max(len(units), 1)))
        ]

        try:
            await asyncio.gather(*workers)
        except asyncio.CancelledError:
            for worker in workers:
                worker.cancel()
            logger.warning("run_cancelled", completed=len(outcomes), total=len(units))
            raise

        for outcome in outcomes:
            report.add(outcome)

        report.import_in_progress = any(o.import_in_progress for o in outcomes)
        report.completed_at = datetime.now(UTC)
        report.duration_seconds = (report.completed_at - report.started_at).total_seconds()

        logger.info(
            "run_completed",
            succeeded=len(report.succeeded),
            failed=len(report.failed),
            degraded=len(report.degraded),
            failure_reasons=report.failure_reasons,
            import_in_progress=report.import_in_progress,
            duration_seconds=round(report.duration_seconds, 2),
        )

        return report

    async def _worker(self, queue: "asyncio.Queue[Unit]", outcomes: list[UnitOutcome]) -> None:
        while True:
            try:
                unit = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            outcomes.append(await self.process_unit(unit))

    async def process_unit(self, unit: Unit) -> UnitOutcome:
        """
        Run one unit through the pipeline, converting any failure to an outcome.

        Args:
            unit: Unit to ingest

        Returns:
            UnitOutcome in state WRITTEN or FAILED
        """
        outcome = UnitOutcome(unit_id=unit.unit_id)

        try:
            marker = await self.catalog.current_version(unit.unit_id)
            outcome.import_in_progress = marker.import_in_progress
            outcome.stage = UnitStage.VERSIONED

            raw = await self.fetcher.fetch(unit.unit_id, marker.as_of_date)
            outcome.stage = UnitStage.FETCHED

            try:
                extraction = await asyncio.to_thread(self.extractor.extract, raw)
            except MalformedDocument:
                outcome.extraction = ExtractionStatus.UNPARSEABLE
                raise
            outcome.extraction = extraction.status
            outcome.stage = UnitStage.EXTRACTED

            metrics = await asyncio.to_thread(compute, extraction.text)
            outcome.stage = UnitStage.COMPUTED

            snapshot = Snapshot(
                unit_id=unit.unit_id,
                display_title=extraction.title or unit.display_name,
                as_of_date=marker.as_of_date,
                word_count=metrics.word_count,
                fingerprint=metrics.fingerprint,
                ref_density=metrics.ref_density,
                def_density=metrics.def_density,
                degraded=extraction.degraded,
            )
            outcome.snapshot = await self.writer.write(snapshot)
            outcome.stage = UnitStage.WRITTEN

        except Exception as e:
            outcome.failed_at = outcome.stage
            outcome.stage = UnitStage.FAILED
            outcome.reason = e.reason if isinstance(e, IngestionError) else type(e).__name__
            outcome.detail = str(e)

            if isinstance(e, IngestionError):
                logger.warning(
                    "unit_failed",
                    unit_id=unit.unit_id,
                    reason=outcome.reason,
                    failed_at=outcome.failed_at.value,
                    error=outcome.detail,
                )
            else:
                logger.exception(
                    "unit_failed_unexpectedly",
                    unit_id=unit.unit_id,
                    reason=outcome.reason,
                    failed_at=outcome.failed_at.value,
                )
            return outcome

        logger.info(
            "unit_ingested",
            unit_id=unit.unit_id,
            title=outcome.snapshot.display_title,
            as_of_date=marker.as_of_date.isoformat(),
            word_count=metrics.word_count,
            ref_density=round(metrics.ref_density, 2),
            def_density=round(metrics.def_density, 4),
            degraded=extraction.degraded,
        )

        return outcome
