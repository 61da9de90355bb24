"""
eCFR Metrics - Command Line
===========================

Entry point for ingestion runs and operator queries.

Usage:
    python -m services.ecfr_metrics run
    python -m services.ecfr_metrics run --only 7 40
    python -m services.ecfr_metrics schedule --interval-hours 24
    python -m services.ecfr_metrics init-db
    python -m services.ecfr_metrics health
    python -m services.ecfr_metrics units
    python -m services.ecfr_metrics latest 40
    python -m services.ecfr_metrics history 40 --start 2024-01-01

Exit codes:
    0  run completed, every unit succeeded
    1  run completed, some units failed
    2  catalog unavailable, nothing was ingested

Version: 0.1.0
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from datetime import date

from services.ecfr_metrics.errors import CatalogUnavailable, PersistenceError
from services.ecfr_metrics.orchestrator import IngestionOrchestrator, RunReport
from services.ecfr_metrics.sources import (
    CatalogClient,
    PublisherClient,
    SourceConfig,
    UnitFetcher,
)
from services.ecfr_metrics.store import MongoSnapshotStore
from services.ecfr_metrics.writer import SnapshotWriter
from shared.config import settings
from shared.database import MongoDBClient
from shared.logging import clear_context, get_logger, setup_logging
from shared.models import HealthResponse, MetricsSummary


logger = get_logger(__name__)

EXIT_OK = 0
EXIT_UNITS_FAILED = 1
EXIT_CATALOG_UNAVAILABLE = 2


def _store() -> MongoSnapshotStore:
    return MongoSnapshotStore(MongoDBClient.get_snapshot_collection())


async def run_once(only: set[str] | None = None) -> RunReport:
    """Run one ingestion pass over the catalog."""
    writer = SnapshotWriter(_store())

    async with PublisherClient(SourceConfig.from_settings()) as http:
        orchestrator = IngestionOrchestrator(
            catalog=CatalogClient(http),
            fetcher=UnitFetcher(http),
            writer=writer,
            max_concurrency=settings.ecfr.max_concurrency,
        )
        try:
            return await orchestrator.run_all(only=only)
        finally:
            clear_context()


async def run_command(args: argparse.Namespace) -> int:
    only = set(args.only) if args.only else None

    try:
        report = await run_once(only=only)
    except CatalogUnavailable as e:
        logger.error("run_aborted", reason=e.reason, error=str(e))
        return EXIT_CATALOG_UNAVAILABLE

    print(json.dumps(report.to_dict(), indent=2))
    return EXIT_UNITS_FAILED if report.failed else EXIT_OK


async def schedule_command(args: argparse.Namespace) -> int:
    """Repeat ingestion runs until cancelled."""
    interval_hours = args.interval_hours or settings.ecfr.schedule_interval_hours
    logger.info("scheduler_started", interval_hours=interval_hours)

    while True:
        try:
            report = await run_once()
            logger.info(
                "scheduled_run_finished",
                succeeded=len(report.succeeded),
                failed=len(report.failed),
            )
        except CatalogUnavailable as e:
            logger.error("scheduled_run_aborted", reason=e.reason, error=str(e))

        await asyncio.sleep(interval_hours * 3600)


async def init_db_command(args: argparse.Namespace) -> int:
    await MongoDBClient.create_indexes()
    return EXIT_OK


async def health_command(args: argparse.Namespace) -> int:
    mongo_health = await MongoDBClient.health_check()
    health = HealthResponse(
        status="healthy" if mongo_health.get("status") == "healthy" else "degraded",
        service="ecfr-metrics",
        version="0.1.0",
        components={"mongodb": mongo_health},
    )
    print(health.model_dump_json(indent=2))
    return EXIT_OK if health.is_healthy else EXIT_UNITS_FAILED


async def units_command(args: argparse.Namespace) -> int:
    print(json.dumps(await _store().unit_ids(), indent=2))
    return EXIT_OK


async def latest_command(args: argparse.Namespace) -> int:
    snapshot = await _store().latest(args.unit_id)
    if snapshot is None:
        logger.error("unit_not_found", unit_id=args.unit_id)
        return EXIT_UNITS_FAILED

    print(MetricsSummary.from_snapshot(snapshot).model_dump_json(indent=2))
    return EXIT_OK


async def history_command(args: argparse.Namespace) -> int:
    points = await _store().history(args.unit_id, start=args.start, end=args.end)
    print(json.dumps([p.model_dump(mode="json") for p in points], indent=2))
    return EXIT_OK


COMMANDS = {
    "run": run_command,
    "schedule": schedule_command,
    "init-db": init_db_command,
    "health": health_command,
    "units": units_command,
    "latest": latest_command,
    "history": history_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecfr-metrics",
        description="Ingest eCFR titles into metric snapshots",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one ingestion pass")
    run_parser.add_argument(
        "--only",
        nargs="+",
        metavar="UNIT_ID",
        help="Only ingest these title numbers",
    )

    schedule_parser = subparsers.add_parser("schedule", help="Run ingestion repeatedly")
    schedule_parser.add_argument(
        "--interval-hours",
        type=float,
        default=None,
        help="Hours between runs (default from ECFR_SCHEDULE_INTERVAL_HOURS)",
    )

    subparsers.add_parser("init-db", help="Create snapshot indexes")
    subparsers.add_parser("health", help="Check snapshot store health")
    subparsers.add_parser("units", help="List known unit ids")

    latest_parser = subparsers.add_parser("latest", help="Latest metrics for a unit")
    latest_parser.add_argument("unit_id")

    history_parser = subparsers.add_parser("history", help="Word-count history for a unit")
    history_parser.add_argument("unit_id")
    history_parser.add_argument("--start", type=date.fromisoformat, default=None)
    history_parser.add_argument("--end", type=date.fromisoformat, default=None)

    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    try:
        return await COMMANDS[args.command](args)
    except PersistenceError as e:
        logger.error("store_unavailable", error=str(e))
        return EXIT_UNITS_FAILED
    finally:
        await MongoDBClient.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(
        log_level=settings.log_level.value,
        json_logs=settings.is_production,
        service_name="ecfr-metrics",
    )

    try:
        return asyncio.run(_dispatch(args))
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
