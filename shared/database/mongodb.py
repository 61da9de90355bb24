"""
MongoDB Client
==============

Async MongoDB client using Motor for metric snapshots.

Version: 0.1.0
"""

import time
from typing import Any

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from shared.config import settings
from shared.logging import get_logger

logger = get_logger(__name__)


class MongoDBClient:
    """
    Async MongoDB client wrapper.

    Manages client lifecycle and provides database access.
    """

    _client: AsyncIOMotorClient | None = None  # type: ignore[type-arg]

    @classmethod
    def get_client(cls) -> AsyncIOMotorClient:  # type: ignore[type-arg]
        """Get or create the async client."""
        if cls._client is None:
            cls._client = AsyncIOMotorClient(
                settings.mongodb.uri,
                maxPoolSize=max(10, settings.ecfr.max_concurrency * 2),
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=5000,
                tz_aware=True,
            )
            logger.info(
                "mongodb_client_created",
                database=settings.mongodb.db,
            )
        return cls._client

    @classmethod
    def get_database(cls, name: str | None = None) -> AsyncIOMotorDatabase:  # type: ignore[type-arg]
        """
        Get a database instance.

        Args:
            name: Database name (default from settings)

        Returns:
            AsyncIOMotorDatabase instance
        """
        client = cls.get_client()
        db_name = name or settings.mongodb.db
        return client[db_name]

    @classmethod
    def get_snapshot_collection(cls) -> AsyncIOMotorCollection:  # type: ignore[type-arg]
        """Get the collection that holds metric snapshots."""
        return cls.get_database()[settings.mongodb.snapshot_collection]

    @classmethod
    async def close(cls) -> None:
        """Close the client and release all connections."""
        if cls._client is not None:
            cls._client.close()
            cls._client = None
            logger.info("mongodb_client_closed")

    @classmethod
    async def health_check(cls) -> dict[str, Any]:
        """
        Check database health.

        Returns:
            dict with status and server info
        """
        try:
            start = time.perf_counter()
            client = cls.get_client()
            result = await client.admin.command("ping")
            latency_ms = (time.perf_counter() - start) * 1000

            server_info = await client.server_info()

            return {
                "status": "healthy" if result.get("ok") == 1 else "unhealthy",
                "latency_ms": round(latency_ms, 2),
                "version": server_info.get("version", "unknown"),
            }
        except PyMongoError as e:
            logger.error("mongodb_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e),
            }

    @classmethod
    async def create_indexes(cls) -> None:
        """Create indexes for the snapshot collection."""
        collection = cls.get_snapshot_collection()

        await collection.create_index("unit_id")
        await collection.create_index([("unit_id", ASCENDING), ("captured_at", DESCENDING)])
        await collection.create_index([("unit_id", ASCENDING), ("as_of_date", ASCENDING)])

        logger.info(
            "mongodb_indexes_created",
            collection=settings.mongodb.snapshot_collection,
        )
