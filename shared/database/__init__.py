"""
Database Module
===============

Async MongoDB client for the snapshot store (motor).

Usage:
    from shared.database import MongoDBClient

    collection = MongoDBClient.get_snapshot_collection()
    await collection.insert_one({...})
"""

from shared.database.mongodb import MongoDBClient


__all__ = [
    "MongoDBClient",
]
