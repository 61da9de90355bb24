"""
Configuration Module
====================

Centralized configuration management using Pydantic Settings.
Loads from environment variables with type validation and defaults.

Usage:
    from shared.config import settings

    print(settings.environment)
    print(settings.ecfr.base_url)
    print(settings.mongodb.uri)
"""

from shared.config.settings import (
    EcfrSettings,
    Environment,
    LogLevel,
    MongoSettings,
    Settings,
    get_settings,
)


# Global settings instance (singleton)
settings = get_settings()

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "Environment",
    "LogLevel",
    "EcfrSettings",
    "MongoSettings",
]
