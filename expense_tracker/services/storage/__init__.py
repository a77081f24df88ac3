"""
Storage Services Package

Provides the abstract storage interface and its two implementations:
a JSON document on disk and a SQL database. Which one is used is a
configuration choice (TRACKER_STORAGE_BACKEND).
"""

from typing import Optional

from expense_tracker.config import StorageSettings, get_settings
from expense_tracker.services.storage.interface import (
    ConflictError,
    NotFoundError,
    StorageError,
    TrackerStorageInterface,
)
from expense_tracker.services.storage.json_file import JsonFileTrackerStorage
from expense_tracker.services.storage.sql import SqlTrackerStorage


def create_storage(
    settings: Optional[StorageSettings] = None,
) -> TrackerStorageInterface:
    """Build the storage backend selected by configuration."""
    settings = settings or get_settings().storage

    if settings.backend == "sql":
        return SqlTrackerStorage(settings.database_url, echo=settings.echo_sql)
    return JsonFileTrackerStorage(settings.data_file)


__all__ = [
    # Interface
    "TrackerStorageInterface",
    # Exceptions
    "ConflictError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "JsonFileTrackerStorage",
    "SqlTrackerStorage",
    "create_storage",
]
