"""Services package."""

from expense_tracker.services.storage import (
    ConflictError,
    JsonFileTrackerStorage,
    NotFoundError,
    SqlTrackerStorage,
    StorageError,
    TrackerStorageInterface,
    create_storage,
)

__all__ = [
    "ConflictError",
    "JsonFileTrackerStorage",
    "NotFoundError",
    "SqlTrackerStorage",
    "StorageError",
    "TrackerStorageInterface",
    "create_storage",
]
