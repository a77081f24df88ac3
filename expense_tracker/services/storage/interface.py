"""
Abstract Storage Interface

DESIGN DECISION: We define one abstract interface for every storage
operation. Two backends implement it:
1. A JSON document held in memory and rewritten on every mutation
2. A relational database through SQLAlchemy

Both must be indistinguishable to callers. The shared test suite runs
against each of them.

Contract highlights:
- Lookups return None for missing records, never raise
- Deletions return False when there was nothing to delete
- Deleting a tracker removes its expenses in the same logical step
- Inputs are already validated; storage does not re-check field shapes
"""

from abc import ABC, abstractmethod
from typing import Optional

from expense_tracker.models.expense import (
    Expense,
    ExpenseCreate,
    Tracker,
    TrackerCreate,
    User,
    UserCreate,
)


class TrackerStorageInterface(ABC):
    """
    Abstract interface for user, tracker and expense storage.

    Any storage implementation (JSON file, SQLite, PostgreSQL, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_user_by_pin(self, pin: str) -> Optional[User]:
        """
        Look up a user by PIN.

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Look up a user by id. None if absent."""
        pass

    @abstractmethod
    async def create_user(self, data: UserCreate) -> User:
        """
        Register a new user with a freshly generated id.

        Raises:
            ConflictError: If the PIN is already in use
            StorageError: If the write fails
        """
        pass

    # -------------------------------------------------------------------------
    # Trackers
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_trackers_by_user_id(self, user_id: str) -> list[Tracker]:
        """
        All trackers owned by a user, newest created_at first.
        """
        pass

    @abstractmethod
    async def get_tracker_by_id(self, tracker_id: str) -> Optional[Tracker]:
        """Look up a tracker by id. None if absent."""
        pass

    @abstractmethod
    async def create_tracker(self, user_id: str, data: TrackerCreate) -> Tracker:
        """
        Create a tracker owned by `user_id`.

        Raises:
            NotFoundError: If the owning user does not exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_tracker(self, tracker_id: str) -> bool:
        """
        Delete a tracker and every expense recorded against it.

        Either both the tracker and its expenses are gone afterwards,
        or neither is.

        Returns:
            True if the tracker existed and was removed, False otherwise
        """
        pass

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_expenses_by_tracker_id(self, tracker_id: str) -> list[Expense]:
        """
        All expenses of a tracker, latest date first.

        Expenses on the same date are ordered newest created_at first.
        """
        pass

    @abstractmethod
    async def get_expense_by_id(self, expense_id: str) -> Optional[Expense]:
        """Look up an expense by id. None if absent."""
        pass

    @abstractmethod
    async def create_expense(self, data: ExpenseCreate) -> Expense:
        """
        Record a new expense.

        Raises:
            NotFoundError: If the tracker does not exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: str) -> bool:
        """
        Delete a single expense.

        Returns:
            True if the expense existed and was removed, False otherwise
        """
        pass

    def close(self) -> None:
        """Release backend resources. Safe to call more than once."""


class StorageError(Exception):
    """Base exception for storage operations (I/O or backend failure)."""
    pass


class NotFoundError(StorageError):
    """Operation targets a user, tracker or expense that does not exist."""
    pass


class ConflictError(StorageError):
    """Attempted to register a PIN that is already in use."""
    pass
