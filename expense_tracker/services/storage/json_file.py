"""
JSON File Storage Implementation

The whole dataset lives in one JSON document:

    {"users": [...], "trackers": [...], "expenses": [...]}

It is read once when the storage is constructed, kept in memory, and
rewritten in full after every mutation (write-through).

TRADEOFFS:
- Every write costs a full serialization (fine for personal use)
- One process only; two processes on the same file will lose updates

GUARANTEES:
- The file is replaced atomically (temp file + os.replace), so a crash
  mid-write leaves the previous consistent document in place
- A mutation becomes visible in memory only after its flush succeeded,
  so a failed cascade delete leaves both the tracker and its expenses
- All access goes through one lock; critical sections never await, so
  the lock serves threads and coroutines alike
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from expense_tracker.models.expense import (
    Expense,
    ExpenseCreate,
    Tracker,
    TrackerCreate,
    User,
    UserCreate,
)
from expense_tracker.services.storage.interface import (
    ConflictError,
    NotFoundError,
    StorageError,
    TrackerStorageInterface,
)


logger = structlog.get_logger(__name__)


class JsonFileTrackerStorage(TrackerStorageInterface):
    """
    JSON document implementation of tracker storage.

    Records are held as frozen models, so lists handed to callers can
    never be used to modify the dataset behind the lock.
    """

    def __init__(self, data_file: Union[str, Path]):
        self._path = Path(data_file)
        self._lock = threading.RLock()
        self._users, self._trackers, self._expenses = self._load()
        logger.info(
            "json_storage_loaded",
            path=str(self._path),
            users=len(self._users),
            trackers=len(self._trackers),
            expenses=len(self._expenses),
        )

    @property
    def path(self) -> Path:
        return self._path

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load(self) -> tuple[list[User], list[Tracker], list[Expense]]:
        """Read the document, or start empty if there is none yet."""
        if not self._path.exists():
            return [], [], []

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read data file {self._path}: {e}") from e

        if not isinstance(document, dict):
            raise StorageError(f"Data file {self._path} is not a JSON object")

        for section in ("users", "trackers", "expenses"):
            if not isinstance(document.get(section, []), list):
                raise StorageError(f"Data file {self._path}: \"{section}\" is not a list")

        try:
            users = [User.model_validate(r) for r in document.get("users", [])]
            trackers = [Tracker.model_validate(r) for r in document.get("trackers", [])]
            expenses = [Expense.model_validate(r) for r in document.get("expenses", [])]
        except PydanticValidationError as e:
            raise StorageError(f"Data file {self._path} holds malformed records: {e}") from e

        return users, trackers, expenses

    def _flush(
        self,
        users: list[User],
        trackers: list[Tracker],
        expenses: list[Expense],
    ) -> None:
        """Serialize a complete image and atomically replace the data file."""
        document = {
            "users": [u.to_record() for u in users],
            "trackers": [t.to_record() for t in trackers],
            "expenses": [e.to_record() for e in expenses],
        }

        directory = self._path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump(document, tmp, indent=2, ensure_ascii=False)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("json_storage_flush_failed", path=str(self._path), error=str(e))
            raise StorageError(f"Failed to write data file {self._path}: {e}") from e

    def _commit(
        self,
        users: list[User],
        trackers: list[Tracker],
        expenses: list[Expense],
    ) -> None:
        """Flush the next image, then make it the current one."""
        self._flush(users, trackers, expenses)
        self._users, self._trackers, self._expenses = users, trackers, expenses

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def get_user_by_pin(self, pin: str) -> Optional[User]:
        with self._lock:
            return next((u for u in self._users if u.pin == pin), None)

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            return next((u for u in self._users if u.id == user_id), None)

    async def create_user(self, data: UserCreate) -> User:
        # Check and insert happen under one lock acquisition
        with self._lock:
            if any(u.pin == data.pin for u in self._users):
                raise ConflictError("This PIN is already in use")

            user = User(pin=data.pin, preferred_currency=data.preferred_currency)
            self._commit(self._users + [user], self._trackers, self._expenses)
            return user

    # -------------------------------------------------------------------------
    # Trackers
    # -------------------------------------------------------------------------

    async def get_trackers_by_user_id(self, user_id: str) -> list[Tracker]:
        with self._lock:
            owned = [t for t in self._trackers if t.user_id == user_id]
        # reversed() + stable sort keeps later inserts first on equal timestamps
        return sorted(reversed(owned), key=lambda t: t.created_at, reverse=True)

    async def get_tracker_by_id(self, tracker_id: str) -> Optional[Tracker]:
        with self._lock:
            return next((t for t in self._trackers if t.id == tracker_id), None)

    async def create_tracker(self, user_id: str, data: TrackerCreate) -> Tracker:
        with self._lock:
            if not any(u.id == user_id for u in self._users):
                raise NotFoundError(f"User not found: {user_id}")

            tracker = Tracker(user_id=user_id, name=data.name, currency=data.currency)
            self._commit(self._users, self._trackers + [tracker], self._expenses)
            return tracker

    async def delete_tracker(self, tracker_id: str) -> bool:
        with self._lock:
            remaining = [t for t in self._trackers if t.id != tracker_id]
            if len(remaining) == len(self._trackers):
                return False

            kept_expenses = [e for e in self._expenses if e.tracker_id != tracker_id]
            removed = len(self._expenses) - len(kept_expenses)
            self._commit(self._users, remaining, kept_expenses)

            logger.info(
                "tracker_cascade_deleted",
                tracker_id=tracker_id,
                removed_expenses=removed,
            )
            return True

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def get_expenses_by_tracker_id(self, tracker_id: str) -> list[Expense]:
        with self._lock:
            matching = [e for e in self._expenses if e.tracker_id == tracker_id]
        return sorted(
            reversed(matching),
            key=lambda e: (e.date, e.created_at),
            reverse=True,
        )

    async def get_expense_by_id(self, expense_id: str) -> Optional[Expense]:
        with self._lock:
            return next((e for e in self._expenses if e.id == expense_id), None)

    async def create_expense(self, data: ExpenseCreate) -> Expense:
        with self._lock:
            if not any(t.id == data.tracker_id for t in self._trackers):
                raise NotFoundError(f"Tracker not found: {data.tracker_id}")

            expense = Expense(
                tracker_id=data.tracker_id,
                amount=data.amount,
                category=data.category,
                description=data.description,
                date=data.date,
            )
            self._commit(self._users, self._trackers, self._expenses + [expense])
            return expense

    async def delete_expense(self, expense_id: str) -> bool:
        with self._lock:
            remaining = [e for e in self._expenses if e.id != expense_id]
            if len(remaining) == len(self._expenses):
                return False

            self._commit(self._users, self._trackers, remaining)
            return True
