"""
Shared pytest fixtures for Expense Tracker tests.

Every storage test runs twice: once against the JSON file backend and
once against the SQL backend (SQLite file), so both are held to the
same contract.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from expense_tracker.models.expense import (
    Currency,
    ExpenseCreate,
    TrackerCreate,
    UserCreate,
)
from expense_tracker.services.storage import JsonFileTrackerStorage, SqlTrackerStorage


@pytest.fixture(params=["json", "sql"])
def backend(request):
    return request.param


@pytest.fixture
def open_storage(backend, tmp_path):
    """
    Factory opening a storage over the same underlying file.

    Calling it twice simulates a process restart.
    """
    opened = []

    def _open():
        if backend == "json":
            storage = JsonFileTrackerStorage(tmp_path / "data.json")
        else:
            storage = SqlTrackerStorage(f"sqlite:///{tmp_path / 'tracker.db'}")
        opened.append(storage)
        return storage

    yield _open

    for storage in opened:
        storage.close()


@pytest.fixture
def storage(open_storage):
    return open_storage()


@pytest.fixture
def user(storage):
    return asyncio.run(storage.create_user(UserCreate(pin="1234")))


@pytest.fixture
def tracker(storage, user):
    return asyncio.run(storage.create_tracker(
        user.id, TrackerCreate(name="Groceries", currency=Currency.USD)
    ))


def make_expense(
    tracker_id: str,
    amount: str = "10.00",
    category: str = "Food",
    spent_on: date = date(2024, 3, 1),
    description: str = "",
) -> ExpenseCreate:
    return ExpenseCreate(
        tracker_id=tracker_id,
        amount=Decimal(amount),
        category=category,
        description=description,
        date=spent_on,
    )


@pytest.fixture
def expense_factory():
    return make_expense
