"""
SQL Storage Implementation

DESIGN DECISION: The relational backend leans on the database for the
two rules that matter most:
1. PIN uniqueness - the unique index is the final word; a pre-check only
   gives a friendlier path for the common case
2. Cascading delete - ON DELETE CASCADE removes a tracker's expenses in
   the same statement that removes the tracker

Each operation opens its own session and commits before returning.
Low-level SQLAlchemy errors never leave this module unwrapped.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from sqlalchemy import delete, func, literal_column
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from expense_tracker.models.expense import (
    Expense,
    ExpenseCreate,
    Tracker,
    TrackerCreate,
    User,
    UserCreate,
)
from expense_tracker.services.storage.database import (
    ExpenseRow,
    TrackerRow,
    UserRow,
    create_db_engine,
    init_db,
)
from expense_tracker.services.storage.interface import (
    ConflictError,
    NotFoundError,
    StorageError,
    TrackerStorageInterface,
)


logger = structlog.get_logger(__name__)


def _user_from_row(row: UserRow) -> User:
    return User(
        id=row.id,
        pin=row.pin,
        preferred_currency=row.preferred_currency,
        created_at=row.created_at,
    )


def _tracker_from_row(row: TrackerRow) -> Tracker:
    return Tracker(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        currency=row.currency,
        created_at=row.created_at,
    )


def _expense_from_row(row: ExpenseRow) -> Expense:
    return Expense(
        id=row.id,
        tracker_id=row.tracker_id,
        amount=row.amount,
        category=row.category,
        description=row.description or "",
        date=row.date,
        created_at=row.created_at,
    )


class SqlTrackerStorage(TrackerStorageInterface):
    """
    SQLAlchemy implementation of tracker storage.

    Works with any SQLAlchemy URL; SQLite is the default.
    """

    def __init__(
        self,
        database_url: str = "sqlite:///./tracker.db",
        echo: bool = False,
        engine: Optional[Engine] = None,
    ):
        self._engine = engine or create_db_engine(database_url, echo=echo)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )
        try:
            init_db(self._engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to initialize database: {e}") from e

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        """Session scope that rolls back and wraps backend failures."""
        session = self._session_factory()
        try:
            yield session
        except StorageError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("sql_storage_failed", operation=operation, error=str(e))
            raise StorageError(f"Failed to {operation}: {e}") from e
        finally:
            session.close()

    def close(self) -> None:
        self._engine.dispose()

    def _newest_insert_first(self, row_class):
        """Tie-break for equal timestamps: later insert first, as the JSON store does."""
        if self._engine.dialect.name == "sqlite":
            # SQLite numbers rows in insertion order
            return literal_column(f"{row_class.__tablename__}.rowid").desc()
        return row_class.id.desc()

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def get_user_by_pin(self, pin: str) -> Optional[User]:
        with self._session("get user") as session:
            row = session.query(UserRow).filter(UserRow.pin == pin).first()
            return _user_from_row(row) if row else None

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        with self._session("get user") as session:
            row = session.get(UserRow, user_id)
            return _user_from_row(row) if row else None

    async def create_user(self, data: UserCreate) -> User:
        user = User(pin=data.pin, preferred_currency=data.preferred_currency)

        with self._session("create user") as session:
            if session.query(UserRow).filter(UserRow.pin == data.pin).first():
                raise ConflictError("This PIN is already in use")

            session.add(UserRow(
                id=user.id,
                pin=user.pin,
                preferred_currency=user.preferred_currency.value,
                created_at=user.created_at,
            ))
            try:
                session.commit()
            except IntegrityError as e:
                # Lost a race with a concurrent registration
                raise ConflictError("This PIN is already in use") from e

        return user

    # -------------------------------------------------------------------------
    # Trackers
    # -------------------------------------------------------------------------

    async def get_trackers_by_user_id(self, user_id: str) -> list[Tracker]:
        with self._session("list trackers") as session:
            rows = (
                session.query(TrackerRow)
                .filter(TrackerRow.user_id == user_id)
                .order_by(
                    TrackerRow.created_at.desc(),
                    self._newest_insert_first(TrackerRow),
                )
                .all()
            )
            return [_tracker_from_row(row) for row in rows]

    async def get_tracker_by_id(self, tracker_id: str) -> Optional[Tracker]:
        with self._session("get tracker") as session:
            row = session.get(TrackerRow, tracker_id)
            return _tracker_from_row(row) if row else None

    async def create_tracker(self, user_id: str, data: TrackerCreate) -> Tracker:
        tracker = Tracker(user_id=user_id, name=data.name, currency=data.currency)

        with self._session("create tracker") as session:
            session.add(TrackerRow(
                id=tracker.id,
                user_id=tracker.user_id,
                name=tracker.name,
                currency=tracker.currency.value,
                created_at=tracker.created_at,
            ))
            try:
                session.commit()
            except IntegrityError as e:
                raise NotFoundError(f"User not found: {user_id}") from e

        return tracker

    async def delete_tracker(self, tracker_id: str) -> bool:
        with self._session("delete tracker") as session:
            removed_expenses = (
                session.query(func.count(ExpenseRow.id))
                .filter(ExpenseRow.tracker_id == tracker_id)
                .scalar()
            )
            result = session.execute(
                delete(TrackerRow).where(TrackerRow.id == tracker_id)
            )
            session.commit()

        if result.rowcount == 0:
            return False

        logger.info(
            "tracker_cascade_deleted",
            tracker_id=tracker_id,
            removed_expenses=removed_expenses,
        )
        return True

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def get_expenses_by_tracker_id(self, tracker_id: str) -> list[Expense]:
        with self._session("list expenses") as session:
            rows = (
                session.query(ExpenseRow)
                .filter(ExpenseRow.tracker_id == tracker_id)
                .order_by(
                    ExpenseRow.date.desc(),
                    ExpenseRow.created_at.desc(),
                    self._newest_insert_first(ExpenseRow),
                )
                .all()
            )
            return [_expense_from_row(row) for row in rows]

    async def get_expense_by_id(self, expense_id: str) -> Optional[Expense]:
        with self._session("get expense") as session:
            row = session.get(ExpenseRow, expense_id)
            return _expense_from_row(row) if row else None

    async def create_expense(self, data: ExpenseCreate) -> Expense:
        expense = Expense(
            tracker_id=data.tracker_id,
            amount=data.amount,
            category=data.category,
            description=data.description,
            date=data.date,
        )

        with self._session("create expense") as session:
            session.add(ExpenseRow(
                id=expense.id,
                tracker_id=expense.tracker_id,
                amount=expense.amount,
                category=expense.category,
                description=expense.description,
                date=expense.date,
                created_at=expense.created_at,
            ))
            try:
                session.commit()
            except IntegrityError as e:
                raise NotFoundError(f"Tracker not found: {data.tracker_id}") from e

        return expense

    async def delete_expense(self, expense_id: str) -> bool:
        with self._session("delete expense") as session:
            result = session.execute(
                delete(ExpenseRow).where(ExpenseRow.id == expense_id)
            )
            session.commit()
        return result.rowcount > 0
