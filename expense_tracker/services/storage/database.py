"""
Relational schema for the SQL backend.

One table per entity. The referential rules live in the schema itself:
- users.pin is UNIQUE, so a racing duplicate registration is rejected
  by the database rather than by a check in Python
- trackers.user_id and expenses.tracker_id cascade on delete, so
  removing a tracker removes its expenses in the same statement

SQLite only enforces foreign keys when asked to, per connection; the
engine factory below turns that on.
"""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True)
    pin = Column(String(4), nullable=False, unique=True, index=True)
    preferred_currency = Column(String(3), nullable=False, default="USD")
    created_at = Column(DateTime(timezone=True), nullable=False)


class TrackerRow(Base):
    __tablename__ = "trackers"
    id = Column(String(36), primary_key=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(50), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    created_at = Column(DateTime(timezone=True), nullable=False)


class ExpenseRow(Base):
    __tablename__ = "expenses"
    id = Column(String(36), primary_key=True)
    tracker_id = Column(
        String(36),
        ForeignKey("trackers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(50), nullable=False)
    description = Column(String(200), nullable=False, default="")
    date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Build an engine for `database_url` with foreign keys enforced."""
    kwargs = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees a new empty DB
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init_db(engine: Engine) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(bind=engine)
