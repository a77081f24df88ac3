"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
Storage takes and returns these shapes; validation produces the *Create
payloads.
"""

from expense_tracker.models.expense import (
    CategorySummary,
    CategoryTotal,
    Currency,
    Expense,
    ExpenseCreate,
    Tracker,
    TrackerCreate,
    User,
    UserCreate,
    to_money,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entity models
    "CategorySummary",
    "CategoryTotal",
    "Currency",
    "Expense",
    "ExpenseCreate",
    "Tracker",
    "TrackerCreate",
    "User",
    "UserCreate",
    "to_money",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
