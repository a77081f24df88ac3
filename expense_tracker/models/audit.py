"""
Audit Models for Expense Tracker

Every user-visible change to the dataset produces one audit event:
registrations, tracker and expense creation, deletions (with the number
of expenses a tracker took with it) and storage failures.

DESIGN DECISION: Audit events are structured log records only. They are
written through structlog and never persisted next to the data they
describe.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Identity
    USER_REGISTERED = "user_registered"
    REGISTRATION_CONFLICT = "registration_conflict"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"

    # Trackers
    TRACKER_CREATED = "tracker_created"
    TRACKER_DELETED = "tracker_deleted"

    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_DELETED = "expense_deleted"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    entity_id is a plain string because tracker, expense and user ids are
    opaque to the audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (user, tracker, expense)"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one user action"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.tracker_created(tracker_id, user_id, name)
        event = AuditEventBuilder.tracker_deleted(tracker_id, removed_expenses=3)
    """

    @staticmethod
    def user_registered(
        user_id: str,
        currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        # The PIN itself is never logged
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="User registered",
            details={"preferred_currency": currency},
        )

    @staticmethod
    def registration_conflict(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRATION_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            correlation_id=correlation_id,
            description="Registration rejected: PIN already in use",
        )

    @staticmethod
    def login(
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if user_id is None:
            return AuditEvent(
                event_type=AuditEventType.LOGIN_FAILED,
                severity=AuditSeverity.WARNING,
                entity_type="user",
                correlation_id=correlation_id,
                description="Login failed: unknown PIN",
            )
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="User logged in",
        )

    @staticmethod
    def tracker_created(
        tracker_id: str,
        user_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRACKER_CREATED,
            entity_type="tracker",
            entity_id=tracker_id,
            correlation_id=correlation_id,
            description=f"Tracker created: {name}",
            details={"user_id": user_id, "name": name},
        )

    @staticmethod
    def tracker_deleted(
        tracker_id: str,
        removed_expenses: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRACKER_DELETED,
            entity_type="tracker",
            entity_id=tracker_id,
            correlation_id=correlation_id,
            description=f"Tracker deleted with {removed_expenses} expenses",
            details={"removed_expenses": removed_expenses},
        )

    @staticmethod
    def expense_created(
        expense_id: str,
        tracker_id: str,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense recorded: {category} - {amount}",
            details={
                "tracker_id": tracker_id,
                "amount": amount,
                "category": category,
            },
        )

    @staticmethod
    def expense_deleted(
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense deleted",
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
