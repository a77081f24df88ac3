"""
Audit Logger

Every user-visible change is logged as one structured `audit_event`:
registrations, logins, tracker and expense creation and deletion,
validation rejections and storage failures.

The logger:
- Writes through structlog (JSON lines or console, per settings)
- Never logs a PIN
- Supports correlation IDs to trace the events of one user action
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder
from expense_tracker.models.expense import Expense, Tracker, User


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure stdlib logging and structlog once at startup."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """Central audit logging service."""

    def __init__(self):
        self._logger = structlog.get_logger("expense_tracker.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level its severity calls for."""
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def log_user_registered(
        self,
        user: User,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.user_registered(
            user_id=user.id,
            currency=user.preferred_currency.value,
            correlation_id=correlation_id,
        ))

    def log_registration_conflict(self, correlation_id: Optional[UUID] = None) -> None:
        self.log(AuditEventBuilder.registration_conflict(correlation_id=correlation_id))

    def log_login(
        self,
        user: Optional[User],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a login attempt; `user` is None when the PIN matched nobody."""
        self.log(AuditEventBuilder.login(
            user_id=user.id if user else None,
            correlation_id=correlation_id,
        ))

    def log_tracker_created(
        self,
        tracker: Tracker,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.tracker_created(
            tracker_id=tracker.id,
            user_id=tracker.user_id,
            name=tracker.name,
            correlation_id=correlation_id,
        ))

    def log_tracker_deleted(
        self,
        tracker_id: str,
        removed_expenses: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.tracker_deleted(
            tracker_id=tracker_id,
            removed_expenses=removed_expenses,
            correlation_id=correlation_id,
        ))

    def log_expense_created(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.expense_created(
            expense_id=expense.id,
            tracker_id=expense.tracker_id,
            amount=str(expense.amount),
            category=expense.category,
            correlation_id=correlation_id,
        ))

    def log_expense_deleted(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            correlation_id=correlation_id,
        ))

    def log_validation_failed(
        self,
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_storage_error(
        self,
        operation: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=str(error),
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action and pass it through all
    subsequent operations.
    """
    return uuid4()
