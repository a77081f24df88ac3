"""
Main Orchestrator for Expense Tracker

This module is the thin handler layer between a front end (the
Streamlit app, or any HTTP layer) and storage. It defines the flows for:
1. Accounts (register with a PIN, log in with a PIN)
2. Trackers and expenses (list, create, delete, summarize)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Raw payloads are validated before storage is touched
- Owning records are looked up before children are created
- Missing records on read come back as None; deletes report a bool
- Every mutation is audited

Errors propagate to the caller; status_for_error() gives the status
code a web handler should answer with.
"""

import re
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional
from uuid import UUID

from expense_tracker.audit import AuditLogger, configure_logging, create_correlation_id
from expense_tracker.config import Settings, get_settings
from expense_tracker.models.expense import CategorySummary, Expense, Tracker, User
from expense_tracker.queries import category_totals
from expense_tracker.services.storage import (
    ConflictError,
    NotFoundError,
    StorageError,
    TrackerStorageInterface,
    create_storage,
)
from expense_tracker.validation import (
    ValidationError,
    ValidationIssue,
    validate_expense,
    validate_tracker,
    validate_user,
)


PIN_PATTERN = re.compile(r"^[0-9]{4}$")


class AuthenticationError(Exception):
    """No user is registered with the given PIN."""
    pass


def status_for_error(error: Exception) -> int:
    """Map a flow error to the HTTP status a handler should return."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthenticationError):
        return 401
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ConflictError):
        return 409
    return 500


def _required(value: Any, field: str, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError([ValidationIssue(
            field=field, issue_type="missing", message=message,
        )])
    return value


class _Flow:
    def __init__(
        self,
        storage: TrackerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()

    @contextmanager
    def _audited(self, operation: str, correlation_id: Optional[UUID]) -> Iterator[None]:
        """Audit backend failures; NotFound and Conflict are expected outcomes."""
        try:
            yield
        except (NotFoundError, ConflictError):
            raise
        except StorageError as e:
            self._audit_logger.log_storage_error(operation, e, correlation_id)
            raise

    def _validated(self, validator, payload, entity_type, correlation_id):
        try:
            return validator(payload)
        except ValidationError as e:
            self._audit_logger.log_validation_failed(entity_type, e.to_dicts(), correlation_id)
            raise


class AccountFlow(_Flow):
    """
    Registration and login.

    A PIN is an identity token, not a secret: logging in is a lookup.
    """

    async def register(
        self,
        payload: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> User:
        """
        Register a new user.

        Raises:
            ValidationError: Malformed PIN or currency
            ConflictError: PIN already in use
        """
        correlation_id = correlation_id or create_correlation_id()
        data = self._validated(validate_user, payload, "user", correlation_id)

        with self._audited("register", correlation_id):
            try:
                if await self._storage.get_user_by_pin(data.pin):
                    raise ConflictError("This PIN is already in use")
                user = await self._storage.create_user(data)
            except ConflictError:
                self._audit_logger.log_registration_conflict(correlation_id)
                raise

        self._audit_logger.log_user_registered(user, correlation_id)
        return user

    async def login(
        self,
        pin: Any,
        correlation_id: Optional[UUID] = None,
    ) -> User:
        """
        Find the user registered with `pin`.

        Raises:
            ValidationError: PIN is not four digits
            AuthenticationError: No user has this PIN
        """
        correlation_id = correlation_id or create_correlation_id()
        if not isinstance(pin, str) or not PIN_PATTERN.match(pin):
            raise ValidationError([ValidationIssue(
                field="pin", issue_type="invalid_format", message="Invalid PIN format",
            )])

        with self._audited("login", correlation_id):
            user = await self._storage.get_user_by_pin(pin)

        self._audit_logger.log_login(user, correlation_id)
        if user is None:
            raise AuthenticationError("Invalid PIN")
        return user


class TrackerFlow(_Flow):
    """Tracker and expense management for a logged-in user."""

    # -------------------------------------------------------------------------
    # Trackers
    # -------------------------------------------------------------------------

    async def list_trackers(self, user_id: str) -> list[Tracker]:
        _required(user_id, "user_id", "User ID required")
        with self._audited("list trackers", None):
            return await self._storage.get_trackers_by_user_id(user_id)

    async def get_tracker(self, tracker_id: str) -> Optional[Tracker]:
        with self._audited("get tracker", None):
            return await self._storage.get_tracker_by_id(tracker_id)

    async def create_tracker(
        self,
        user_id: str,
        payload: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Tracker:
        """
        Create a tracker for an existing user.

        Raises:
            ValidationError: Missing user id, bad name or currency
            NotFoundError: The user does not exist
        """
        correlation_id = correlation_id or create_correlation_id()
        _required(user_id, "user_id", "User ID required")
        data = self._validated(validate_tracker, payload, "tracker", correlation_id)

        with self._audited("create tracker", correlation_id):
            if await self._storage.get_user_by_id(user_id) is None:
                raise NotFoundError("User not found")
            tracker = await self._storage.create_tracker(user_id, data)

        self._audit_logger.log_tracker_created(tracker, correlation_id)
        return tracker

    async def delete_tracker(
        self,
        tracker_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete a tracker and its expenses. False if it did not exist."""
        correlation_id = correlation_id or create_correlation_id()

        with self._audited("delete tracker", correlation_id):
            expenses = await self._storage.get_expenses_by_tracker_id(tracker_id)
            deleted = await self._storage.delete_tracker(tracker_id)

        if deleted:
            self._audit_logger.log_tracker_deleted(tracker_id, len(expenses), correlation_id)
        return deleted

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def list_expenses(self, tracker_id: str) -> list[Expense]:
        _required(tracker_id, "tracker_id", "Tracker ID required")
        with self._audited("list expenses", None):
            return await self._storage.get_expenses_by_tracker_id(tracker_id)

    async def add_expense(
        self,
        payload: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Record an expense against an existing tracker.

        Raises:
            ValidationError: Malformed payload
            NotFoundError: The tracker does not exist
        """
        correlation_id = correlation_id or create_correlation_id()
        data = self._validated(validate_expense, payload, "expense", correlation_id)

        with self._audited("create expense", correlation_id):
            if await self._storage.get_tracker_by_id(data.tracker_id) is None:
                raise NotFoundError("Tracker not found")
            expense = await self._storage.create_expense(data)

        self._audit_logger.log_expense_created(expense, correlation_id)
        return expense

    async def delete_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()

        with self._audited("delete expense", correlation_id):
            deleted = await self._storage.delete_expense(expense_id)

        if deleted:
            self._audit_logger.log_expense_deleted(expense_id, correlation_id)
        return deleted

    async def summarize(self, tracker_id: str) -> CategorySummary:
        """Per-category totals and grand total of one tracker."""
        expenses = await self.list_expenses(tracker_id)
        return category_totals(expenses)


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[AccountFlow, TrackerFlow, TrackerStorageInterface]:
    """
    Factory function to create all application components.

    Configures logging, builds the storage backend selected in settings
    and wires both flows to it.

    Returns:
        (account_flow, tracker_flow, storage)
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level, app_settings.log_json)

    storage = create_storage(settings.storage)
    audit_logger = AuditLogger()

    account_flow = AccountFlow(storage, audit_logger)
    tracker_flow = TrackerFlow(storage, audit_logger)

    return account_flow, tracker_flow, storage
