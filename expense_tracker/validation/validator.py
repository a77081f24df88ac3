"""
Creation Payload Validation

DESIGN DECISION: Every raw payload is validated before it reaches
storage. Storage trusts its inputs; this module is the only gate.

The validators are pure functions:
- Same input, same verdict
- No I/O, no storage lookups (referential checks belong to storage)
- Nothing is silently fixed beyond trimming tracker names and
  categories and quantizing amounts to cents

Failures are reported as a ValidationError carrying one
ValidationIssue per offending field, so the caller can show the first
message or all of them.
"""

from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_snake

from expense_tracker.models.expense import (
    MAX_AMOUNT,
    ExpenseCreate,
    TrackerCreate,
    UserCreate,
)


PayloadT = TypeVar("PayloadT", bound=BaseModel)


# User-facing wording per field; pydantic's own messages are too technical
FIELD_MESSAGES = {
    "pin": "PIN must be exactly 4 digits",
    "preferred_currency": "Currency must be INR or USD",
    "currency": "Currency must be INR or USD",
    "name": "Tracker name must be 1-50 characters",
    "tracker_id": "Tracker ID required",
    "amount": "Amount must be a positive number",
    "category": "Category must be 1-50 characters",
    "description": "Description must be at most 200 characters",
    "date": "Date must be a valid YYYY-MM-DD date",
}

# Overrides for a specific (field, pydantic error type) pair
ISSUE_MESSAGES = {
    ("amount", "less_than_equal"): f"Amount must be at most {MAX_AMOUNT:,}",
}


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'string_too_long')"
    )
    message: str = Field(..., description="Human-readable description")


class ValidationError(Exception):
    """Raised when a creation payload is malformed or out of range."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        message = issues[0].message if issues else "Invalid input"
        super().__init__(message)

    def to_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]


def _issues_from(error: PydanticValidationError) -> list[ValidationIssue]:
    issues = []
    for err in error.errors():
        loc = err.get("loc") or ()
        field = to_snake(str(loc[0])) if loc else "payload"
        issue_type = err.get("type", "invalid")
        message = ISSUE_MESSAGES.get((field, issue_type)) or FIELD_MESSAGES.get(
            field, err.get("msg", "Invalid input")
        )
        issues.append(ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
        ))
    return issues


def _validate(model: type[PayloadT], data: Any) -> PayloadT:
    if not isinstance(data, Mapping):
        raise ValidationError([ValidationIssue(
            field="payload",
            issue_type="model_type",
            message="Request body must be an object",
        )])
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ValidationError(_issues_from(e)) from e


def validate_user(data: Mapping[str, Any]) -> UserCreate:
    """
    Validate a registration payload.

    `pin` must be exactly four ASCII digits. `preferred_currency` (or
    `preferredCurrency`) is optional and defaults to USD.
    """
    return _validate(UserCreate, data)


def validate_tracker(data: Mapping[str, Any]) -> TrackerCreate:
    """Validate a new tracker: trimmed name of 1-50 chars and a currency."""
    return _validate(TrackerCreate, data)


def validate_expense(data: Mapping[str, Any]) -> ExpenseCreate:
    """
    Validate a new expense.

    Requires a tracker id, a positive finite amount, a 1-50 char
    category and a YYYY-MM-DD date; description defaults to "".
    """
    return _validate(ExpenseCreate, data)
