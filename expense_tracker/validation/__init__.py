"""Payload validation package."""

from expense_tracker.validation.validator import (
    ValidationError,
    ValidationIssue,
    validate_expense,
    validate_tracker,
    validate_user,
)

__all__ = [
    "ValidationError",
    "ValidationIssue",
    "validate_expense",
    "validate_tracker",
    "validate_user",
]
