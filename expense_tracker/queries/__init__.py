"""Expense aggregation package."""

from expense_tracker.queries.aggregation import category_totals

__all__ = ["category_totals"]
