"""
Category Aggregation

DESIGN DECISION: Aggregation is a pure function over a list of expenses,
computed in Python rather than in SQL. Both backends return the same
Expense models, so one implementation serves the JSON store, the
database, the summary flow and the UI alike.

GUARANTEES:
- Grouping is by exact category string (case-sensitive, no trimming)
- Sums are Decimal, so 10.50 + 5.25 is exactly 15.75 on every run
- The input sequence is only read, never modified
"""

from decimal import Decimal
from typing import Iterable

from expense_tracker.models.expense import CategorySummary, CategoryTotal, Expense


def category_totals(expenses: Iterable[Expense]) -> CategorySummary:
    """
    Group expenses by category and total them.

    Entries come out in the order each category is first seen. Use
    CategorySummary.by_total() for the largest-first ordering.
    """
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    grand_total = Decimal("0")

    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, Decimal("0")) + expense.amount
        counts[expense.category] = counts.get(expense.category, 0) + 1
        grand_total += expense.amount

    return CategorySummary(
        entries=[
            CategoryTotal(category=category, total=total, count=counts[category])
            for category, total in totals.items()
        ],
        grand_total=grand_total,
    )
