"""
Expense Tracker - Source Package

Personal expense tracking under a 4-digit PIN identity, grouped into
independent trackers (budgets).

DESIGN PRINCIPLES:
1. Validate at the edge, never inside storage
2. One storage contract, two interchangeable backends
3. Money is Decimal, never float
4. Deleting a tracker takes its expenses with it, or nothing at all
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
