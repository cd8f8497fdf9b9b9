"""
Budget Module - monthly budgets, transactions and summaries

Each transaction belongs to the budget of its civil month, created on
demand. Locked budgets refuse every change except unlocking.
"""

from household_ledger.budget.models import (
    Budget,
    BudgetSummary,
    Transaction,
    TransactionType,
)

__all__ = [
    "Budget",
    "BudgetSummary",
    "Transaction",
    "TransactionType",
]
