"""
Budget Domain Models - monthly budgets, transactions and summaries

Key concepts:
- Budget: one envelope per (session, "YYYY-MM") with an opening balance
  and a lock flag
- Transaction: a dated, actual movement of money; positive amount, the
  direction is carried by its type
- Cleared: a transaction matched against a real bank statement
- Summary: planned (incomes/expenses) vs actual vs cleared totals
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from household_ledger.accounts.models import ExpenseCategory
from household_ledger.kernel.money import Amount, PositiveAmount
from household_ledger.kernel.time import Instant, MonthKey


class TransactionType(str, Enum):
    """Direction of a transaction"""

    INFLOW = "INFLOW"
    OUTFLOW = "OUTFLOW"


class Budget(BaseModel):
    """
    Monthly budget of a session

    Lock states: unlocked → locked (explicit update) → unlocked (update
    carrying exactly locked=false). While locked nothing else changes and
    the budget cannot be deleted.
    """

    id: str
    session_id: str
    month: MonthKey
    opening_balance: Amount
    notes: str | None = None
    locked: bool = False
    created_at: datetime
    updated_at: datetime


class Transaction(BaseModel):
    """
    An actual cash movement

    budget_id is derived from the transaction date in the civil calendar
    and is never supplied by the client.
    """

    id: str
    session_id: str
    bank_account_id: str
    member_id: str | None = None
    budget_id: str
    type: TransactionType
    label: str
    amount: PositiveAmount
    date: Instant
    category: ExpenseCategory | None = None
    is_cleared: bool = False
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class BudgetSummary(BaseModel):
    """
    Monthly reconciliation of a session

    Planned figures come from incomes and non-archived expenses, actual
    figures from the transactions attached to the month's budget, cleared
    figures from the cleared subset of those. All monetary fields render
    with exactly two fractional digits.
    """

    session_id: str
    month: MonthKey
    budget: Budget | None = None

    opening_balance: Amount

    planned_income: Amount
    planned_expense: Amount
    net_planned: Amount
    projected_end_balance: Amount

    actual_inflow: Amount
    actual_outflow: Amount
    net_actual: Amount
    ending_balance: Amount

    cleared_inflow: Amount
    cleared_outflow: Amount
    net_cleared: Amount
    cleared_ending_balance: Amount
