"""
Budget Commands - budgets and transactions

Transactions never carry a budget_id: extra fields are rejected, and the
owning budget is resolved from the date.
"""

from pydantic import Field

from household_ledger.accounts.models import ExpenseCategory
from household_ledger.budget.models import TransactionType
from household_ledger.kernel.commands import Command, PatchCommand
from household_ledger.kernel.money import ZERO, Amount, PositiveAmount
from household_ledger.kernel.time import Instant, MonthKey


class CreateBudget(Command):
    """
    Create the budget of a month explicitly

    Requirements:
    - No budget exists yet for (session, month)
    """

    month: MonthKey
    opening_balance: Amount = ZERO
    notes: str | None = Field(default=None, max_length=2000)
    locked: bool = False


class UpdateBudget(PatchCommand):
    """
    Patch a budget

    While the budget is locked the only accepted patch is exactly
    {"locked": False}.
    """

    month: MonthKey | None = None
    opening_balance: Amount | None = None
    notes: str | None = Field(default=None, max_length=2000)
    locked: bool | None = None


class CreateTransaction(Command):
    bank_account_id: str
    member_id: str | None = None
    type: TransactionType
    label: str = Field(..., min_length=1, max_length=200)
    amount: PositiveAmount
    date: Instant
    category: ExpenseCategory | None = None
    is_cleared: bool = False
    notes: str | None = Field(default=None, max_length=2000)


class UpdateTransaction(PatchCommand):
    """
    Patch a transaction

    - member_id=None detaches the member (absent leaves it unchanged)
    - changing date or session_id re-resolves the owning budget
    """

    session_id: str | None = None
    bank_account_id: str | None = None
    member_id: str | None = None
    type: TransactionType | None = None
    label: str | None = Field(default=None, min_length=1, max_length=200)
    amount: PositiveAmount | None = None
    date: Instant | None = None
    category: ExpenseCategory | None = None
    is_cleared: bool | None = None
    notes: str | None = Field(default=None, max_length=2000)
