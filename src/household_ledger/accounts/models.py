"""
Accounts Domain Models - bank accounts and planned cash flows

Incomes and expenses are planned, recurring line items ("rent, 850.00,
on the 5th"). They feed the planned side of a monthly summary; actual
money movements are Transactions (budget domain).
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from household_ledger.kernel.money import Amount, PositiveAmount


class ExpenseCategory(str, Enum):
    """Spending categories shared by expenses and transactions"""

    HOUSING = "HOUSING"
    UTILITIES = "UTILITIES"
    GROCERIES = "GROCERIES"
    TRANSPORT = "TRANSPORT"
    INSURANCE = "INSURANCE"
    HEALTH = "HEALTH"
    SUBSCRIPTIONS = "SUBSCRIPTIONS"
    LEISURE = "LEISURE"
    EDUCATION = "EDUCATION"
    SAVINGS = "SAVINGS"
    TAXES = "TAXES"
    OTHER = "OTHER"


class BankAccount(BaseModel):
    """
    A bank account of the session

    Attributes:
        member_ids: Members attached to the account. When the last one is
            detached the account is deleted.
    """

    id: str
    session_id: str
    label: str
    bank_name: str | None = None
    initial_balance: Amount
    is_archived: bool = False
    member_ids: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AccountMemberRemoval(BaseModel):
    """Outcome of detaching a member from a bank account"""

    bank_account_id: str
    member_id: str
    account_deleted: bool


class Income(BaseModel):
    id: str
    session_id: str
    member_id: str
    bank_account_id: str
    label: str
    amount: PositiveAmount
    day: int = Field(ge=1, le=31)
    created_at: datetime
    updated_at: datetime


class Expense(BaseModel):
    """
    Planned expense

    Archived expenses stay on record but are left out of planned totals.
    """

    id: str
    session_id: str
    member_id: str
    bank_account_id: str
    label: str
    amount: PositiveAmount
    day: int = Field(ge=1, le=31)
    category: ExpenseCategory
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime
