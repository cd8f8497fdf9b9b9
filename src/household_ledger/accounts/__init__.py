"""
Accounts Module - bank accounts and planned flows

Bank accounts are shared by one or more members of a session; removing the
last member deletes the account. Incomes and expenses are the planned,
recurring side of the budget, attached to a member and a bank account.
"""

from household_ledger.accounts.models import (
    AccountMemberRemoval,
    BankAccount,
    Expense,
    ExpenseCategory,
    Income,
)

__all__ = [
    "BankAccount",
    "AccountMemberRemoval",
    "Income",
    "Expense",
    "ExpenseCategory",
]
