"""
Budget Invariants - the lock state machine

While locked, a budget accepts a single kind of update: one carrying
exactly locked=False. Deleting is refused while locked, and refused as
long as transactions are attached to the budget; so is moving it to
another month, which would detach them from their civil month.
"""

import re

from household_ledger.budget.commands import UpdateBudget
from household_ledger.budget.models import Budget
from household_ledger.kernel.errors import BudgetInUse, BudgetLocked, InvalidInput
from household_ledger.kernel.metrics import budget_lock_rejections_total
from household_ledger.kernel.time import MONTH_KEY_PATTERN


def validate_month_key(month: str) -> None:
    """
    Raises:
        InvalidInput: If month is not a "YYYY-MM" key
    """
    if not isinstance(month, str) or not re.match(MONTH_KEY_PATTERN, month):
        raise InvalidInput(f"Invalid month {month!r}: expected YYYY-MM")


def validate_budget_update(budget: Budget, command: UpdateBudget) -> None:
    """
    Raises:
        BudgetLocked: If the budget is locked and the patch is not exactly {locked: False}
    """
    if budget.locked and not command.provides_only(locked=False):
        budget_lock_rejections_total.inc()
        raise BudgetLocked(budget.id, "update")


def validate_budget_deletable(budget: Budget, transaction_count: int) -> None:
    """
    Raises:
        BudgetLocked: If the budget is locked
        BudgetInUse: If transactions still point at the budget
    """
    if budget.locked:
        budget_lock_rejections_total.inc()
        raise BudgetLocked(budget.id, "delete")
    if transaction_count:
        raise BudgetInUse(budget.id, transaction_count)


def validate_month_change(budget: Budget, new_month: str | None, transaction_count: int) -> None:
    """
    A budget's month is the month of its transactions; it only moves while empty

    Raises:
        BudgetInUse: If the month changes while transactions point at the budget
    """
    if new_month is not None and new_month != budget.month and transaction_count:
        raise BudgetInUse(budget.id, transaction_count)
