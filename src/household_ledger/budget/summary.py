"""
Ledger Aggregator - planned vs actual vs cleared balances of a month

    opening                 budget.opening_balance, or 0.00 without budget
    planned_income          every income of the session (incomes recur)
    planned_expense         every non-archived expense of the session
    net_planned             planned_income - planned_expense
    projected_end_balance   opening + net_planned
    actual_in / out         transactions of the month's budget, by type
    ending_balance          opening + actual_in - actual_out
    cleared_in / out        same, restricted to cleared transactions
    cleared_ending_balance  opening + cleared_in - cleared_out

Everything is Decimal; SQL floating point sums are never used.
"""

from datetime import datetime
from decimal import Decimal

from household_ledger.budget.models import Budget, BudgetSummary, TransactionType
from household_ledger.kernel.money import ZERO
from household_ledger.kernel.repository import Repository
from household_ledger.kernel.time import CivilCalendar


class LedgerAggregator:
    """
    Computes monthly summaries

    Pure reads: authorization happens in the caller, and summarizing twice
    without writes in between gives the same result.
    """

    def __init__(self, repository: Repository, calendar: CivilCalendar) -> None:
        self.repository = repository
        self.calendar = calendar

    def summarize(self, session_id: str, month: str) -> BudgetSummary:
        row = self.repository.find_one("budgets", {"session_id": session_id, "month": month})
        budget = Budget.model_validate(row) if row else None
        opening = budget.opening_balance if budget else ZERO

        planned_income = self.repository.sum_decimal(
            "incomes", "amount", {"session_id": session_id}
        )
        planned_expense = self.repository.sum_decimal(
            "expenses", "amount", {"session_id": session_id, "is_archived": False}
        )
        net_planned = planned_income - planned_expense

        actual_inflow = actual_outflow = cleared_inflow = cleared_outflow = ZERO
        if budget is not None:
            actual_inflow = self._transactions_total(budget.id, TransactionType.INFLOW)
            actual_outflow = self._transactions_total(budget.id, TransactionType.OUTFLOW)
            cleared_inflow = self._transactions_total(
                budget.id, TransactionType.INFLOW, cleared_only=True
            )
            cleared_outflow = self._transactions_total(
                budget.id, TransactionType.OUTFLOW, cleared_only=True
            )

        net_actual = actual_inflow - actual_outflow
        net_cleared = cleared_inflow - cleared_outflow

        return BudgetSummary(
            session_id=session_id,
            month=month,
            budget=budget,
            opening_balance=opening,
            planned_income=planned_income,
            planned_expense=planned_expense,
            net_planned=net_planned,
            projected_end_balance=opening + net_planned,
            actual_inflow=actual_inflow,
            actual_outflow=actual_outflow,
            net_actual=net_actual,
            ending_balance=opening + net_actual,
            cleared_inflow=cleared_inflow,
            cleared_outflow=cleared_outflow,
            net_cleared=net_cleared,
            cleared_ending_balance=opening + net_cleared,
        )

    def current_month(self, now: datetime) -> str:
        """Month key of "now" in the same civil calendar used for bucketing"""
        return self.calendar.current_month(now)

    def _transactions_total(
        self, budget_id: str, kind: TransactionType, cleared_only: bool = False
    ) -> Decimal:
        where: dict = {"budget_id": budget_id, "type": kind}
        if cleared_only:
            where["is_cleared"] = True
        return self.repository.sum_decimal("transactions", "amount", where)
