"""
Month-Bucketing Resolver - attaches transactions to their monthly budget

The month of a transaction is read in the civil calendar, never in UTC or
in the host's zone: 2025-02-01T00:30:00Z is 01:30 in Paris, so it belongs
to the February budget. The same CivilCalendar is handed to the ledger
aggregator so that attachment and summaries agree.

Budgets are created on demand (upsert). Two writers racing on the first
transaction of a month both try to insert; the (session_id, month)
uniqueness constraint lets one win and the other reads the winner back.
"""

from datetime import date, datetime

from household_ledger.budget.models import Budget
from household_ledger.kernel.errors import DuplicateKey
from household_ledger.kernel.logging import get_logger
from household_ledger.kernel.metrics import budgets_autocreated_total
from household_ledger.kernel.money import ZERO
from household_ledger.kernel.repository import Repository
from household_ledger.kernel.time import CivilCalendar

logger = get_logger(__name__)


class MonthBucketingResolver:
    """Maps (session, instant) to the id of the owning monthly budget"""

    def __init__(self, repository: Repository, calendar: CivilCalendar) -> None:
        self.repository = repository
        self.calendar = calendar

    def resolve_budget(self, session_id: str, instant: str | date | datetime) -> str:
        """
        Return the id of the budget owning the instant's civil month

        Creates the budget with a 0.00 opening balance when missing.
        """
        month = self.calendar.month_key(instant)
        return self.ensure_budget(session_id, month).id

    def ensure_budget(self, session_id: str, month: str) -> Budget:
        """Upsert the budget of (session, month); an existing budget is returned unchanged"""
        where = {"session_id": session_id, "month": month}
        row = self.repository.find_one("budgets", where)
        if row is not None:
            return Budget.model_validate(row)

        try:
            row = self.repository.insert("budgets", {**where, "opening_balance": ZERO})
        except DuplicateKey:
            # Lost the race: the other writer's budget is the one to use
            row = self.repository.find_one("budgets", where)
            if row is None:
                raise
            logger.debug("Budget created concurrently, reusing it", session_id=session_id, month=month)
            return Budget.model_validate(row)

        budgets_autocreated_total.inc()
        logger.info("Budget created on demand", session_id=session_id, month=month)
        return Budget.model_validate(row)
