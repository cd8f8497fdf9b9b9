"""
Budget Handlers - budgets, transactions and monthly summaries

Handlers:
1. Authorize (require_manage for writes, resolve_role for reads)
2. Validate invariants (lock state machine, cross-entity coherence)
3. Resolve the owning budget of transactions through month bucketing
4. Write through the repository and return read models
"""

from typing import Any

from household_ledger.budget.bucketing import MonthBucketingResolver
from household_ledger.budget.commands import (
    CreateBudget,
    CreateTransaction,
    UpdateBudget,
    UpdateTransaction,
)
from household_ledger.budget.invariants import (
    validate_budget_deletable,
    validate_budget_update,
    validate_month_change,
    validate_month_key,
)
from household_ledger.budget.models import Budget, BudgetSummary, Transaction
from household_ledger.budget.summary import LedgerAggregator
from household_ledger.kernel.errors import (
    BudgetInUse,
    BudgetNotFound,
    DuplicateKey,
    DuplicateRecord,
    ReferenceViolation,
    TransactionNotFound,
)
from household_ledger.kernel.logging import get_logger
from household_ledger.kernel.repository import Record, Repository
from household_ledger.kernel.time import TimeProvider, parse_instant
from household_ledger.membership.authorization import AuthorizationResolver

logger = get_logger(__name__)

# Transaction columns that may be cleared with an explicit null
NULLABLE_TRANSACTION_FIELDS = {"member_id", "category", "notes"}


class BudgetHandlers:
    """Explicit budget management and the monthly summaries"""

    def __init__(
        self,
        repository: Repository,
        resolver: AuthorizationResolver,
        bucketing: MonthBucketingResolver,
        aggregator: LedgerAggregator,
        time_provider: TimeProvider,
    ) -> None:
        self.repository = repository
        self.resolver = resolver
        self.bucketing = bucketing
        self.aggregator = aggregator
        self.time_provider = time_provider

    def _load(self, budget_id: str) -> Budget:
        row = self.repository.get("budgets", budget_id)
        if row is None:
            raise BudgetNotFound(budget_id)
        return Budget.model_validate(row)

    def create_budget(self, session_id: str, command: CreateBudget, requester_id: str) -> Budget:
        """
        Raises:
            DuplicateRecord: If the session already has a budget for the month
        """
        self.resolver.require_manage(session_id, requester_id)
        try:
            row = self.repository.insert(
                "budgets", {"session_id": session_id, **command.model_dump()}
            )
        except DuplicateKey:
            raise DuplicateRecord(f"A budget already exists for {command.month}") from None
        logger.info("Budget created", session_id=session_id, month=command.month)
        return Budget.model_validate(row)

    def list_budgets(
        self, session_id: str, requester_id: str, month: str | None = None
    ) -> list[Budget]:
        """Budgets of a session, most recent month first"""
        self.resolver.resolve_role(session_id, requester_id)
        where: dict[str, Any] = {"session_id": session_id}
        if month is not None:
            validate_month_key(month)
            where["month"] = month
        rows = self.repository.find("budgets", where, order_by=("-month",))
        return [Budget.model_validate(row) for row in rows]

    def get_budget(self, budget_id: str, requester_id: str) -> Budget:
        budget = self._load(budget_id)
        self.resolver.resolve_role(budget.session_id, requester_id)
        return budget

    def update_budget(self, budget_id: str, command: UpdateBudget, requester_id: str) -> Budget:
        """
        Patch a budget, honouring the lock

        Raises:
            BudgetLocked: If locked and the patch is anything but {locked: False}
            BudgetInUse: If the month changes while transactions are attached
            DuplicateRecord: If the new month already has a budget
        """
        budget = self._load(budget_id)
        self.resolver.require_manage(budget.session_id, requester_id)
        validate_budget_update(budget, command)
        if command.is_provided("month"):
            validate_month_change(
                budget,
                command.month,
                self.repository.count("transactions", {"budget_id": budget_id}),
            )

        changes = {k: v for k, v in command.provided().items() if k == "notes" or v is not None}
        if not changes:
            return budget
        try:
            row = self.repository.update("budgets", budget_id, changes)
        except DuplicateKey:
            raise DuplicateRecord(f"A budget already exists for {changes.get('month')}") from None
        if row is None:
            raise BudgetNotFound(budget_id)
        if "locked" in changes and changes["locked"] != budget.locked:
            logger.info(
                "Budget locked" if changes["locked"] else "Budget unlocked",
                budget_id=budget_id,
                month=budget.month,
            )
        return Budget.model_validate(row)

    def delete_budget(self, budget_id: str, requester_id: str) -> Budget:
        """
        Raises:
            BudgetLocked: If the budget is locked
            BudgetInUse: If transactions are still attached
        """
        budget = self._load(budget_id)
        self.resolver.require_manage(budget.session_id, requester_id)
        attached = self.repository.count("transactions", {"budget_id": budget_id})
        validate_budget_deletable(budget, attached)
        try:
            self.repository.delete("budgets", budget_id)
        except ReferenceViolation:
            raise BudgetInUse(
                budget_id, self.repository.count("transactions", {"budget_id": budget_id})
            ) from None
        return budget

    def summarize(self, session_id: str, month: str, requester_id: str) -> BudgetSummary:
        """Monthly summary; any participant, VIEWER included, may read it"""
        validate_month_key(month)
        self.resolver.resolve_role(session_id, requester_id)
        return self.aggregator.summarize(session_id, month)

    def summarize_current_month(
        self, session_id: str, requester_id: str, create_if_missing: bool = False
    ) -> BudgetSummary:
        """
        Summary of the current civil month

        With create_if_missing, a 0.00 budget is upserted first for
        requesters who may write; a VIEWER gets the same figures without
        the write.
        """
        role = self.resolver.resolve_role(session_id, requester_id)
        month = self.aggregator.current_month(self.time_provider.now())
        if create_if_missing and role.can_manage:
            self.bucketing.ensure_budget(session_id, month)
        return self.aggregator.summarize(session_id, month)


class TransactionHandlers:
    """Dated transactions, each attached to the budget of its civil month"""

    def __init__(
        self,
        repository: Repository,
        resolver: AuthorizationResolver,
        bucketing: MonthBucketingResolver,
    ) -> None:
        self.repository = repository
        self.resolver = resolver
        self.bucketing = bucketing

    def _load(self, transaction_id: str) -> Record:
        row = self.repository.get("transactions", transaction_id)
        if row is None:
            raise TransactionNotFound(transaction_id)
        return row

    def create_transaction(
        self, session_id: str, command: CreateTransaction, requester_id: str
    ) -> Transaction:
        """
        Record a transaction and attach it to its month's budget

        Raises:
            Forbidden: If the requester cannot manage the session
            NotFound: If the bank account or member does not exist
            BadRequest: If they belong to another session, or the member has not joined
        """
        self.resolver.require_manage(session_id, requester_id)
        self.resolver.assert_coherence(
            session_id, member_id=command.member_id, bank_account_id=command.bank_account_id
        )
        with self.repository.transaction():
            budget_id = self.bucketing.resolve_budget(session_id, command.date)
            row = self.repository.insert(
                "transactions",
                {**command.model_dump(), "session_id": session_id, "budget_id": budget_id},
            )
        logger.info(
            "Transaction recorded",
            session_id=session_id,
            transaction_id=row["id"],
            budget_id=budget_id,
            amount=command.amount,
        )
        return Transaction.model_validate(row)

    def list_transactions(
        self,
        session_id: str,
        requester_id: str,
        date_from: Any = None,
        date_to: Any = None,
    ) -> list[Transaction]:
        """Transactions of a session within an inclusive date range, newest first"""
        self.resolver.resolve_role(session_id, requester_id)
        low = parse_instant(date_from) if date_from is not None else None
        high = parse_instant(date_to) if date_to is not None else None
        rows = self.repository.find(
            "transactions",
            {"session_id": session_id},
            ranges={"date": (low, high)},
            order_by=("-date", "-created_at"),
        )
        return [Transaction.model_validate(row) for row in rows]

    def get_transaction(self, transaction_id: str, requester_id: str) -> Transaction:
        row = self._load(transaction_id)
        self.resolver.resolve_role(row["session_id"], requester_id)
        return Transaction.model_validate(row)

    def update_transaction(
        self, transaction_id: str, command: UpdateTransaction, requester_id: str
    ) -> Transaction:
        """
        Patch a transaction

        Moving it to another session needs manage rights on both. Changing
        the date or the session re-resolves the budget; budget_id itself
        is never taken from the client.
        """
        current = self._load(transaction_id)
        self.resolver.require_manage(current["session_id"], requester_id)

        provided = command.provided()
        changes = {
            k: v
            for k, v in provided.items()
            if v is not None or k in NULLABLE_TRANSACTION_FIELDS
        }

        target_session = changes.get("session_id", current["session_id"])
        session_changed = target_session != current["session_id"]
        if session_changed:
            self.resolver.require_manage(target_session, requester_id)

        if {"session_id", "member_id", "bank_account_id"} & changes.keys():
            self.resolver.assert_coherence(
                target_session,
                member_id=changes.get("member_id", current["member_id"]),
                bank_account_id=changes.get("bank_account_id", current["bank_account_id"]),
            )

        with self.repository.transaction():
            if session_changed or "date" in changes:
                changes["budget_id"] = self.bucketing.resolve_budget(
                    target_session, changes.get("date", current["date"])
                )
            row = self.repository.update("transactions", transaction_id, changes) if changes else current
        if row is None:
            raise TransactionNotFound(transaction_id)
        return Transaction.model_validate(row)

    def delete_transaction(self, transaction_id: str, requester_id: str) -> Transaction:
        row = self._load(transaction_id)
        self.resolver.require_manage(row["session_id"], requester_id)
        self.repository.delete("transactions", transaction_id)
        return Transaction.model_validate(row)
