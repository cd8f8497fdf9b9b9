"""
Ledger - Main façade class

This is the primary interface of the household ledger. Each method is one
operation of the produced interface: it takes the id of the requesting
(already authenticated) user plus plain parameters, and returns plain
JSON-ready dicts. Amounts come back as decimal strings ("123.45"), dates
as ISO-8601 strings and months as "YYYY-MM".

Example:
    >>> from household_ledger import Ledger
    >>> ledger = Ledger("household.db")
    >>> session = ledger.create_session("alice", "Flat share")
    >>> bob = ledger.invite("alice", session["id"], invited_email="bob@example.com")
    >>> ledger.accept_invite("bob", bob["invite_token"])
    >>> ledger.summarize("bob", session["id"], "2025-03")

Errors are LedgerError subclasses of three kinds: NotFound, Forbidden and
BadRequest.
"""

import inspect
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any, ParamSpec, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from household_ledger.accounts.commands import (
    AddAccountMembers,
    CreateBankAccount,
    CreateExpense,
    CreateIncome,
    UpdateBankAccount,
    UpdateExpense,
    UpdateIncome,
)
from household_ledger.accounts.handlers import (
    BankAccountHandlers,
    ExpenseHandlers,
    IncomeHandlers,
)
from household_ledger.budget.bucketing import MonthBucketingResolver
from household_ledger.budget.commands import (
    CreateBudget,
    CreateTransaction,
    UpdateBudget,
    UpdateTransaction,
)
from household_ledger.budget.handlers import BudgetHandlers, TransactionHandlers
from household_ledger.budget.summary import LedgerAggregator
from household_ledger.kernel.errors import InvalidInput
from household_ledger.kernel.logging import LogOperation, get_logger
from household_ledger.kernel.metrics import track_operation
from household_ledger.kernel.policy import LedgerPolicy
from household_ledger.kernel.repository import SQLiteRepository
from household_ledger.kernel.time import RealTimeProvider, TimeProvider
from household_ledger.membership.authorization import AuthorizationResolver
from household_ledger.membership.commands import (
    ChangeRole,
    CreateSession,
    InviteMember,
    RegisterUser,
    UpdateMember,
    UpdateSession,
)
from household_ledger.membership.handlers import MemberHandlers, SessionHandlers, UserDirectory
from household_ledger.membership.models import InvitationStatus

logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

# Arguments worth a log field; everything else (amounts, labels, notes) stays out
LOGGED_ARGUMENTS = (
    "session_id",
    "member_id",
    "bank_account_id",
    "income_id",
    "expense_id",
    "budget_id",
    "transaction_id",
    "month",
)


def describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


def ledger_operation(name: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Wrap a façade method as a ledger operation

    - counts and times it (prometheus)
    - logs start/completion with the requester and ids involved
    - turns pydantic ValidationError into InvalidInput (BadRequest)
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        signature = inspect.signature(func)

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            arguments = signature.bind_partial(*args, **kwargs).arguments
            context = {k: arguments[k] for k in LOGGED_ARGUMENTS if k in arguments}
            # Only a named requester is bound: positional tokens and emails never are
            requester = arguments.get("requester_id", arguments.get("user_id"))
            bindings = {"requester_id": requester} if requester is not None else {}
            with structlog.contextvars.bound_contextvars(**bindings):
                with LogOperation(logger, name, **context):
                    try:
                        return func(*args, **kwargs)
                    except ValidationError as e:
                        raise InvalidInput(
                            describe_validation_error(e),
                            errors=[
                                {"loc": err["loc"], "msg": err["msg"], "type": err["type"]}
                                for err in e.errors()
                            ],
                        ) from None

        return track_operation(name)(wrapper)

    return decorator


def dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json")


def dump_all(models: list[Any]) -> list[dict[str, Any]]:
    return [dump(model) for model in models]


class Ledger:
    """
    Household ledger façade

    Provides a unified API for:
    - Sessions and the user directory
    - Members, roles and invitations
    - Bank accounts, planned incomes and expenses
    - Monthly budgets, transactions and summaries
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: LedgerPolicy | None = None,
        time_provider: TimeProvider | None = None,
    ) -> None:
        """
        Initialize the ledger

        Args:
            sqlite_path: Path to SQLite database (":memory:" for a throwaway ledger)
            policy: Ledger policy (uses defaults if None)
            time_provider: Time provider (uses real time if None)
        """
        self.sqlite_path = sqlite_path
        self.policy = policy or LedgerPolicy()
        self.time_provider = time_provider or RealTimeProvider()
        self.calendar = self.policy.calendar()

        # Infrastructure
        self.repository = SQLiteRepository(sqlite_path, self.time_provider)
        self.resolver = AuthorizationResolver(self.repository)
        self.users = UserDirectory(self.repository)
        self.bucketing = MonthBucketingResolver(self.repository, self.calendar)
        self.aggregator = LedgerAggregator(self.repository, self.calendar)

        # Handlers
        self.session_handlers = SessionHandlers(self.repository, self.resolver)
        self.member_handlers = MemberHandlers(
            self.repository, self.resolver, self.users, self.time_provider, self.policy
        )
        self.bank_handlers = BankAccountHandlers(self.repository, self.resolver)
        self.income_handlers = IncomeHandlers(self.repository, self.resolver)
        self.expense_handlers = ExpenseHandlers(self.repository, self.resolver)
        self.budget_handlers = BudgetHandlers(
            self.repository, self.resolver, self.bucketing, self.aggregator, self.time_provider
        )
        self.transaction_handlers = TransactionHandlers(
            self.repository, self.resolver, self.bucketing
        )

    def close(self) -> None:
        self.repository.close()

    # User directory

    @ledger_operation("register_user")
    def register_user(
        self, email: str, first_name: str | None = None, last_name: str | None = None
    ) -> dict[str, Any]:
        """
        Register a user in the directory

        Raises:
            DuplicateRecord: If the email is already registered
        """
        command = RegisterUser(email=email, first_name=first_name, last_name=last_name)
        return dump(self.users.register(command))

    def find_user_by_email(self, email: str) -> dict[str, Any] | None:
        user = self.users.find_by_email(email)
        return dump(user) if user else None

    # Authorization

    @ledger_operation("resolve_role")
    def resolve_role(self, session_id: str, user_id: str) -> str:
        """Effective role of a user: "OWNER", "COLLABORATOR" or "VIEWER" """
        return self.resolver.resolve_role(session_id, user_id).value

    @ledger_operation("require_manage")
    def require_manage(self, session_id: str, user_id: str) -> str:
        """Like resolve_role, but refuses VIEWER with Forbidden"""
        return self.resolver.require_manage(session_id, user_id).value

    # Sessions

    @ledger_operation("create_session")
    def create_session(self, requester_id: str, name: str | None = None) -> dict[str, Any]:
        """
        Create a session owned by the requester; it becomes their default

        Args:
            requester_id: Owner of the new session
            name: Session name (policy default if None)
        """
        command = CreateSession(name=name or self.policy.default_session_name)
        return dump(self.session_handlers.create_session(command, requester_id))

    @ledger_operation("list_sessions")
    def list_sessions(self, requester_id: str) -> list[dict[str, Any]]:
        """Sessions owned by the requester, default first"""
        return dump_all(self.session_handlers.list_sessions(requester_id))

    @ledger_operation("get_session")
    def get_session(self, requester_id: str, session_id: str) -> dict[str, Any]:
        return dump(self.session_handlers.get_session(session_id, requester_id))

    @ledger_operation("set_default_session")
    def set_default_session(self, requester_id: str, session_id: str) -> dict[str, Any]:
        return dump(self.session_handlers.set_default_session(session_id, requester_id))

    @ledger_operation("update_session")
    def update_session(self, requester_id: str, session_id: str, **changes: Any) -> dict[str, Any]:
        command = UpdateSession.model_validate(changes)
        return dump(self.session_handlers.update_session(session_id, command, requester_id))

    @ledger_operation("delete_session")
    def delete_session(self, requester_id: str, session_id: str) -> dict[str, Any]:
        """Delete a session and everything recorded in it (owner only)"""
        return dump(self.session_handlers.delete_session(session_id, requester_id))

    # Members and invitations

    @ledger_operation("invite")
    def invite(
        self,
        requester_id: str,
        session_id: str,
        *,
        user_id: str | None = None,
        invited_email: str | None = None,
        name: str | None = None,
        role: str | None = None,
    ) -> dict[str, Any]:
        """
        Add a member (owner only)

        Exactly one of user_id, invited_email or name. The result carries
        "invite_token" on the invited_email path only.

        Raises:
            OwnerOnly: If the requester is not the owner
            InvalidMemberIdentity / InvalidInput: If not exactly one identity
            DuplicateRecord: If the identity is already in the session
        """
        command = InviteMember(user_id=user_id, invited_email=invited_email, name=name, role=role)
        return dump(self.member_handlers.invite(session_id, command, requester_id))

    @ledger_operation("lookup_invite")
    def lookup_invite(self, token: str) -> dict[str, Any]:
        """Preview a pending invitation (never returns the token)"""
        return dump(self.member_handlers.lookup_invite(token))

    @ledger_operation("accept_invite")
    def accept_invite(self, requester_id: str, token: str) -> dict[str, Any]:
        """
        Accept an invitation as the requesting user

        Raises:
            InvitationNotFound: Unknown token
            InvitationAlreadyAccepted / InvitationAlreadyResolved: Already answered
        """
        return dump(self.member_handlers.accept_invite(token, requester_id))

    @ledger_operation("decline_invite")
    def decline_invite(self, token: str) -> dict[str, Any]:
        return dump(self.member_handlers.decline_invite(token))

    @ledger_operation("revoke_invite")
    def revoke_invite(self, requester_id: str, member_id: str) -> dict[str, Any]:
        return dump(self.member_handlers.revoke_invite(member_id, requester_id))

    @ledger_operation("change_role")
    def change_role(self, requester_id: str, member_id: str, role: str) -> dict[str, Any]:
        command = ChangeRole(role=role)
        return dump(self.member_handlers.change_role(member_id, command, requester_id))

    @ledger_operation("remove_member")
    def remove_member(self, requester_id: str, member_id: str) -> dict[str, Any]:
        return dump(self.member_handlers.remove_member(member_id, requester_id))

    @ledger_operation("update_member")
    def update_member(self, requester_id: str, member_id: str, **changes: Any) -> dict[str, Any]:
        command = UpdateMember.model_validate(changes)
        return dump(self.member_handlers.update_member(member_id, command, requester_id))

    @ledger_operation("list_members")
    def list_members(
        self, requester_id: str, session_id: str, status: str | None = None
    ) -> list[dict[str, Any]]:
        try:
            status_filter = InvitationStatus(status) if status is not None else None
        except ValueError:
            raise InvalidInput(f"Unknown invitation status {status!r}") from None
        return dump_all(
            self.member_handlers.list_members(session_id, requester_id, status_filter)
        )

    @ledger_operation("get_member")
    def get_member(self, requester_id: str, member_id: str) -> dict[str, Any]:
        return dump(self.member_handlers.get_member(member_id, requester_id))

    # Bank accounts

    @ledger_operation("create_bank_account")
    def create_bank_account(
        self,
        requester_id: str,
        session_id: str,
        label: str,
        bank_name: str | None = None,
        initial_balance: Any = "0.00",
        member_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        command = CreateBankAccount(
            label=label,
            bank_name=bank_name,
            initial_balance=initial_balance,
            member_ids=member_ids or [],
        )
        return dump(self.bank_handlers.create_bank_account(session_id, command, requester_id))

    @ledger_operation("list_bank_accounts")
    def list_bank_accounts(
        self, requester_id: str, session_id: str, include_archived: bool = True
    ) -> list[dict[str, Any]]:
        return dump_all(
            self.bank_handlers.list_bank_accounts(session_id, requester_id, include_archived)
        )

    @ledger_operation("get_bank_account")
    def get_bank_account(self, requester_id: str, bank_account_id: str) -> dict[str, Any]:
        return dump(self.bank_handlers.get_bank_account(bank_account_id, requester_id))

    @ledger_operation("update_bank_account")
    def update_bank_account(
        self, requester_id: str, bank_account_id: str, **changes: Any
    ) -> dict[str, Any]:
        command = UpdateBankAccount.model_validate(changes)
        return dump(self.bank_handlers.update_bank_account(bank_account_id, command, requester_id))

    @ledger_operation("delete_bank_account")
    def delete_bank_account(self, requester_id: str, bank_account_id: str) -> dict[str, Any]:
        """Delete a bank account together with its incomes, expenses and transactions"""
        return dump(self.bank_handlers.delete_bank_account(bank_account_id, requester_id))

    @ledger_operation("add_account_members")
    def add_account_members(
        self,
        requester_id: str,
        bank_account_id: str,
        member_id: str | None = None,
        member_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        command = AddAccountMembers(member_id=member_id, member_ids=member_ids or [])
        return dump(self.bank_handlers.add_account_members(bank_account_id, command, requester_id))

    @ledger_operation("remove_account_member")
    def remove_account_member(
        self, requester_id: str, bank_account_id: str, member_id: str
    ) -> dict[str, Any]:
        """
        Detach a member from a bank account

        Removing the last member DELETES the bank account, with its
        incomes, expenses and transactions. The result's "account_deleted"
        tells whether that happened.
        """
        return dump(
            self.bank_handlers.remove_account_member(bank_account_id, member_id, requester_id)
        )

    # Incomes

    @ledger_operation("create_income")
    def create_income(
        self,
        requester_id: str,
        session_id: str,
        *,
        member_id: str,
        bank_account_id: str,
        label: str,
        amount: Any,
        day: int,
    ) -> dict[str, Any]:
        command = CreateIncome(
            member_id=member_id,
            bank_account_id=bank_account_id,
            label=label,
            amount=amount,
            day=day,
        )
        return dump(self.income_handlers.create_income(session_id, command, requester_id))

    @ledger_operation("list_incomes")
    def list_incomes(self, requester_id: str, session_id: str) -> list[dict[str, Any]]:
        return dump_all(self.income_handlers.list_incomes(session_id, requester_id))

    @ledger_operation("get_income")
    def get_income(self, requester_id: str, income_id: str) -> dict[str, Any]:
        return dump(self.income_handlers.get(income_id, requester_id))

    @ledger_operation("update_income")
    def update_income(self, requester_id: str, income_id: str, **changes: Any) -> dict[str, Any]:
        command = UpdateIncome.model_validate(changes)
        return dump(self.income_handlers.update_income(income_id, command, requester_id))

    @ledger_operation("delete_income")
    def delete_income(self, requester_id: str, income_id: str) -> dict[str, Any]:
        return dump(self.income_handlers.delete(income_id, requester_id))

    # Expenses

    @ledger_operation("create_expense")
    def create_expense(
        self,
        requester_id: str,
        session_id: str,
        *,
        member_id: str,
        bank_account_id: str,
        label: str,
        amount: Any,
        day: int,
        category: str = "OTHER",
        is_archived: bool = False,
    ) -> dict[str, Any]:
        command = CreateExpense(
            member_id=member_id,
            bank_account_id=bank_account_id,
            label=label,
            amount=amount,
            day=day,
            category=category,
            is_archived=is_archived,
        )
        return dump(self.expense_handlers.create_expense(session_id, command, requester_id))

    @ledger_operation("list_expenses")
    def list_expenses(
        self, requester_id: str, session_id: str, include_archived: bool = True
    ) -> list[dict[str, Any]]:
        return dump_all(
            self.expense_handlers.list_expenses(session_id, requester_id, include_archived)
        )

    @ledger_operation("get_expense")
    def get_expense(self, requester_id: str, expense_id: str) -> dict[str, Any]:
        return dump(self.expense_handlers.get(expense_id, requester_id))

    @ledger_operation("update_expense")
    def update_expense(self, requester_id: str, expense_id: str, **changes: Any) -> dict[str, Any]:
        command = UpdateExpense.model_validate(changes)
        return dump(self.expense_handlers.update_expense(expense_id, command, requester_id))

    @ledger_operation("delete_expense")
    def delete_expense(self, requester_id: str, expense_id: str) -> dict[str, Any]:
        return dump(self.expense_handlers.delete(expense_id, requester_id))

    # Budgets and summaries

    @ledger_operation("create_budget")
    def create_budget(
        self,
        requester_id: str,
        session_id: str,
        month: str,
        opening_balance: Any = "0.00",
        notes: str | None = None,
        locked: bool = False,
    ) -> dict[str, Any]:
        """
        Raises:
            DuplicateRecord: If the month already has a budget
        """
        command = CreateBudget(
            month=month, opening_balance=opening_balance, notes=notes, locked=locked
        )
        return dump(self.budget_handlers.create_budget(session_id, command, requester_id))

    @ledger_operation("list_budgets")
    def list_budgets(
        self, requester_id: str, session_id: str, month: str | None = None
    ) -> list[dict[str, Any]]:
        return dump_all(self.budget_handlers.list_budgets(session_id, requester_id, month))

    @ledger_operation("get_budget")
    def get_budget(self, requester_id: str, budget_id: str) -> dict[str, Any]:
        return dump(self.budget_handlers.get_budget(budget_id, requester_id))

    @ledger_operation("update_budget")
    def update_budget(self, requester_id: str, budget_id: str, **changes: Any) -> dict[str, Any]:
        """
        Patch a budget

        While locked, only update_budget(..., locked=False) is accepted;
        anything else fails with BudgetLocked (Forbidden).
        """
        command = UpdateBudget.model_validate(changes)
        return dump(self.budget_handlers.update_budget(budget_id, command, requester_id))

    @ledger_operation("delete_budget")
    def delete_budget(self, requester_id: str, budget_id: str) -> dict[str, Any]:
        return dump(self.budget_handlers.delete_budget(budget_id, requester_id))

    @ledger_operation("resolve_budget")
    def resolve_budget(self, requester_id: str, session_id: str, date: str) -> str:
        """
        Id of the budget owning a date's civil month, created if missing

        Requires manage rights since it may create the budget.
        """
        self.resolver.require_manage(session_id, requester_id)
        try:
            return self.bucketing.resolve_budget(session_id, date)
        except ValueError as e:
            raise InvalidInput(f"Invalid date: {e}") from None

    @ledger_operation("summarize")
    def summarize(self, requester_id: str, session_id: str, month: str) -> dict[str, Any]:
        """Planned, actual and cleared totals of a month, as two-decimal strings"""
        return dump(self.budget_handlers.summarize(session_id, month, requester_id))

    @ledger_operation("summarize_current_month")
    def summarize_current_month(
        self, requester_id: str, session_id: str, create_if_missing: bool = False
    ) -> dict[str, Any]:
        return dump(
            self.budget_handlers.summarize_current_month(
                session_id, requester_id, create_if_missing
            )
        )

    # Transactions

    @ledger_operation("create_transaction")
    def create_transaction(
        self,
        requester_id: str,
        session_id: str,
        *,
        bank_account_id: str,
        type: str,
        label: str,
        amount: Any,
        date: Any,
        member_id: str | None = None,
        category: str | None = None,
        is_cleared: bool = False,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """
        Record a transaction; its budget is resolved from the date

        Args:
            type: "INFLOW" or "OUTFLOW"
            amount: Positive decimal (string, int or Decimal; never float)
            date: ISO-8601 date or datetime
        """
        command = CreateTransaction(
            bank_account_id=bank_account_id,
            member_id=member_id,
            type=type,
            label=label,
            amount=amount,
            date=date,
            category=category,
            is_cleared=is_cleared,
            notes=notes,
        )
        return dump(
            self.transaction_handlers.create_transaction(session_id, command, requester_id)
        )

    @ledger_operation("list_transactions")
    def list_transactions(
        self,
        requester_id: str,
        session_id: str,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> list[dict[str, Any]]:
        """Transactions between two dates (inclusive), newest first"""
        try:
            transactions = self.transaction_handlers.list_transactions(
                session_id, requester_id, date_from, date_to
            )
        except ValueError as e:
            raise InvalidInput(f"Invalid date range: {e}") from None
        return dump_all(transactions)

    @ledger_operation("get_transaction")
    def get_transaction(self, requester_id: str, transaction_id: str) -> dict[str, Any]:
        return dump(self.transaction_handlers.get_transaction(transaction_id, requester_id))

    @ledger_operation("update_transaction")
    def update_transaction(
        self, requester_id: str, transaction_id: str, **changes: Any
    ) -> dict[str, Any]:
        """
        Patch a transaction

        Pass member_id=None to detach the member; omit it to keep it.
        """
        command = UpdateTransaction.model_validate(changes)
        return dump(
            self.transaction_handlers.update_transaction(transaction_id, command, requester_id)
        )

    @ledger_operation("delete_transaction")
    def delete_transaction(self, requester_id: str, transaction_id: str) -> dict[str, Any]:
        return dump(self.transaction_handlers.delete_transaction(transaction_id, requester_id))
