"""
Accounts Handlers - bank accounts, incomes and expenses

Every mutation goes through AuthorizationResolver.require_manage on the
record's session, and every read through resolve_role. Incomes and
expenses are checked for cross-entity coherence on each write: their
member and bank account must exist, sit in the same session, and the
member must have joined.

Bank account member cascade: detaching the last member from a bank
account deletes the account, together with the incomes, expenses and
transactions recorded on it.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from household_ledger.accounts.commands import (
    AddAccountMembers,
    CreateBankAccount,
    CreateExpense,
    CreateIncome,
    UpdateBankAccount,
    UpdateExpense,
    UpdateIncome,
)
from household_ledger.accounts.invariants import is_orphaned, validate_account_members
from household_ledger.accounts.models import (
    AccountMemberRemoval,
    BankAccount,
    Expense,
    Income,
)
from household_ledger.kernel.errors import (
    AccountMemberNotFound,
    BankAccountNotFound,
    DuplicateKey,
    DuplicateRecord,
    EntityNotFound,
    ExpenseNotFound,
    IncomeNotFound,
    ReferenceViolation,
)
from household_ledger.kernel.logging import get_logger
from household_ledger.kernel.metrics import bank_accounts_pruned_total
from household_ledger.kernel.repository import Record, Repository
from household_ledger.membership.authorization import AuthorizationResolver

logger = get_logger(__name__)


class BankAccountHandlers:
    """Bank accounts and their member associations"""

    def __init__(self, repository: Repository, resolver: AuthorizationResolver) -> None:
        self.repository = repository
        self.resolver = resolver

    def _load(self, bank_account_id: str) -> Record:
        row = self.repository.get("bank_accounts", bank_account_id)
        if row is None:
            raise BankAccountNotFound(bank_account_id)
        return row

    def _to_model(self, row: Record) -> BankAccount:
        links = self.repository.find(
            "bank_account_members", {"bank_account_id": row["id"]}, order_by=("created_at",)
        )
        return BankAccount.model_validate(
            {**row, "member_ids": [link["member_id"] for link in links]}
        )

    def _attach(self, session_id: str, bank_account_id: str, member_ids: list[str]) -> None:
        if not member_ids:
            return
        members = {
            row["id"]: row for row in self.repository.find("members", {"id": member_ids})
        }
        validate_account_members(session_id, member_ids, members)
        already = {
            link["member_id"]
            for link in self.repository.find(
                "bank_account_members", {"bank_account_id": bank_account_id}
            )
        }
        for member_id in member_ids:
            if member_id not in already:
                self.repository.insert(
                    "bank_account_members",
                    {"bank_account_id": bank_account_id, "member_id": member_id},
                )

    def create_bank_account(
        self, session_id: str, command: CreateBankAccount, requester_id: str
    ) -> BankAccount:
        self.resolver.require_manage(session_id, requester_id)
        member_ids = list(dict.fromkeys(command.member_ids))
        with self.repository.transaction():
            row = self.repository.insert(
                "bank_accounts",
                {
                    "session_id": session_id,
                    "label": command.label,
                    "bank_name": command.bank_name,
                    "initial_balance": command.initial_balance,
                },
            )
            self._attach(session_id, row["id"], member_ids)
        logger.info("Bank account created", session_id=session_id, bank_account_id=row["id"])
        return self._to_model(row)

    def list_bank_accounts(
        self, session_id: str, requester_id: str, include_archived: bool = True
    ) -> list[BankAccount]:
        self.resolver.resolve_role(session_id, requester_id)
        where: dict[str, Any] = {"session_id": session_id}
        if not include_archived:
            where["is_archived"] = False
        rows = self.repository.find("bank_accounts", where, order_by=("created_at", "id"))
        return [self._to_model(row) for row in rows]

    def get_bank_account(self, bank_account_id: str, requester_id: str) -> BankAccount:
        row = self._load(bank_account_id)
        self.resolver.resolve_role(row["session_id"], requester_id)
        return self._to_model(row)

    def update_bank_account(
        self, bank_account_id: str, command: UpdateBankAccount, requester_id: str
    ) -> BankAccount:
        row = self._load(bank_account_id)
        self.resolver.require_manage(row["session_id"], requester_id)
        changes = {k: v for k, v in command.provided().items() if k == "bank_name" or v is not None}
        if changes:
            row = self.repository.update("bank_accounts", bank_account_id, changes) or row
        return self._to_model(row)

    def delete_bank_account(self, bank_account_id: str, requester_id: str) -> BankAccount:
        """Delete a bank account with its incomes, expenses and transactions"""
        row = self._load(bank_account_id)
        self.resolver.require_manage(row["session_id"], requester_id)
        account = self._to_model(row)
        self.repository.delete("bank_accounts", bank_account_id)
        logger.info(
            "Bank account deleted", session_id=row["session_id"], bank_account_id=bank_account_id
        )
        return account

    def add_account_members(
        self, bank_account_id: str, command: AddAccountMembers, requester_id: str
    ) -> BankAccount:
        """
        Attach members of the account's session; already attached ones are skipped

        Raises:
            MemberNotFound: If a member does not exist
            CrossSessionReference: If a member belongs to another session
        """
        row = self._load(bank_account_id)
        self.resolver.require_manage(row["session_id"], requester_id)
        with self.repository.transaction():
            self._attach(row["session_id"], bank_account_id, command.all_member_ids())
        return self._to_model(row)

    def remove_account_member(
        self, bank_account_id: str, member_id: str, requester_id: str
    ) -> AccountMemberRemoval:
        """
        Detach a member from a bank account

        Destructive: when this was the last member, the bank account is
        deleted as well, along with everything recorded on it. The result
        says whether that happened.

        Raises:
            BankAccountNotFound: If the account does not exist
            AccountMemberNotFound: If the member is not attached
        """
        row = self._load(bank_account_id)
        self.resolver.require_manage(row["session_id"], requester_id)

        with self.repository.transaction():
            removed = self.repository.delete_where(
                "bank_account_members",
                {"bank_account_id": bank_account_id, "member_id": member_id},
            )
            if not removed:
                raise AccountMemberNotFound(bank_account_id, member_id)
            remaining = self.repository.count(
                "bank_account_members", {"bank_account_id": bank_account_id}
            )
            account_deleted = is_orphaned(remaining)
            if account_deleted:
                self.repository.delete("bank_accounts", bank_account_id)

        if account_deleted:
            bank_accounts_pruned_total.inc()
            logger.warning(
                "Bank account pruned after losing its last member",
                session_id=row["session_id"],
                bank_account_id=bank_account_id,
            )
        return AccountMemberRemoval(
            bank_account_id=bank_account_id,
            member_id=member_id,
            account_deleted=account_deleted,
        )


M = TypeVar("M", bound=BaseModel)


class PlannedFlowHandlers(Generic[M]):
    """
    Shared CRUD for planned incomes and expenses

    Uniqueness: (session, label, day, amount) identifies a line item, so
    the same rent entered twice is refused instead of being counted twice.
    """

    table: str
    model: type[M]
    not_found: type[EntityNotFound]
    noun: str

    def __init__(self, repository: Repository, resolver: AuthorizationResolver) -> None:
        self.repository = repository
        self.resolver = resolver

    def _load(self, record_id: str) -> Record:
        row = self.repository.get(self.table, record_id)
        if row is None:
            raise self.not_found(record_id)
        return row

    def _duplicate(self) -> DuplicateRecord:
        return DuplicateRecord(
            f"An {self.noun} with the same label, day and amount already exists in this session"
        )

    def _create(self, session_id: str, values: dict[str, Any], requester_id: str) -> M:
        self.resolver.require_manage(session_id, requester_id)
        self.resolver.assert_coherence(
            session_id,
            member_id=values["member_id"],
            bank_account_id=values["bank_account_id"],
        )
        try:
            row = self.repository.insert(self.table, {**values, "session_id": session_id})
        except DuplicateKey:
            raise self._duplicate() from None
        except ReferenceViolation:
            raise BankAccountNotFound(values["bank_account_id"]) from None
        logger.info(f"{self.noun.capitalize()} created", session_id=session_id, record_id=row["id"])
        return self.model.model_validate(row)

    def _update(self, record_id: str, changes: dict[str, Any], requester_id: str) -> M:
        row = self._load(record_id)
        self.resolver.require_manage(row["session_id"], requester_id)

        target_session = changes.get("session_id") or row["session_id"]
        if target_session != row["session_id"]:
            self.resolver.require_manage(target_session, requester_id)

        references_changed = {"session_id", "member_id", "bank_account_id"} & changes.keys()
        if references_changed:
            self.resolver.assert_coherence(
                target_session,
                member_id=changes.get("member_id") or row["member_id"],
                bank_account_id=changes.get("bank_account_id") or row["bank_account_id"],
            )

        if not changes:
            return self.model.model_validate(row)
        try:
            updated = self.repository.update(self.table, record_id, changes)
        except DuplicateKey:
            raise self._duplicate() from None
        if updated is None:
            raise self.not_found(record_id)
        return self.model.model_validate(updated)

    def _list(self, session_id: str, requester_id: str, where: dict[str, Any]) -> list[M]:
        self.resolver.resolve_role(session_id, requester_id)
        rows = self.repository.find(
            self.table, {"session_id": session_id, **where}, order_by=("day", "created_at")
        )
        return [self.model.model_validate(row) for row in rows]

    def get(self, record_id: str, requester_id: str) -> M:
        row = self._load(record_id)
        self.resolver.resolve_role(row["session_id"], requester_id)
        return self.model.model_validate(row)

    def delete(self, record_id: str, requester_id: str) -> M:
        row = self._load(record_id)
        self.resolver.require_manage(row["session_id"], requester_id)
        self.repository.delete(self.table, record_id)
        return self.model.model_validate(row)


class IncomeHandlers(PlannedFlowHandlers[Income]):
    table = "incomes"
    model = Income
    not_found = IncomeNotFound
    noun = "income"

    def create_income(self, session_id: str, command: CreateIncome, requester_id: str) -> Income:
        return self._create(session_id, command.model_dump(), requester_id)

    def update_income(self, income_id: str, command: UpdateIncome, requester_id: str) -> Income:
        changes = {k: v for k, v in command.provided().items() if v is not None}
        return self._update(income_id, changes, requester_id)

    def list_incomes(self, session_id: str, requester_id: str) -> list[Income]:
        return self._list(session_id, requester_id, {})


class ExpenseHandlers(PlannedFlowHandlers[Expense]):
    table = "expenses"
    model = Expense
    not_found = ExpenseNotFound
    noun = "expense"

    def create_expense(
        self, session_id: str, command: CreateExpense, requester_id: str
    ) -> Expense:
        return self._create(session_id, command.model_dump(), requester_id)

    def update_expense(
        self, expense_id: str, command: UpdateExpense, requester_id: str
    ) -> Expense:
        changes = {k: v for k, v in command.provided().items() if v is not None}
        return self._update(expense_id, changes, requester_id)

    def list_expenses(
        self, session_id: str, requester_id: str, include_archived: bool = True
    ) -> list[Expense]:
        where: dict[str, Any] = {} if include_archived else {"is_archived": False}
        return self._list(session_id, requester_id, where)
