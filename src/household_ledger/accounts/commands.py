"""
Accounts Commands - bank accounts, incomes and expenses

Day of month is 1-31 and is not checked against the length of any
particular month: "on the 31st" is a plan, not a date.
"""

from pydantic import Field, model_validator

from household_ledger.accounts.models import ExpenseCategory
from household_ledger.kernel.commands import Command, PatchCommand
from household_ledger.kernel.errors import InvalidInput
from household_ledger.kernel.money import ZERO, Amount, PositiveAmount


class CreateBankAccount(Command):
    """
    Create a bank account

    member_ids attaches members of the same session from the start.
    """

    label: str = Field(..., min_length=1, max_length=200)
    bank_name: str | None = Field(default=None, max_length=200)
    initial_balance: Amount = ZERO
    member_ids: list[str] = Field(default_factory=list)


class UpdateBankAccount(PatchCommand):
    label: str | None = Field(default=None, min_length=1, max_length=200)
    bank_name: str | None = Field(default=None, max_length=200)
    initial_balance: Amount | None = None
    is_archived: bool | None = None


class AddAccountMembers(Command):
    """Attach one member (member_id) or several (member_ids) to a bank account"""

    member_id: str | None = None
    member_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _at_least_one(self) -> "AddAccountMembers":
        if self.member_id is None and not self.member_ids:
            raise InvalidInput("Provide 'member_id' or 'member_ids'")
        return self

    def all_member_ids(self) -> list[str]:
        ids = list(self.member_ids)
        if self.member_id is not None:
            ids.append(self.member_id)
        return list(dict.fromkeys(ids))


class CreateIncome(Command):
    member_id: str
    bank_account_id: str
    label: str = Field(..., min_length=1, max_length=200)
    amount: PositiveAmount
    day: int = Field(..., ge=1, le=31)


class UpdateIncome(PatchCommand):
    """
    Patch an income

    Setting session_id moves the income to another session; the requester
    must be able to manage both.
    """

    session_id: str | None = None
    member_id: str | None = None
    bank_account_id: str | None = None
    label: str | None = Field(default=None, min_length=1, max_length=200)
    amount: PositiveAmount | None = None
    day: int | None = Field(default=None, ge=1, le=31)


class CreateExpense(Command):
    member_id: str
    bank_account_id: str
    label: str = Field(..., min_length=1, max_length=200)
    amount: PositiveAmount
    day: int = Field(..., ge=1, le=31)
    category: ExpenseCategory = ExpenseCategory.OTHER
    is_archived: bool = False


class UpdateExpense(PatchCommand):
    session_id: str | None = None
    member_id: str | None = None
    bank_account_id: str | None = None
    label: str | None = Field(default=None, min_length=1, max_length=200)
    amount: PositiveAmount | None = None
    day: int | None = Field(default=None, ge=1, le=31)
    category: ExpenseCategory | None = None
    is_archived: bool | None = None
