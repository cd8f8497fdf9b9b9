"""
Tests for monthly budgets and the lock state machine

unlocked → locked → unlocked; while locked the only accepted patch is
exactly {locked: False}, and the budget cannot be deleted.
"""

import pytest

from household_ledger.kernel.errors import (
    BadRequest,
    BudgetInUse,
    BudgetLocked,
    BudgetNotFound,
    DuplicateRecord,
    Forbidden,
    InsufficientRole,
)
from household_ledger.kernel.metrics import budget_lock_rejections_total
from tests.helpers import COLLABORATOR, OWNER, VIEWER, add_transaction


@pytest.fixture
def march(ledger, household):
    return ledger.create_budget(
        COLLABORATOR, household.session_id, "2025-03", opening_balance="250.5", notes="Spring"
    )


def test_create_budget(march, household) -> None:
    assert march["session_id"] == household.session_id
    assert march["month"] == "2025-03"
    assert march["opening_balance"] == "250.50"
    assert march["locked"] is False


def test_one_budget_per_month(ledger, household, march) -> None:
    with pytest.raises(DuplicateRecord, match="2025-03"):
        ledger.create_budget(OWNER, household.session_id, "2025-03")


@pytest.mark.parametrize("month", ["2025-13", "2025-3", "March"])
def test_month_must_be_a_month_key(ledger, household, month) -> None:
    with pytest.raises(BadRequest):
        ledger.create_budget(OWNER, household.session_id, month)


def test_viewer_cannot_create(ledger, household) -> None:
    with pytest.raises(InsufficientRole):
        ledger.create_budget(VIEWER, household.session_id, "2025-04")


def test_list_newest_month_first(ledger, household, march) -> None:
    ledger.create_budget(OWNER, household.session_id, "2024-12")
    ledger.create_budget(OWNER, household.session_id, "2025-01")

    months = [b["month"] for b in ledger.list_budgets(VIEWER, household.session_id)]
    assert months == ["2025-03", "2025-01", "2024-12"]

    only = ledger.list_budgets(VIEWER, household.session_id, month="2025-01")
    assert [b["month"] for b in only] == ["2025-01"]


def test_list_rejects_bad_month_filter(ledger, household) -> None:
    with pytest.raises(BadRequest):
        ledger.list_budgets(OWNER, household.session_id, month="01/2025")


def test_update_unlocked_budget(ledger, march) -> None:
    updated = ledger.update_budget(OWNER, march["id"], opening_balance="300", notes=None)

    assert updated["opening_balance"] == "300.00"
    assert updated["notes"] is None


def test_moving_onto_an_existing_month(ledger, household, march) -> None:
    april = ledger.create_budget(OWNER, household.session_id, "2025-04")

    with pytest.raises(DuplicateRecord):
        ledger.update_budget(OWNER, april["id"], month="2025-03")


def test_empty_budget_can_change_month(ledger, march) -> None:
    moved = ledger.update_budget(OWNER, march["id"], month="2025-05")

    assert moved["month"] == "2025-05"


def test_month_change_refused_with_transactions(ledger, household) -> None:
    """Transactions stay in the month of their date"""
    tx = add_transaction(ledger, household, amount="100.00", date="2025-01-10", type="INFLOW")

    with pytest.raises(BudgetInUse):
        ledger.update_budget(OWNER, tx["budget_id"], month="2025-05")

    assert ledger.get_budget(OWNER, tx["budget_id"])["month"] == "2025-01"
    summary = ledger.summarize(OWNER, household.session_id, "2025-01")
    assert summary["actual_inflow"] == "100.00"


def test_same_month_patch_allowed_with_transactions(ledger, household) -> None:
    tx = add_transaction(ledger, household, amount="100.00", date="2025-01-10")

    updated = ledger.update_budget(OWNER, tx["budget_id"], month="2025-01", notes="January")

    assert updated["notes"] == "January"


class TestLockStateMachine:
    def test_lock_then_unlock(self, ledger, march) -> None:
        locked = ledger.update_budget(OWNER, march["id"], locked=True)
        assert locked["locked"] is True

        unlocked = ledger.update_budget(OWNER, march["id"], locked=False)
        assert unlocked["locked"] is False

        # Back to normal editing
        edited = ledger.update_budget(OWNER, march["id"], notes="Summer")
        assert edited["notes"] == "Summer"

    @pytest.mark.parametrize(
        "patch",
        [
            {"notes": "Changed"},
            {"opening_balance": "1.00"},
            {"locked": True},
            {"locked": False, "notes": "Sneaky"},
            {},
        ],
    )
    def test_locked_budget_refuses_other_patches(self, ledger, march, patch) -> None:
        ledger.update_budget(OWNER, march["id"], locked=True)
        before = budget_lock_rejections_total._value.get()

        with pytest.raises(BudgetLocked):
            ledger.update_budget(OWNER, march["id"], **patch)

        assert budget_lock_rejections_total._value.get() == before + 1
        assert ledger.get_budget(OWNER, march["id"])["notes"] == "Spring"

    def test_locked_is_forbidden_kind(self, ledger, march) -> None:
        ledger.update_budget(OWNER, march["id"], locked=True)

        with pytest.raises(Forbidden):
            ledger.delete_budget(OWNER, march["id"])

    def test_locked_budget_still_receives_transactions(self, ledger, household, march) -> None:
        ledger.update_budget(OWNER, march["id"], locked=True)

        tx = add_transaction(ledger, household, amount="9.99", date="2025-03-02")

        assert tx["budget_id"] == march["id"]


class TestDelete:
    def test_delete_empty_budget(self, ledger, march) -> None:
        deleted = ledger.delete_budget(OWNER, march["id"])

        assert deleted["id"] == march["id"]
        with pytest.raises(BudgetNotFound):
            ledger.get_budget(OWNER, march["id"])

    def test_delete_refused_while_locked(self, ledger, march) -> None:
        ledger.update_budget(OWNER, march["id"], locked=True)

        with pytest.raises(BudgetLocked):
            ledger.delete_budget(OWNER, march["id"])

    def test_delete_refused_with_transactions(self, ledger, household, march) -> None:
        add_transaction(ledger, household, amount="10.00", date="2025-03-10")

        with pytest.raises(BudgetInUse):
            ledger.delete_budget(OWNER, march["id"])

    def test_viewer_cannot_delete(self, ledger, march) -> None:
        with pytest.raises(InsufficientRole):
            ledger.delete_budget(VIEWER, march["id"])
