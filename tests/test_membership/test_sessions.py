"""
Tests for sessions and the user directory

Every owner has exactly one default session after any create or switch.
"""

import pytest

from household_ledger.kernel.errors import BadRequest, DuplicateRecord, OwnerOnly, SessionNotFound
from tests.helpers import COLLABORATOR, OWNER, VIEWER


def defaults_of(ledger, owner):
    return [s for s in ledger.list_sessions(owner) if s["is_default"]]


def test_first_session_is_default(ledger):
    session = ledger.create_session(OWNER, "Home")

    assert session["is_default"] is True
    assert session["owner_id"] == OWNER
    assert defaults_of(ledger, OWNER) == [session]


def test_new_session_takes_over_default(ledger):
    first = ledger.create_session(OWNER, "Home")
    second = ledger.create_session(OWNER, "Holidays")

    sessions = ledger.list_sessions(OWNER)
    assert [s["id"] for s in sessions] == [second["id"], first["id"]]
    assert [s["id"] for s in defaults_of(ledger, OWNER)] == [second["id"]]


def test_set_default_switches_exactly_one(ledger, test_time):
    first = ledger.create_session(OWNER, "Home")
    test_time.advance_seconds(1)
    ledger.create_session(OWNER, "Holidays")
    test_time.advance_seconds(1)
    ledger.create_session(OWNER, "Car")

    ledger.set_default_session(OWNER, first["id"])

    assert [s["id"] for s in defaults_of(ledger, OWNER)] == [first["id"]]


def test_defaults_are_per_owner(ledger):
    ledger.create_session(OWNER, "Home")
    ledger.create_session("zoe", "Zoe's")

    assert len(defaults_of(ledger, OWNER)) == 1
    assert len(defaults_of(ledger, "zoe")) == 1


def test_session_name_defaults_from_policy(ledger):
    assert ledger.create_session(OWNER)["name"] == "My budget"


def test_only_owner_sets_default(ledger, household):
    with pytest.raises(OwnerOnly):
        ledger.set_default_session(COLLABORATOR, household.session_id)


def test_rename_is_owner_only(ledger, household):
    renamed = ledger.update_session(OWNER, household.session_id, name="Flat")
    assert renamed["name"] == "Flat"

    with pytest.raises(OwnerOnly):
        ledger.update_session(COLLABORATOR, household.session_id, name="Mine now")
    with pytest.raises(BadRequest):
        ledger.update_session(OWNER, household.session_id, name="")


def test_members_can_read_session(ledger, household):
    assert ledger.get_session(VIEWER, household.session_id)["name"] == "Home"


def test_delete_session_cascades(ledger, household):
    ledger.create_transaction(
        COLLABORATOR,
        household.session_id,
        bank_account_id=household.account_id,
        type="OUTFLOW",
        label="Bread",
        amount="2.10",
        date="2025-01-10",
    )

    with pytest.raises(OwnerOnly):
        ledger.delete_session(COLLABORATOR, household.session_id)

    ledger.delete_session(OWNER, household.session_id)

    with pytest.raises(SessionNotFound):
        ledger.get_session(OWNER, household.session_id)
    for table in ("members", "bank_accounts", "budgets", "transactions"):
        assert ledger.repository.count(table) == 0


class TestUserDirectory:
    def test_register_and_find(self, ledger):
        user = ledger.register_user("Alice@Example.com", first_name="Alice")

        assert user["email"] == "alice@example.com"
        assert ledger.find_user_by_email("ALICE@example.com")["id"] == user["id"]
        assert ledger.find_user_by_email("nobody@example.com") is None

    def test_duplicate_email(self, ledger):
        ledger.register_user("alice@example.com")

        with pytest.raises(DuplicateRecord):
            ledger.register_user("ALICE@example.com")

    def test_invalid_email(self, ledger):
        with pytest.raises(BadRequest):
            ledger.register_user("alice")
