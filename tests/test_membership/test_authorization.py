"""
Tests for the authorization resolver

resolve_role: OWNER for the owner, the stored role for an accepted member,
Forbidden for anyone else. require_manage refuses exactly VIEWER.
"""

import pytest

from household_ledger.kernel.errors import (
    CrossSessionReference,
    Forbidden,
    InsufficientRole,
    MemberNotAccepted,
    MemberNotFound,
    NotAParticipant,
    SessionNotFound,
)
from tests.helpers import COLLABORATOR, OUTSIDER, OWNER, VIEWER, build_household


def test_owner_resolves_to_owner(ledger, household):
    assert ledger.resolve_role(household.session_id, OWNER) == "OWNER"


def test_members_resolve_to_stored_role(ledger, household):
    assert ledger.resolve_role(household.session_id, COLLABORATOR) == "COLLABORATOR"
    assert ledger.resolve_role(household.session_id, VIEWER) == "VIEWER"


def test_outsider_is_forbidden(ledger, household):
    with pytest.raises(NotAParticipant):
        ledger.resolve_role(household.session_id, OUTSIDER)


def test_unknown_session_is_not_found(ledger):
    with pytest.raises(SessionNotFound):
        ledger.resolve_role("no-such-session", OWNER)


def test_pending_invitee_is_not_a_participant(ledger, household):
    ledger.invite(OWNER, household.session_id, invited_email="carol@example.com")

    with pytest.raises(Forbidden):
        ledger.resolve_role(household.session_id, "carol")


@pytest.mark.parametrize("user,allowed", [(OWNER, True), (COLLABORATOR, True), (VIEWER, False)])
def test_require_manage_refuses_only_viewer(ledger, household, user, allowed):
    if allowed:
        assert ledger.require_manage(household.session_id, user) in ("OWNER", "COLLABORATOR")
    else:
        with pytest.raises(InsufficientRole):
            ledger.require_manage(household.session_id, user)


def test_viewer_can_read_but_not_write(ledger, household):
    assert ledger.list_bank_accounts(VIEWER, household.session_id)
    assert ledger.summarize(VIEWER, household.session_id, "2025-01")["month"] == "2025-01"

    with pytest.raises(Forbidden):
        ledger.create_bank_account(VIEWER, household.session_id, "Savings")
    with pytest.raises(Forbidden):
        ledger.create_budget(VIEWER, household.session_id, "2025-02")


class TestCoherence:
    """Financial records must point at members and accounts of their own session"""

    def test_member_from_another_session(self, ledger, household):
        other = build_household(ledger, owner="zoe", name="Other")

        with pytest.raises(CrossSessionReference):
            ledger.create_income(
                OWNER,
                household.session_id,
                member_id=other.bob_member_id,
                bank_account_id=household.account_id,
                label="Salary",
                amount="2000.00",
                day=1,
            )

    def test_bank_account_from_another_session(self, ledger, household):
        other = build_household(ledger, owner="zoe", name="Other")

        with pytest.raises(CrossSessionReference):
            ledger.create_expense(
                OWNER,
                household.session_id,
                member_id=household.bob_member_id,
                bank_account_id=other.account_id,
                label="Rent",
                amount="700.00",
                day=5,
            )

    def test_pending_member_cannot_carry_records(self, ledger, household):
        pending = ledger.invite(OWNER, household.session_id, invited_email="carol@example.com")

        with pytest.raises(MemberNotAccepted):
            ledger.create_income(
                OWNER,
                household.session_id,
                member_id=pending["id"],
                bank_account_id=household.account_id,
                label="Salary",
                amount="2000.00",
                day=1,
            )

    def test_declined_member_cannot_carry_records(self, ledger, household):
        invited = ledger.invite(OWNER, household.session_id, invited_email="dora@example.com")
        ledger.decline_invite(invited["invite_token"])

        with pytest.raises(MemberNotAccepted, match="DECLINED"):
            ledger.create_transaction(
                COLLABORATOR,
                household.session_id,
                bank_account_id=household.account_id,
                member_id=invited["id"],
                type="OUTFLOW",
                label="Coffee",
                amount="3.20",
                date="2025-01-10",
            )

    def test_dangling_member(self, ledger, household):
        with pytest.raises(MemberNotFound):
            ledger.create_transaction(
                COLLABORATOR,
                household.session_id,
                bank_account_id=household.account_id,
                member_id="ghost",
                type="OUTFLOW",
                label="Coffee",
                amount="3.20",
                date="2025-01-10",
            )
