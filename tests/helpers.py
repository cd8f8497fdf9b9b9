"""
Test Helper Functions - Builders

Provides reusable builders for test data, so each test states only what
it is about. Follows the Builder pattern for test clarity.
"""

from dataclasses import dataclass
from typing import Any

from household_ledger.ledger import Ledger

OWNER = "alice"
COLLABORATOR = "bob"
VIEWER = "vic"
OUTSIDER = "mallory"


@dataclass
class Household:
    """Ids of a ready-made session"""

    session_id: str
    bob_member_id: str
    vic_member_id: str
    kid_member_id: str
    account_id: str


def build_household(ledger: Ledger, owner: str = OWNER, name: str = "Home") -> Household:
    """
    Builder for a session with one member of each kind of role

    - bob: linked user, COLLABORATOR
    - vic: linked user, VIEWER
    - Kid: placeholder, COLLABORATOR
    - one bank account "Joint" shared by bob and Kid
    """
    session = ledger.create_session(owner, name)
    session_id = session["id"]

    bob = ledger.invite(owner, session_id, user_id=COLLABORATOR, role="COLLABORATOR")
    vic = ledger.invite(owner, session_id, user_id=VIEWER, role="VIEWER")
    kid = ledger.invite(owner, session_id, name="Kid")

    account = ledger.create_bank_account(
        owner,
        session_id,
        "Joint",
        bank_name="Credit Mutuel",
        initial_balance="1500.00",
        member_ids=[bob["id"], kid["id"]],
    )

    return Household(
        session_id=session_id,
        bob_member_id=bob["id"],
        vic_member_id=vic["id"],
        kid_member_id=kid["id"],
        account_id=account["id"],
    )


def add_transaction(
    ledger: Ledger,
    household: Household,
    *,
    amount: str,
    date: str,
    type: str = "OUTFLOW",
    label: str = "Groceries",
    is_cleared: bool = False,
    requester: str = COLLABORATOR,
    **extra: Any,
) -> dict[str, Any]:
    """Builder for a transaction on the household's joint account"""
    return ledger.create_transaction(
        requester,
        household.session_id,
        bank_account_id=household.account_id,
        member_id=extra.pop("member_id", household.bob_member_id),
        type=type,
        label=label,
        amount=amount,
        date=date,
        is_cleared=is_cleared,
        **extra,
    )
