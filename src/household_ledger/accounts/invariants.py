"""
Accounts Invariants - membership of bank accounts
"""

from collections.abc import Iterable, Mapping
from typing import Any

from household_ledger.kernel.errors import CrossSessionReference, MemberNotFound


def validate_account_members(
    session_id: str, member_ids: Iterable[str], members: Mapping[str, Mapping[str, Any]]
) -> None:
    """
    Every member attached to a bank account belongs to the account's session

    Args:
        session_id: Session of the bank account
        member_ids: Members to attach
        members: Member rows found for those ids, keyed by id

    Raises:
        MemberNotFound: If an id has no member row
        CrossSessionReference: If a member belongs to another session
    """
    for member_id in member_ids:
        member = members.get(member_id)
        if member is None:
            raise MemberNotFound(member_id)
        if member["session_id"] != session_id:
            raise CrossSessionReference("member_ids", session_id)


def is_orphaned(remaining_links: int) -> bool:
    """A bank account without any member is pruned"""
    return remaining_links == 0
