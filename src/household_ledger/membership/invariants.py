"""
Membership Invariants - rules of the invitation state machine

Pure functions: they look only at the models they are given and raise a
typed error when a rule is broken.
"""

from household_ledger.kernel.errors import (
    DuplicateRecord,
    InvalidInput,
    InvitationAlreadyAccepted,
    InvitationAlreadyResolved,
    MemberAlreadyLinked,
    OwnerOnly,
)
from household_ledger.membership.models import InvitationStatus, Member, Role, Session


def validate_not_owner(session: Session, user_id: str) -> None:
    """
    The owner holds the implicit OWNER role and is never stored as a member

    Raises:
        DuplicateRecord: If user_id is the session owner
    """
    if session.owner_id == user_id:
        raise DuplicateRecord(
            f"User {user_id} owns session {session.id} and is already a participant"
        )


def validate_role_change(
    session_id: str, requester_role: Role, current_role: Role, new_role: Role
) -> None:
    """
    Only the session owner may grant or revoke the OWNER role

    Collaborators may move members between COLLABORATOR and VIEWER, but
    the moment OWNER is on either side of the change the owner must be the
    one asking.

    Raises:
        OwnerOnly: If OWNER is involved and the requester is not the owner
    """
    if Role.OWNER in (current_role, new_role) and requester_role is not Role.OWNER:
        raise OwnerOnly(session_id, "grant or revoke the OWNER role")


def validate_revocable(member: Member) -> None:
    """
    Only pending, unconsumed invitations can be revoked

    Raises:
        MemberAlreadyLinked: If the member is accepted or tied to a user
    """
    if member.invitation_status is InvitationStatus.ACCEPTED or member.user_id is not None:
        raise MemberAlreadyLinked(member.id)


def validate_invitation_open(member: Member) -> None:
    """
    An invitation can be answered once

    Raises:
        InvitationAlreadyAccepted: If the invitation was accepted
        InvitationAlreadyResolved: If the invitation was declined
    """
    if member.invitation_status is InvitationStatus.ACCEPTED:
        raise InvitationAlreadyAccepted()
    if member.invitation_status is InvitationStatus.DECLINED:
        raise InvitationAlreadyResolved()


def validate_renamable(member: Member) -> None:
    """Names belong to placeholders; linked and invited members are named by their account"""
    if not member.is_placeholder:
        raise InvalidInput(f"Member {member.id} is not a placeholder and cannot be renamed")
