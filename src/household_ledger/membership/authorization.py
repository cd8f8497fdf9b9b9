"""
Authorization Resolver - session-scoped roles

Every operation on session data goes through this gate: reads need a
resolved role (VIEWER is enough), writes need require_manage (OWNER or
COLLABORATOR). The effective role has two sources, the session's owner
column and the accepted member rows, and this is the only place that
knows about both.

Resolution never writes anything.
"""

from household_ledger.kernel.errors import (
    BankAccountNotFound,
    CrossSessionReference,
    InsufficientRole,
    MemberNotAccepted,
    MemberNotFound,
    NotAParticipant,
    OwnerOnly,
    SessionNotFound,
)
from household_ledger.kernel.metrics import authorization_denials_total
from household_ledger.kernel.repository import Repository
from household_ledger.membership.models import InvitationStatus, Member, Role, Session


class AuthorizationResolver:
    """
    Resolves (session_id, user_id) to an effective role

    - the session owner resolves to OWNER
    - an ACCEPTED member linked to the user resolves to its stored role
    - anybody else is refused with NotAParticipant
    """

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    def get_session(self, session_id: str) -> Session:
        """
        Raises:
            SessionNotFound: If the session does not exist
        """
        row = self.repository.get("sessions", session_id)
        if row is None:
            raise SessionNotFound(session_id)
        return Session.model_validate(row)

    def resolve_role(self, session_id: str, user_id: str) -> Role:
        """
        Effective role of a user in a session

        Raises:
            SessionNotFound: If the session does not exist
            NotAParticipant: If the user is neither owner nor accepted member
        """
        session = self.get_session(session_id)
        if session.owner_id == user_id:
            return Role.OWNER

        row = self.repository.find_one(
            "members",
            {
                "session_id": session_id,
                "user_id": user_id,
                "invitation_status": InvitationStatus.ACCEPTED,
            },
        )
        if row is None:
            authorization_denials_total.labels(reason="not_participant").inc()
            raise NotAParticipant(session_id, user_id)
        return Role(row["role"])

    def require_manage(self, session_id: str, user_id: str, action: str = "manage") -> Role:
        """
        Gate for every mutation of session records

        Raises:
            SessionNotFound: If the session does not exist
            NotAParticipant: If the user is not a participant
            InsufficientRole: If the user is a VIEWER
        """
        role = self.resolve_role(session_id, user_id)
        if not role.can_manage:
            authorization_denials_total.labels(reason="viewer_read_only").inc()
            raise InsufficientRole(session_id, role.value, action)
        return role

    def require_owner(self, session_id: str, user_id: str, action: str) -> Session:
        """
        Gate for operations reserved to the session owner

        Raises:
            SessionNotFound: If the session does not exist
            OwnerOnly: If the user is not the owner
        """
        session = self.get_session(session_id)
        if session.owner_id != user_id:
            authorization_denials_total.labels(reason="owner_only").inc()
            raise OwnerOnly(session_id, action)
        return session

    def get_member(self, member_id: str) -> Member:
        row = self.repository.get("members", member_id)
        if row is None:
            raise MemberNotFound(member_id)
        return Member.model_validate(row)

    def assert_coherence(
        self,
        session_id: str,
        *,
        member_id: str | None = None,
        bank_account_id: str | None = None,
    ) -> None:
        """
        Cross-entity check for financial records

        The member and bank account a record points at must exist, belong
        to the record's session, and the member must have joined.

        Raises:
            MemberNotFound / BankAccountNotFound: If a reference is dangling
            CrossSessionReference: If a reference belongs to another session
            MemberNotAccepted: If the member's invitation is not ACCEPTED
        """
        if member_id is not None:
            member = self.get_member(member_id)
            if member.session_id != session_id:
                raise CrossSessionReference("member_id", session_id)
            if not member.is_participant:
                raise MemberNotAccepted(member_id, member.invitation_status.value)

        if bank_account_id is not None:
            account = self.repository.get("bank_accounts", bank_account_id)
            if account is None:
                raise BankAccountNotFound(bank_account_id)
            if account["session_id"] != session_id:
                raise CrossSessionReference("bank_account_id", session_id)
