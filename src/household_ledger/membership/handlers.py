"""
Membership Handlers - sessions, user directory and the invitation state machine

Handlers are the decision-making layer. They:
1. Authorize the requester through the AuthorizationResolver
2. Validate invariants
3. Write through the repository, inside one transaction when several
   rows must change together
4. Return read models

Atomic sequences:
- create_session / set_default_session: demote the owner's default, then
  promote one session
- accept_invite: merge into an existing membership and delete the
  invitation row, or convert the invitation row in place
"""

from household_ledger.kernel.errors import (
    DuplicateKey,
    DuplicateRecord,
    InvitationAlreadyAccepted,
    InvitationAlreadyResolved,
    InvitationNotFound,
    MemberNotFound,
    SessionNotFound,
)
from household_ledger.kernel.ids import generate_invite_token, token_digest
from household_ledger.kernel.logging import get_logger
from household_ledger.kernel.metrics import invitation_transitions_total
from household_ledger.kernel.policy import LedgerPolicy
from household_ledger.kernel.repository import Repository
from household_ledger.kernel.time import TimeProvider
from household_ledger.membership.authorization import AuthorizationResolver
from household_ledger.membership.commands import (
    ChangeRole,
    CreateSession,
    InviteMember,
    RegisterUser,
    UpdateMember,
    UpdateSession,
)
from household_ledger.membership.invariants import (
    validate_invitation_open,
    validate_not_owner,
    validate_renamable,
    validate_revocable,
    validate_role_change,
)
from household_ledger.membership.models import (
    InvitationStatus,
    InvitePreview,
    Member,
    MemberWithToken,
    Role,
    Session,
    User,
)

logger = get_logger(__name__)


class UserDirectory:
    """
    Known users, by email

    Credentials are handled by the identity collaborator; the directory
    only lets an email invitation be matched to an existing account.
    """

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    def register(self, command: RegisterUser) -> User:
        try:
            row = self.repository.insert("users", command.model_dump())
        except DuplicateKey:
            raise DuplicateRecord("A user with this email already exists") from None
        return User.model_validate(row)

    def find_by_email(self, email: str) -> User | None:
        row = self.repository.find_one("users", {"email": email.strip().lower()})
        return User.model_validate(row) if row else None

    def get(self, user_id: str) -> User | None:
        row = self.repository.get("users", user_id)
        return User.model_validate(row) if row else None


class SessionHandlers:
    """Session lifecycle; rename, default switch and deletion are owner-only"""

    def __init__(self, repository: Repository, resolver: AuthorizationResolver) -> None:
        self.repository = repository
        self.resolver = resolver

    def create_session(self, command: CreateSession, owner_id: str) -> Session:
        """
        Create a session and make it the owner's default

        The demotion of the previous default and the insert happen in one
        transaction, so an owner never ends up with two defaults.
        """
        with self.repository.transaction():
            self.repository.update_where(
                "sessions", {"owner_id": owner_id, "is_default": True}, {"is_default": False}
            )
            row = self.repository.insert(
                "sessions", {"owner_id": owner_id, "name": command.name, "is_default": True}
            )
        logger.info("Session created", session_id=row["id"], owner_id=owner_id)
        return Session.model_validate(row)

    def list_sessions(self, owner_id: str) -> list[Session]:
        """Sessions owned by the user, default first"""
        rows = self.repository.find(
            "sessions", {"owner_id": owner_id}, order_by=("-is_default", "created_at")
        )
        return [Session.model_validate(row) for row in rows]

    def get_session(self, session_id: str, requester_id: str) -> Session:
        self.resolver.resolve_role(session_id, requester_id)
        return self.resolver.get_session(session_id)

    def set_default_session(self, session_id: str, requester_id: str) -> Session:
        """
        Make one of the owner's sessions the default

        Raises:
            SessionNotFound: If the session does not exist
            OwnerOnly: If the requester does not own it
        """
        with self.repository.transaction():
            session = self.resolver.require_owner(session_id, requester_id, "make it the default")
            self.repository.update_where(
                "sessions",
                {"owner_id": session.owner_id, "is_default": True},
                {"is_default": False},
            )
            row = self.repository.update("sessions", session_id, {"is_default": True})
        if row is None:
            raise SessionNotFound(session_id)
        return Session.model_validate(row)

    def update_session(
        self, session_id: str, command: UpdateSession, requester_id: str
    ) -> Session:
        session = self.resolver.require_owner(session_id, requester_id, "rename it")
        changes = {k: v for k, v in command.provided().items() if v is not None}
        if not changes:
            return session
        row = self.repository.update("sessions", session_id, changes)
        if row is None:
            raise SessionNotFound(session_id)
        return Session.model_validate(row)

    def delete_session(self, session_id: str, requester_id: str) -> Session:
        """
        Delete a session and everything recorded in it

        Members, bank accounts, incomes, expenses, budgets and transactions
        go with it.
        """
        session = self.resolver.require_owner(session_id, requester_id, "delete it")
        self.repository.delete("sessions", session_id)
        logger.info("Session deleted", session_id=session_id)
        return session


class MemberHandlers:
    """
    Member management and the invitation state machine

    States: PENDING → ACCEPTED | DECLINED. Linked and placeholder members
    start ACCEPTED. Consumed tokens are remembered as digests so a second
    answer to the same invitation is told apart from an unknown token.
    """

    def __init__(
        self,
        repository: Repository,
        resolver: AuthorizationResolver,
        users: UserDirectory,
        time_provider: TimeProvider,
        policy: LedgerPolicy,
    ) -> None:
        self.repository = repository
        self.resolver = resolver
        self.users = users
        self.time_provider = time_provider
        self.policy = policy

    # Creation

    def invite(
        self, session_id: str, command: InviteMember, requester_id: str
    ) -> Member | MemberWithToken:
        """
        Add a member in one of the three identity shapes

        Only the session owner may invite. The invitation token is returned
        on the email path only, and never again afterwards.

        Raises:
            SessionNotFound: If the session does not exist
            OwnerOnly: If the requester is not the owner
            DuplicateRecord: If the identity is already present in the session
        """
        role = command.role or Role(self.policy.default_member_role)

        with self.repository.transaction():
            session = self.resolver.require_owner(session_id, requester_id, "invite members")
            if command.user_id is not None:
                member = self._link_user(session, command.user_id, role)
                transition = "linked"
            elif command.invited_email is not None:
                member = self._invite_email(session, command.invited_email, role)
                transition = "invited"
            else:
                member = self._add_placeholder(session, command.name or "", role)
                transition = "placeholder"

        invitation_transitions_total.labels(transition=transition).inc()
        logger.info(
            "Member added",
            session_id=session_id,
            member_id=member.id,
            identity=member.identity.value,
            role=role.value,
        )
        return member

    def _link_user(self, session: Session, user_id: str, role: Role) -> Member:
        validate_not_owner(session, user_id)
        if self.repository.find_one("members", {"session_id": session.id, "user_id": user_id}):
            raise DuplicateRecord(f"User {user_id} is already a member of session {session.id}")
        now = self.time_provider.now()
        row = self._insert_member(
            {
                "session_id": session.id,
                "user_id": user_id,
                "role": role,
                "invitation_status": InvitationStatus.ACCEPTED,
                "is_placeholder": False,
                "accepted_at": now,
            }
        )
        return Member.model_validate(row)

    def _invite_email(self, session: Session, email: str, role: Role) -> MemberWithToken:
        user = self.users.find_by_email(email)
        if user is not None:
            validate_not_owner(session, user.id)
            if self.repository.find_one(
                "members",
                {
                    "session_id": session.id,
                    "user_id": user.id,
                    "invitation_status": InvitationStatus.ACCEPTED,
                },
            ):
                raise DuplicateRecord(
                    f"The invited email already belongs to a member of session {session.id}"
                )
        if self.repository.find_one(
            "members",
            {
                "session_id": session.id,
                "invited_email": email,
                "invitation_status": InvitationStatus.PENDING,
            },
        ):
            raise DuplicateRecord(
                f"An invitation for this email is already pending in session {session.id}"
            )

        token = generate_invite_token(self.policy.invite_token_bytes)
        row = self._insert_member(
            {
                "session_id": session.id,
                "invited_email": email,
                "role": role,
                "invitation_status": InvitationStatus.PENDING,
                "invite_token": token,
                "is_placeholder": False,
                "invited_at": self.time_provider.now(),
            }
        )
        return MemberWithToken.model_validate(row)

    def _add_placeholder(self, session: Session, name: str, role: Role) -> Member:
        if self.repository.find_one(
            "members", {"session_id": session.id, "name": name, "is_placeholder": True}
        ):
            raise DuplicateRecord(f"A member named {name!r} already exists in this session")
        row = self._insert_member(
            {
                "session_id": session.id,
                "name": name,
                "role": role,
                "invitation_status": InvitationStatus.ACCEPTED,
                "is_placeholder": True,
                "accepted_at": self.time_provider.now(),
            }
        )
        return Member.model_validate(row)

    def _insert_member(self, values: dict) -> dict:
        try:
            return self.repository.insert("members", values)
        except DuplicateKey as e:
            raise DuplicateRecord(
                f"This member already exists in the session ({', '.join(e.columns)})"
            ) from None

    # Invitation answers

    def lookup_invite(self, token: str) -> InvitePreview:
        """
        Public preview of a pending invitation

        Raises:
            InvitationNotFound: If no invitation was ever issued with this token
            InvitationAlreadyAccepted / InvitationAlreadyResolved: If already answered
        """
        member = self._pending_by_token(token)
        session = self.resolver.get_session(member.session_id)
        return InvitePreview(
            member_id=member.id,
            session_id=session.id,
            session_name=session.name,
            role=member.role,
            invited_email=member.invited_email,
            invited_at=member.invited_at,
        )

    def accept_invite(self, token: str, user_id: str) -> Member:
        """
        Consume an invitation token for a user

        If the user already has a membership row in the session, that row
        becomes ACCEPTED (keeping its first accepted_at) and the invitation
        row is deleted. Otherwise the invitation row itself is linked to
        the user. Both paths run in one transaction.

        Raises:
            InvitationNotFound: If the token was never issued
            InvitationAlreadyAccepted: If the token was already accepted
            InvitationAlreadyResolved: If the token was declined
            DuplicateRecord: If the user owns the session
        """
        now = self.time_provider.now()
        with self.repository.transaction():
            invitation = self._pending_by_token(token)
            session = self.resolver.get_session(invitation.session_id)
            validate_not_owner(session, user_id)

            existing = self.repository.find_one(
                "members", {"session_id": session.id, "user_id": user_id}
            )
            if existing is not None and existing["id"] != invitation.id:
                row = self.repository.update(
                    "members",
                    existing["id"],
                    {
                        "invitation_status": InvitationStatus.ACCEPTED,
                        "accepted_at": existing["accepted_at"] or now,
                        "is_placeholder": False,
                    },
                )
                self.repository.delete("members", invitation.id)
                transition = "merged"
            else:
                row = self.repository.update(
                    "members",
                    invitation.id,
                    {
                        "user_id": user_id,
                        "invitation_status": InvitationStatus.ACCEPTED,
                        "accepted_at": now,
                        "is_placeholder": False,
                        "invite_token": None,
                    },
                )
                transition = "accepted"
            if row is None:
                raise MemberNotFound(invitation.id)
            self._record_receipt(token, session.id, row["id"], InvitationStatus.ACCEPTED)

        invitation_transitions_total.labels(transition=transition).inc()
        logger.info("Invitation accepted", session_id=session.id, member_id=row["id"])
        return Member.model_validate(row)

    def decline_invite(self, token: str) -> Member:
        """
        Decline an invitation; the token stops working for good

        Raises:
            InvitationNotFound: If the token was never issued
            InvitationAlreadyAccepted: If the token was already accepted
            InvitationAlreadyResolved: If the token was already declined
        """
        with self.repository.transaction():
            invitation = self._pending_by_token(token)
            row = self.repository.update(
                "members",
                invitation.id,
                {
                    "invitation_status": InvitationStatus.DECLINED,
                    "invite_token": None,
                    "accepted_at": None,
                },
            )
            if row is None:
                raise MemberNotFound(invitation.id)
            self._record_receipt(
                token, invitation.session_id, invitation.id, InvitationStatus.DECLINED
            )

        invitation_transitions_total.labels(transition="declined").inc()
        logger.info("Invitation declined", session_id=invitation.session_id, member_id=invitation.id)
        return Member.model_validate(row)

    def _pending_by_token(self, token: str) -> Member:
        row = self.repository.find_one("members", {"invite_token": token})
        if row is None:
            receipt = self.repository.find_one(
                "invite_receipts", {"token_digest": token_digest(token)}
            )
            if receipt is None:
                raise InvitationNotFound()
            if receipt["outcome"] == InvitationStatus.ACCEPTED.value:
                raise InvitationAlreadyAccepted()
            raise InvitationAlreadyResolved()
        member = Member.model_validate(row)
        validate_invitation_open(member)
        return member

    def _record_receipt(
        self, token: str, session_id: str, member_id: str, outcome: InvitationStatus
    ) -> None:
        self.repository.insert(
            "invite_receipts",
            {
                "token_digest": token_digest(token),
                "session_id": session_id,
                "member_id": member_id,
                "outcome": outcome,
            },
        )

    # Management

    def revoke_invite(self, member_id: str, requester_id: str) -> Member:
        """
        Delete a pending invitation

        Raises:
            MemberNotFound: If the member does not exist
            Forbidden: If the requester cannot manage the session
            MemberAlreadyLinked: If the member already joined or is tied to a user
        """
        with self.repository.transaction():
            member = self.resolver.get_member(member_id)
            self.resolver.require_manage(member.session_id, requester_id, "revoke invitations")
            validate_revocable(member)
            self.repository.delete("members", member_id)

        invitation_transitions_total.labels(transition="revoked").inc()
        logger.info("Invitation revoked", session_id=member.session_id, member_id=member_id)
        return member

    def change_role(self, member_id: str, command: ChangeRole, requester_id: str) -> Member:
        """
        Change a member's role

        Collaborators may switch members between COLLABORATOR and VIEWER;
        any change involving OWNER requires the session owner.

        Raises:
            MemberNotFound: If the member does not exist
            NotAParticipant / InsufficientRole: If the requester cannot manage
            OwnerOnly: If OWNER is involved and the requester is not the owner
        """
        with self.repository.transaction():
            member = self.resolver.get_member(member_id)
            requester_role = self.resolver.require_manage(
                member.session_id, requester_id, "change roles"
            )
            validate_role_change(member.session_id, requester_role, member.role, command.role)
            row = self.repository.update("members", member_id, {"role": command.role})
        if row is None:
            raise MemberNotFound(member_id)
        logger.info(
            "Member role changed",
            session_id=member.session_id,
            member_id=member_id,
            from_role=member.role.value,
            to_role=command.role.value,
        )
        return Member.model_validate(row)

    def remove_member(self, member_id: str, requester_id: str) -> Member:
        """
        Delete a member unconditionally

        Incomes, expenses and bank account links of the member are deleted
        with it; transactions keep their amounts but lose the member.
        """
        with self.repository.transaction():
            member = self.resolver.get_member(member_id)
            self.resolver.require_manage(member.session_id, requester_id, "remove members")
            self.repository.delete("members", member_id)

        invitation_transitions_total.labels(transition="removed").inc()
        logger.info("Member removed", session_id=member.session_id, member_id=member_id)
        return member

    def update_member(self, member_id: str, command: UpdateMember, requester_id: str) -> Member:
        member = self.resolver.get_member(member_id)
        self.resolver.require_manage(member.session_id, requester_id)
        changes = {k: v for k, v in command.provided().items() if v is not None}
        if not changes:
            return member
        validate_renamable(member)
        try:
            row = self.repository.update("members", member_id, changes)
        except DuplicateKey:
            raise DuplicateRecord(
                f"A member named {changes['name']!r} already exists in this session"
            ) from None
        if row is None:
            raise MemberNotFound(member_id)
        return Member.model_validate(row)

    # Reads

    def list_members(
        self,
        session_id: str,
        requester_id: str,
        status: InvitationStatus | None = None,
    ) -> list[Member]:
        """Member rows of a session, oldest first, optionally filtered by invitation status"""
        self.resolver.resolve_role(session_id, requester_id)
        where: dict = {"session_id": session_id}
        if status is not None:
            where["invitation_status"] = status
        rows = self.repository.find("members", where, order_by=("created_at", "id"))
        return [Member.model_validate(row) for row in rows]

    def get_member(self, member_id: str, requester_id: str) -> Member:
        member = self.resolver.get_member(member_id)
        self.resolver.resolve_role(member.session_id, requester_id)
        return member
