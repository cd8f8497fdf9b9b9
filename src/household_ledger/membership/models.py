"""
Membership Domain Models - sessions, members and invitations

A session is a shared budgeting workspace. Its owner holds the implicit
OWNER role and is never stored as a member row. Every other participant
is a Member in exactly one identity shape:

- linked: user_id set, ACCEPTED
- invited: invited_email set, PENDING until the token is consumed
- placeholder: a name only (no login), ACCEPTED from the start

Only ACCEPTED members count as participants.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class Role(str, Enum):
    """
    Session roles

    OWNER and COLLABORATOR may create, update and delete records;
    VIEWER is read-only. Granting or revoking OWNER is reserved to the
    session owner.
    """

    OWNER = "OWNER"
    COLLABORATOR = "COLLABORATOR"
    VIEWER = "VIEWER"

    @property
    def can_manage(self) -> bool:
        return self is not Role.VIEWER


class InvitationStatus(str, Enum):
    """
    Member invitation lifecycle

    PENDING → ACCEPTED (token accepted)
    PENDING → DECLINED (token declined, irreversible)
    """

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class MemberIdentity(str, Enum):
    LINKED = "LINKED"
    INVITED = "INVITED"
    PLACEHOLDER = "PLACEHOLDER"


class User(BaseModel):
    """Directory entry for an authenticated user (credentials live elsewhere)"""

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    created_at: datetime


class Session(BaseModel):
    """
    A shared budgeting workspace

    Invariant: at most one session per owner has is_default = True.
    """

    id: str
    owner_id: str
    name: str
    is_default: bool
    created_at: datetime
    updated_at: datetime


class Member(BaseModel):
    """
    Participant record of a session

    The invitation token is deliberately not part of this model: it is
    returned once, by the invite call that created it (MemberWithToken).
    """

    id: str
    session_id: str
    role: Role
    invitation_status: InvitationStatus
    user_id: str | None = None
    invited_email: str | None = None
    name: str | None = None
    is_placeholder: bool = False
    invited_at: datetime | None = None
    accepted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def identity(self) -> MemberIdentity:
        if self.is_placeholder:
            return MemberIdentity.PLACEHOLDER
        if self.user_id is not None:
            return MemberIdentity.LINKED
        return MemberIdentity.INVITED

    @property
    def is_participant(self) -> bool:
        return self.invitation_status is InvitationStatus.ACCEPTED


class MemberWithToken(Member):
    """Result of an email invitation: the only place the token is ever exposed"""

    invite_token: str


class InvitePreview(BaseModel):
    """Public view of a pending invitation, as shown to the invitee before answering"""

    member_id: str
    session_id: str
    session_name: str
    role: Role
    invited_email: str | None
    invited_at: datetime | None
