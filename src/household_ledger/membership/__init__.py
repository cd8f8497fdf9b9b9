"""
Membership Module - sessions, members, roles and invitations

- A session has exactly one owner; each owner has one default session
- Members are linked users, pending email invitations or placeholders
- Roles: OWNER (implicit), COLLABORATOR (read/write), VIEWER (read only)
- Invitation tokens are single-use and resolve to a consistent answer
  even after the invite row has been merged away
"""

from household_ledger.membership.models import (
    InvitationStatus,
    InvitePreview,
    Member,
    MemberIdentity,
    MemberWithToken,
    Role,
    Session,
    User,
)

__all__ = [
    "Role",
    "InvitationStatus",
    "MemberIdentity",
    "User",
    "Session",
    "Member",
    "MemberWithToken",
    "InvitePreview",
]
