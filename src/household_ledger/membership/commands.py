"""
Membership Commands - inputs of session, member and invitation operations
"""

from pydantic import Field, field_validator, model_validator

from household_ledger.kernel.commands import Command, PatchCommand
from household_ledger.kernel.errors import InvalidMemberIdentity
from household_ledger.membership.models import Role

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def normalize_email(value: str) -> str:
    return value.strip().lower()


class RegisterUser(Command):
    """Add a user to the directory so email invitations can be matched to them"""

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=320)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)

    @field_validator("email", mode="after")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)


class CreateSession(Command):
    """
    Create a session owned by the requester

    The new session becomes the owner's default; the previous default is
    demoted in the same transaction.
    """

    name: str = Field(..., min_length=1, max_length=200)


class UpdateSession(PatchCommand):
    name: str | None = Field(default=None, min_length=1, max_length=200)


class InviteMember(Command):
    """
    Add a member to a session

    Exactly one identity must be given:
    - user_id: link an existing user directly (ACCEPTED)
    - invited_email: send an invitation token (PENDING)
    - name: create a placeholder without login (ACCEPTED)

    Role defaults to the policy's default member role when omitted.
    """

    user_id: str | None = Field(default=None, min_length=1)
    invited_email: str | None = Field(default=None, pattern=EMAIL_PATTERN, max_length=320)
    name: str | None = Field(default=None, min_length=1, max_length=100)
    role: Role | None = None

    @field_validator("invited_email", mode="after")
    @classmethod
    def _normalize_email(cls, value: str | None) -> str | None:
        return normalize_email(value) if value is not None else None

    @model_validator(mode="after")
    def _exactly_one_identity(self) -> "InviteMember":
        supplied = [v for v in (self.user_id, self.invited_email, self.name) if v is not None]
        if len(supplied) != 1:
            raise InvalidMemberIdentity()
        return self


class UpdateMember(PatchCommand):
    """
    Rename a placeholder member

    Roles are never changed here: use ChangeRole, which enforces the
    OWNER-role rules.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)


class ChangeRole(Command):
    role: Role
