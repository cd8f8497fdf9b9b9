"""
Ledger policy - runtime configuration

Holds the few knobs the ledger exposes: the civil timezone used to derive
month keys, defaults applied when creating members and sessions, and the
entropy of invitation tokens. Values can be overridden from the
environment with LedgerPolicy.from_env().
"""

import os
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from household_ledger.kernel.time import CivilCalendar

ENV_PREFIX = "LEDGER_"


class LedgerPolicy(BaseModel):
    """
    Ledger configuration

    The defaults match the household product: months follow the Paris
    calendar and invited members join as collaborators unless a role is
    given explicitly.
    """

    civil_timezone: str = Field(
        default="Europe/Paris",
        description="IANA timezone used to derive YYYY-MM month keys",
    )

    default_member_role: Literal["OWNER", "COLLABORATOR", "VIEWER"] = Field(
        default="COLLABORATOR",
        description="Role given to a new member when the inviter does not choose one",
    )

    default_session_name: str = Field(
        default="My budget",
        min_length=1,
        description="Name used by the CLI when a session is created without a name",
    )

    invite_token_bytes: int = Field(
        default=24,
        ge=16,
        le=64,
        description="Random bytes behind each invitation token",
    )

    model_config = {"frozen": True}

    @field_validator("civil_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    def calendar(self) -> CivilCalendar:
        return CivilCalendar(self.civil_timezone)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "LedgerPolicy":
        """
        Build a policy from LEDGER_* environment variables

        Recognized: LEDGER_CIVIL_TIMEZONE, LEDGER_DEFAULT_MEMBER_ROLE,
        LEDGER_DEFAULT_SESSION_NAME, LEDGER_INVITE_TOKEN_BYTES.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, str] = {}
        for name in cls.model_fields:
            key = f"{ENV_PREFIX}{name.upper()}"
            if env.get(key):
                overrides[name] = env[key]
        return cls.model_validate(overrides)
