"""
Base command models

Commands are the validated inputs of every ledger operation. Update
commands are patches: a field that was never sent is different from a
field sent as null. Pydantic records which fields were actually supplied
in ``model_fields_set``, and PatchCommand exposes that as an explicit
"provided" set so rules such as "a locked budget accepts exactly
{locked: false}" can be stated and tested directly.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class Command(BaseModel):
    """
    Base command class - all domain commands inherit from this

    Unknown fields are rejected so that a typo never silently turns into
    a no-op update.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class PatchCommand(Command):
    """
    Base class for partial updates

    Every field defaults to None; only fields present in the input are
    applied.
    """

    def provided(self) -> dict[str, Any]:
        """Fields that were supplied, with their values (None included)"""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def is_provided(self, name: str) -> bool:
        return name in self.model_fields_set

    def provides_only(self, **expected: Any) -> bool:
        """
        True when the patch carries exactly the given fields with the given values

        Example:
            >>> UpdateBudget(locked=False).provides_only(locked=False)
            True
            >>> UpdateBudget(locked=False, notes="x").provides_only(locked=False)
            False
        """
        return self.provided() == expected
