"""
Custom exceptions for the household ledger

Every failure surfaced to a caller is one of three kinds: the entity is
absent (NotFound), the requester lacks the role or a state rule forbids
the change (Forbidden), or the input is malformed, incoherent or a
duplicate (BadRequest). Storage errors are internal and are always
translated into one of those kinds before leaving a handler.
"""

from typing import Any


class LedgerError(Exception):
    """Base exception for all ledger errors"""

    kind = "error"


class NotFound(LedgerError):
    """An entity referenced by the request does not exist"""

    kind = "not_found"


class Forbidden(LedgerError):
    """Authenticated, but the role or a state rule forbids the operation"""

    kind = "forbidden"


class BadRequest(LedgerError):
    """Malformed input, cross-entity mismatch or uniqueness violation"""

    kind = "bad_request"


# Not found


class EntityNotFound(NotFound):
    """Raised when a record of the given entity type does not exist"""

    entity = "Entity"

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class SessionNotFound(EntityNotFound):
    entity = "Session"


class MemberNotFound(EntityNotFound):
    entity = "Member"


class BankAccountNotFound(EntityNotFound):
    entity = "Bank account"


class IncomeNotFound(EntityNotFound):
    entity = "Income"


class ExpenseNotFound(EntityNotFound):
    entity = "Expense"


class BudgetNotFound(EntityNotFound):
    entity = "Budget"


class TransactionNotFound(EntityNotFound):
    entity = "Transaction"


class InvitationNotFound(NotFound):
    """Raised when no pending invitation matches a token"""

    def __init__(self) -> None:
        super().__init__("Invitation is invalid or has expired")


class AccountMemberNotFound(NotFound):
    """Raised when a member is not attached to a bank account"""

    def __init__(self, bank_account_id: str, member_id: str) -> None:
        self.bank_account_id = bank_account_id
        self.member_id = member_id
        super().__init__(
            f"Member {member_id} is not attached to bank account {bank_account_id}"
        )


# Forbidden


class NotAParticipant(Forbidden):
    """Raised when the requester is neither the owner nor an accepted member"""

    def __init__(self, session_id: str, user_id: str) -> None:
        self.session_id = session_id
        self.user_id = user_id
        super().__init__(f"User {user_id} has no access to session {session_id}")


class InsufficientRole(Forbidden):
    """Raised when the requester's role does not allow the operation"""

    def __init__(self, session_id: str, role: str, action: str = "manage") -> None:
        self.session_id = session_id
        self.role = role
        self.action = action
        super().__init__(
            f"Role {role} cannot {action} records of session {session_id}"
        )


class OwnerOnly(Forbidden):
    """Raised when an operation is reserved to the session owner"""

    def __init__(self, session_id: str, action: str) -> None:
        self.session_id = session_id
        self.action = action
        super().__init__(f"Only the owner of session {session_id} can {action}")


class BudgetLocked(Forbidden):
    """Raised when a locked budget is modified or deleted"""

    def __init__(self, budget_id: str, action: str = "update") -> None:
        self.budget_id = budget_id
        self.action = action
        super().__init__(
            f"Budget {budget_id} is locked: unlock it before you {action} it"
        )


# Bad request


class InvalidInput(BadRequest):
    """Raised when a command payload fails validation"""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class InvalidAmount(BadRequest, ValueError):
    """
    Raised when a monetary value is not an exact decimal

    Also a ValueError so that pydantic reports it as a validation error
    when raised from inside a model validator.
    """

    def __init__(self, value: Any, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class InvalidMemberIdentity(BadRequest, ValueError):
    """Raised when a member is not given exactly one identity"""

    def __init__(self) -> None:
        super().__init__("Provide exactly one of 'user_id', 'invited_email' or 'name'")


class DuplicateRecord(BadRequest):
    """Raised when a write would break a uniqueness rule"""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class CrossSessionReference(BadRequest):
    """Raised when a referenced entity belongs to another session"""

    def __init__(self, field: str, session_id: str) -> None:
        self.field = field
        self.session_id = session_id
        super().__init__(f"{field} does not belong to session {session_id}")


class MemberNotAccepted(BadRequest):
    """Raised when a financial record references a member who has not joined"""

    def __init__(self, member_id: str, status: str) -> None:
        self.member_id = member_id
        self.status = status
        super().__init__(
            f"Member {member_id} has not joined the session (invitation {status})"
        )


class InvitationAlreadyAccepted(BadRequest):
    """Raised when an invitation token was already accepted"""

    def __init__(self) -> None:
        super().__init__("This invitation has already been accepted")


class InvitationAlreadyResolved(BadRequest):
    """Raised when an invitation token was already declined"""

    def __init__(self) -> None:
        super().__init__("This invitation has already been declined")


class MemberAlreadyLinked(BadRequest):
    """Raised when revoking an invitation that is attached to a user"""

    def __init__(self, member_id: str) -> None:
        self.member_id = member_id
        super().__init__(
            f"Member {member_id} is already linked: only pending invitations can be revoked"
        )


class BudgetInUse(BadRequest):
    """Raised when deleting, or moving to another month, a budget that still has transactions"""

    def __init__(self, budget_id: str, transaction_count: int) -> None:
        self.budget_id = budget_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Budget {budget_id} still has {transaction_count} attached transaction(s)"
        )


# Storage (internal, always translated by handlers)


class StorageError(LedgerError):
    """Base class for repository errors"""


class DuplicateKey(StorageError):
    """Raised when an insert or update violates a unique constraint"""

    def __init__(self, table: str, columns: tuple[str, ...]) -> None:
        self.table = table
        self.columns = columns
        super().__init__(f"Duplicate key on {table}({', '.join(columns)})")


class ReferenceViolation(StorageError):
    """Raised when a write violates a foreign key"""

    def __init__(self, table: str, detail: str) -> None:
        self.table = table
        self.detail = detail
        super().__init__(f"Reference violation on {table}: {detail}")
