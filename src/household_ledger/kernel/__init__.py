"""
Kernel - shared infrastructure of the household ledger

Errors, ids, clock and civil calendar, exact money, patch commands,
configuration, the SQLite repository, logging, metrics and retry.
"""

from household_ledger.kernel.commands import Command, PatchCommand
from household_ledger.kernel.errors import BadRequest, Forbidden, LedgerError, NotFound
from household_ledger.kernel.ids import IdFactory, generate_id
from household_ledger.kernel.money import Amount, PositiveAmount, format_amount, to_amount
from household_ledger.kernel.policy import LedgerPolicy
from household_ledger.kernel.repository import Repository, SQLiteRepository
from household_ledger.kernel.time import (
    CivilCalendar,
    RealTimeProvider,
    TestTimeProvider,
    TimeProvider,
    parse_instant,
)

__all__ = [
    # IDs
    "IdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    "CivilCalendar",
    "parse_instant",
    # Money
    "Amount",
    "PositiveAmount",
    "to_amount",
    "format_amount",
    # Commands & policy
    "Command",
    "PatchCommand",
    "LedgerPolicy",
    # Storage
    "Repository",
    "SQLiteRepository",
    # Errors
    "LedgerError",
    "NotFound",
    "Forbidden",
    "BadRequest",
]
