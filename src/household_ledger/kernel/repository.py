"""
SQLite repository - transactional record store for the ledger

A thin table-oriented store: equality and range filters, ordering,
aggregate sums and multi-statement transactions. Domain handlers never
write SQL; they go through the Repository protocol and receive plain
dicts that their pydantic models validate.

Storage conventions:
- ids are time-ordered UUIDs (kernel.ids)
- amounts are canonical decimal strings ("1234.50"); sums happen in Python
- instants are fixed-width UTC strings, so range filters compare correctly
- booleans are 0/1 integers

Fun fact: SQLite's partial indexes (CREATE INDEX ... WHERE ...) arrived in
3.8.0 in 2013. They are what lets "one default session per owner" live in
the schema instead of in application code.
"""

import re
import sqlite3
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from household_ledger.kernel.errors import DuplicateKey, ReferenceViolation, StorageError
from household_ledger.kernel.ids import IdFactory, default_id_factory
from household_ledger.kernel.logging import get_logger
from household_ledger.kernel.money import format_amount, sum_amounts
from household_ledger.kernel.retry import retry_on_sqlite_lock
from household_ledger.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)

Record = dict[str, Any]

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL COLLATE NOCASE UNIQUE,
    first_name TEXT,
    last_name TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    is_default INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS ux_sessions_one_default
    ON sessions(owner_id) WHERE is_default = 1;
CREATE INDEX IF NOT EXISTS idx_sessions_owner ON sessions(owner_id);

CREATE TABLE IF NOT EXISTS members (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    user_id TEXT,
    invited_email TEXT COLLATE NOCASE,
    name TEXT,
    role TEXT NOT NULL CHECK (role IN ('OWNER', 'COLLABORATOR', 'VIEWER')),
    invitation_status TEXT NOT NULL
        CHECK (invitation_status IN ('PENDING', 'ACCEPTED', 'DECLINED')),
    invite_token TEXT UNIQUE,
    is_placeholder INTEGER NOT NULL DEFAULT 0,
    invited_at TEXT,
    accepted_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS ux_members_session_user
    ON members(session_id, user_id) WHERE user_id IS NOT NULL;
CREATE UNIQUE INDEX IF NOT EXISTS ux_members_session_pending_email
    ON members(session_id, invited_email) WHERE invitation_status = 'PENDING';
CREATE UNIQUE INDEX IF NOT EXISTS ux_members_session_placeholder
    ON members(session_id, name) WHERE is_placeholder = 1;

CREATE TABLE IF NOT EXISTS invite_receipts (
    token_digest TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    member_id TEXT NOT NULL,
    outcome TEXT NOT NULL CHECK (outcome IN ('ACCEPTED', 'DECLINED')),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS bank_accounts (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    label TEXT NOT NULL,
    bank_name TEXT,
    initial_balance TEXT NOT NULL DEFAULT '0.00',
    is_archived INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_bank_accounts_session ON bank_accounts(session_id);

CREATE TABLE IF NOT EXISTS bank_account_members (
    bank_account_id TEXT NOT NULL REFERENCES bank_accounts(id) ON DELETE CASCADE,
    member_id TEXT NOT NULL REFERENCES members(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    PRIMARY KEY (bank_account_id, member_id)
);

CREATE TABLE IF NOT EXISTS incomes (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    member_id TEXT NOT NULL REFERENCES members(id) ON DELETE CASCADE,
    bank_account_id TEXT NOT NULL REFERENCES bank_accounts(id) ON DELETE CASCADE,
    label TEXT NOT NULL,
    amount TEXT NOT NULL,
    day INTEGER NOT NULL CHECK (day BETWEEN 1 AND 31),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (session_id, label, day, amount)
);

CREATE TABLE IF NOT EXISTS expenses (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    member_id TEXT NOT NULL REFERENCES members(id) ON DELETE CASCADE,
    bank_account_id TEXT NOT NULL REFERENCES bank_accounts(id) ON DELETE CASCADE,
    label TEXT NOT NULL,
    amount TEXT NOT NULL,
    day INTEGER NOT NULL CHECK (day BETWEEN 1 AND 31),
    category TEXT NOT NULL,
    is_archived INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (session_id, label, day, amount)
);

CREATE TABLE IF NOT EXISTS budgets (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    month TEXT NOT NULL,
    opening_balance TEXT NOT NULL DEFAULT '0.00',
    notes TEXT,
    locked INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (session_id, month)
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    bank_account_id TEXT NOT NULL REFERENCES bank_accounts(id) ON DELETE CASCADE,
    member_id TEXT REFERENCES members(id) ON DELETE SET NULL,
    budget_id TEXT NOT NULL REFERENCES budgets(id),
    type TEXT NOT NULL CHECK (type IN ('INFLOW', 'OUTFLOW')),
    label TEXT NOT NULL,
    amount TEXT NOT NULL,
    date TEXT NOT NULL,
    category TEXT,
    is_cleared INTEGER NOT NULL DEFAULT 0,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_transactions_budget ON transactions(budget_id);
CREATE INDEX IF NOT EXISTS idx_transactions_session_date ON transactions(session_id, date);
"""

_UNIQUE_COLUMNS = re.compile(r"UNIQUE constraint failed: (.+)$")


class Repository(Protocol):
    """
    Transactional record store consumed by the domain handlers

    Filters are equality matches (None means IS NULL, a list or tuple
    means IN); ranges are inclusive (low, high) pairs where either bound
    may be None; order_by names columns, "-column" for descending.
    """

    def transaction(self) -> Any:
        """Context manager making every call inside it atomic"""
        ...

    def insert(self, table: str, values: Mapping[str, Any]) -> Record: ...

    def get(self, table: str, record_id: str) -> Record | None: ...

    def find_one(self, table: str, where: Mapping[str, Any]) -> Record | None: ...

    def find(
        self,
        table: str,
        where: Mapping[str, Any] | None = None,
        *,
        ranges: Mapping[str, tuple[Any, Any]] | None = None,
        order_by: Iterable[str] = (),
        limit: int | None = None,
    ) -> list[Record]: ...

    def update(self, table: str, record_id: str, values: Mapping[str, Any]) -> Record | None: ...

    def update_where(
        self, table: str, where: Mapping[str, Any], values: Mapping[str, Any]
    ) -> int: ...

    def delete(self, table: str, record_id: str) -> bool: ...

    def delete_where(self, table: str, where: Mapping[str, Any]) -> int: ...

    def count(self, table: str, where: Mapping[str, Any] | None = None) -> int: ...

    def sum_decimal(
        self, table: str, column: str, where: Mapping[str, Any] | None = None
    ) -> Decimal: ...


def to_db_value(value: Any) -> Any:
    """Convert a Python value to its storage representation"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Decimal):
        return format_amount(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    if isinstance(value, date):
        return value.isoformat()
    return value


class SQLiteRepository:
    """
    SQLite-based implementation of the Repository protocol

    Uses WAL mode and enforces foreign keys on every connection. Each call
    outside a transaction runs on its own short-lived connection; inside
    transaction() all calls made by the same context share one connection
    and one BEGIN IMMEDIATE, and nested transaction() blocks join it.

    Uniqueness violations surface as DuplicateKey(table, columns) and
    foreign key violations as ReferenceViolation, so handlers can turn
    them into readable BadRequest errors.
    """

    def __init__(
        self,
        db_path: str | Path,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize the repository and create the schema if needed

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            time_provider: Clock used for created_at/updated_at stamps
            id_factory: Generator for record ids
        """
        self.db_path = str(db_path)
        self.time_provider = time_provider or RealTimeProvider()
        self.id_factory = id_factory or default_id_factory
        self._active: ContextVar[sqlite3.Connection | None] = ContextVar(
            f"ledger_transaction_{id(self)}", default=None
        )
        # An in-memory database only lives as long as its connection
        self._shared: sqlite3.Connection | None = None
        if self.db_path == ":memory:":
            self._shared = self._open()
        self._initialize_schema()
        self._columns = self._load_columns()

    # ------------------------------------------------------------------
    # Connections and transactions
    # ------------------------------------------------------------------

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path,
            timeout=5.0,
            isolation_level=None,  # transactions are explicit
            check_same_thread=self.db_path != ":memory:",
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn is not self._shared:
            conn.close()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with self._connection() as conn:
            if self._shared is None:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=NORMAL")
            conn.executescript(SCHEMA)

    def _load_columns(self) -> dict[str, tuple[str, ...]]:
        with self._connection() as conn:
            tables = [
                row["name"]
                for row in conn.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table' "
                    "AND name NOT LIKE 'sqlite_%'"
                )
            ]
            return {
                table: tuple(
                    row["name"] for row in conn.execute(f"PRAGMA table_info({table})")
                )
                for table in tables
            }

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Use the active transaction's connection, or a fresh one"""
        active = self._active.get()
        if active is not None:
            yield active
            return
        conn = self._shared or self._open()
        try:
            yield conn
        finally:
            self._release(conn)

    @retry_on_sqlite_lock()
    def _begin(self, conn: sqlite3.Connection) -> None:
        conn.execute("BEGIN IMMEDIATE")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block atomically

        BEGIN IMMEDIATE takes the write lock up front, so read-then-write
        sequences (demote the default session, then insert the new one)
        cannot interleave with another writer. Lock contention on BEGIN is
        retried with backoff. Nested blocks join the outer transaction.
        """
        active = self._active.get()
        if active is not None:
            yield active
            return

        conn = self._shared or self._open()
        token = self._active.set(conn)
        try:
            self._begin(conn)
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            self._active.reset(token)
            self._release(conn)

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
            self._shared = None

    # ------------------------------------------------------------------
    # SQL building
    # ------------------------------------------------------------------

    def _check_table(self, table: str) -> tuple[str, ...]:
        try:
            return self._columns[table]
        except KeyError:
            raise StorageError(f"Unknown table {table!r}") from None

    def _check_columns(self, table: str, columns: Iterable[str]) -> None:
        known = self._check_table(table)
        unknown = [c for c in columns if c not in known]
        if unknown:
            raise StorageError(f"Unknown column(s) {unknown} for table {table!r}")

    def _where_clause(
        self,
        table: str,
        where: Mapping[str, Any] | None,
        ranges: Mapping[str, tuple[Any, Any]] | None = None,
    ) -> tuple[str, list[Any]]:
        conditions: list[str] = []
        params: list[Any] = []

        for column, value in (where or {}).items():
            self._check_columns(table, [column])
            if value is None:
                conditions.append(f"{column} IS NULL")
            elif isinstance(value, (list, tuple, set, frozenset)):
                values = [to_db_value(v) for v in value]
                if not values:
                    conditions.append("0 = 1")
                    continue
                placeholders = ", ".join("?" for _ in values)
                conditions.append(f"{column} IN ({placeholders})")
                params.extend(values)
            else:
                conditions.append(f"{column} = ?")
                params.append(to_db_value(value))

        for column, (low, high) in (ranges or {}).items():
            self._check_columns(table, [column])
            if low is not None:
                conditions.append(f"{column} >= ?")
                params.append(to_db_value(low))
            if high is not None:
                conditions.append(f"{column} <= ?")
                params.append(to_db_value(high))

        clause = " AND ".join(conditions) if conditions else "1=1"
        return clause, params

    def _order_clause(self, table: str, order_by: Iterable[str]) -> str:
        terms = []
        for term in order_by:
            column = term.lstrip("-")
            self._check_columns(table, [column])
            terms.append(f"{column} {'DESC' if term.startswith('-') else 'ASC'}")
        return f" ORDER BY {', '.join(terms)}" if terms else ""

    def _execute(
        self, conn: sqlite3.Connection, table: str, sql: str, params: Iterable[Any]
    ) -> sqlite3.Cursor:
        """Execute a write, translating constraint violations"""
        try:
            return conn.execute(sql, list(params))
        except sqlite3.IntegrityError as e:
            raise self._translate_integrity_error(table, e) from e

    def _translate_integrity_error(
        self, table: str, error: sqlite3.IntegrityError
    ) -> StorageError:
        message = str(error)
        match = _UNIQUE_COLUMNS.search(message)
        if match:
            qualified = [part.strip() for part in match.group(1).split(",")]
            failed_table = qualified[0].split(".")[0] if "." in qualified[0] else table
            columns = tuple(part.split(".")[-1] for part in qualified)
            logger.debug("Unique constraint violated", table=failed_table, columns=columns)
            return DuplicateKey(failed_table, columns)
        if "FOREIGN KEY" in message:
            return ReferenceViolation(table, message)
        return StorageError(f"Integrity error on {table}: {message}")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def insert(self, table: str, values: Mapping[str, Any]) -> Record:
        """
        Insert a record and return it as stored

        Missing id, created_at and updated_at are filled in when the table
        has those columns.
        """
        columns = self._check_table(table)
        row = dict(values)
        now = self.time_provider.now()
        if "id" in columns and not row.get("id"):
            row["id"] = self.id_factory.generate()
        if "created_at" in columns:
            row.setdefault("created_at", now)
        if "updated_at" in columns:
            row.setdefault("updated_at", now)
        self._check_columns(table, row)

        names = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        with self._connection() as conn:
            self._execute(
                conn,
                table,
                f"INSERT INTO {table} ({names}) VALUES ({placeholders})",
                (to_db_value(v) for v in row.values()),
            )
            if "id" in columns:
                stored = conn.execute(
                    f"SELECT * FROM {table} WHERE id = ?", (row["id"],)
                ).fetchone()
                return dict(stored)
        return {k: to_db_value(v) for k, v in row.items()}

    def get(self, table: str, record_id: str) -> Record | None:
        return self.find_one(table, {"id": record_id})

    def find_one(self, table: str, where: Mapping[str, Any]) -> Record | None:
        rows = self.find(table, where, limit=1)
        return rows[0] if rows else None

    def find(
        self,
        table: str,
        where: Mapping[str, Any] | None = None,
        *,
        ranges: Mapping[str, tuple[Any, Any]] | None = None,
        order_by: Iterable[str] = (),
        limit: int | None = None,
    ) -> list[Record]:
        """
        Query records by equality and inclusive range filters

        Returns:
            Matching records as dicts, in the requested order
        """
        self._check_table(table)
        clause, params = self._where_clause(table, where, ranges)
        query = f"SELECT * FROM {table} WHERE {clause}{self._order_clause(table, order_by)}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))
        with self._connection() as conn:
            return [dict(row) for row in conn.execute(query, params).fetchall()]

    def update(self, table: str, record_id: str, values: Mapping[str, Any]) -> Record | None:
        """
        Update one record by id

        Returns:
            The updated record, or None if no record has that id
        """
        with self._connection() as conn:
            changed = self._update(conn, table, {"id": record_id}, values)
            if not changed:
                return None
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
            return dict(row) if row else None

    def update_where(
        self, table: str, where: Mapping[str, Any], values: Mapping[str, Any]
    ) -> int:
        with self._connection() as conn:
            return self._update(conn, table, where, values)

    def _update(
        self,
        conn: sqlite3.Connection,
        table: str,
        where: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> int:
        columns = self._check_table(table)
        changes = dict(values)
        if "updated_at" in columns:
            changes.setdefault("updated_at", self.time_provider.now())
        self._check_columns(table, changes)
        if not changes:
            return self.count(table, where)

        assignments = ", ".join(f"{column} = ?" for column in changes)
        clause, params = self._where_clause(table, where)
        cursor = self._execute(
            conn,
            table,
            f"UPDATE {table} SET {assignments} WHERE {clause}",
            [to_db_value(v) for v in changes.values()] + params,
        )
        return cursor.rowcount

    def delete(self, table: str, record_id: str) -> bool:
        return self.delete_where(table, {"id": record_id}) > 0

    def delete_where(self, table: str, where: Mapping[str, Any]) -> int:
        self._check_table(table)
        clause, params = self._where_clause(table, where)
        with self._connection() as conn:
            cursor = self._execute(conn, table, f"DELETE FROM {table} WHERE {clause}", params)
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def count(self, table: str, where: Mapping[str, Any] | None = None) -> int:
        self._check_table(table)
        clause, params = self._where_clause(table, where)
        with self._connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {clause}", params).fetchone()[0]

    def sum_decimal(
        self, table: str, column: str, where: Mapping[str, Any] | None = None
    ) -> Decimal:
        """
        Exact sum of a decimal text column

        SQLite's SUM() works in binary floating point, so the values are
        read back as text and added as Decimal.
        """
        self._check_columns(table, [column])
        clause, params = self._where_clause(table, where)
        with self._connection() as conn:
            cursor = conn.execute(f"SELECT {column} FROM {table} WHERE {clause}", params)
            return sum_amounts(row[0] for row in cursor)
