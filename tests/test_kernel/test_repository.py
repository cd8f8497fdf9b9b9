"""
Tests for the SQLite repository

Covers filters, ordering, exact sums, transactions and the translation of
constraint violations into storage errors.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from household_ledger.kernel.errors import DuplicateKey, ReferenceViolation, StorageError
from household_ledger.kernel.repository import SQLiteRepository, to_db_value


def make_session(repository: SQLiteRepository, owner: str = "alice", default: bool = False):
    return repository.insert(
        "sessions", {"owner_id": owner, "name": f"{owner}'s", "is_default": default}
    )


def test_insert_fills_id_and_timestamps(repository, test_time):
    row = make_session(repository)

    assert row["id"]
    assert row["created_at"] == "2025-01-15T12:00:00.000000Z"
    assert row["updated_at"] == row["created_at"]
    assert row["is_default"] == 0


def test_get_and_find_one(repository):
    row = make_session(repository)

    assert repository.get("sessions", row["id"]) == row
    assert repository.find_one("sessions", {"owner_id": "alice"}) == row
    assert repository.get("sessions", "missing") is None


def test_find_with_null_and_in_filters(repository):
    session = make_session(repository)
    for name, user in (("A", "u1"), ("B", None), ("C", "u3")):
        repository.insert(
            "members",
            {
                "session_id": session["id"],
                "user_id": user,
                "name": name,
                "role": "VIEWER",
                "invitation_status": "ACCEPTED",
                "is_placeholder": user is None,
            },
        )

    assert [r["name"] for r in repository.find("members", {"user_id": None})] == ["B"]
    assert sorted(
        r["name"] for r in repository.find("members", {"user_id": ["u1", "u3"]})
    ) == ["A", "C"]
    assert repository.find("members", {"user_id": []}) == []


def test_find_orders_and_limits(repository, test_time):
    first = make_session(repository, "alice")
    test_time.advance_seconds(10)
    second = make_session(repository, "bob")

    newest_first = repository.find("sessions", order_by=("-created_at",))
    assert [r["id"] for r in newest_first] == [second["id"], first["id"]]
    assert len(repository.find("sessions", limit=1)) == 1


def test_inclusive_range_filter(repository, test_time):
    session = make_session(repository)
    for day, month in ((1, "2025-01"), (15, "2025-02"), (31, "2025-03")):
        test_time.set_time(datetime(2025, 1, day, tzinfo=timezone.utc))
        repository.insert("budgets", {"session_id": session["id"], "month": month})

    rows = repository.find(
        "budgets",
        {"session_id": session["id"]},
        ranges={
            "created_at": (
                datetime(2025, 1, 1, tzinfo=timezone.utc),
                datetime(2025, 1, 15, tzinfo=timezone.utc),
            )
        },
    )
    assert sorted(r["month"] for r in rows) == ["2025-01", "2025-02"]


def test_unique_violation_becomes_duplicate_key(repository):
    session = make_session(repository)
    repository.insert("budgets", {"session_id": session["id"], "month": "2025-01"})

    with pytest.raises(DuplicateKey) as exc_info:
        repository.insert("budgets", {"session_id": session["id"], "month": "2025-01"})

    assert exc_info.value.table == "budgets"
    assert exc_info.value.columns == ("session_id", "month")


def test_one_default_session_per_owner_enforced_by_schema(repository):
    make_session(repository, default=True)
    with pytest.raises(DuplicateKey):
        make_session(repository, default=True)
    # Another owner may have their own default
    make_session(repository, owner="bob", default=True)


def test_foreign_key_violation_becomes_reference_violation(repository):
    with pytest.raises(ReferenceViolation):
        repository.insert("budgets", {"session_id": "no-such-session", "month": "2025-01"})


def test_unknown_table_or_column(repository):
    with pytest.raises(StorageError):
        repository.find("nope")
    with pytest.raises(StorageError):
        repository.find("sessions", {"color": "blue"})


def test_update_returns_row_or_none(repository, test_time):
    session = make_session(repository)
    test_time.advance_seconds(5)

    updated = repository.update("sessions", session["id"], {"name": "Renamed"})
    assert updated["name"] == "Renamed"
    assert updated["updated_at"] > session["updated_at"]
    assert repository.update("sessions", "missing", {"name": "x"}) is None


def test_delete_cascades_from_session(repository):
    session = make_session(repository)
    repository.insert("budgets", {"session_id": session["id"], "month": "2025-01"})

    assert repository.delete("sessions", session["id"])
    assert repository.count("budgets") == 0
    assert not repository.delete("sessions", session["id"])


def test_sum_decimal_is_exact(repository):
    session = make_session(repository)
    for month, balance in (("2025-01", "0.10"), ("2025-02", "0.20"), ("2025-03", "1000000.01")):
        repository.insert(
            "budgets",
            {"session_id": session["id"], "month": month, "opening_balance": Decimal(balance)},
        )

    assert repository.sum_decimal("budgets", "opening_balance") == Decimal("1000000.31")
    assert repository.sum_decimal("budgets", "opening_balance", {"month": "1999-01"}) == Decimal(
        "0.00"
    )


def test_transaction_commits(repository):
    with repository.transaction():
        make_session(repository, "alice")
        make_session(repository, "bob")

    assert repository.count("sessions") == 2


def test_transaction_rolls_back_on_error(repository):
    with pytest.raises(RuntimeError):
        with repository.transaction():
            make_session(repository, "alice")
            raise RuntimeError("boom")

    assert repository.count("sessions") == 0


def test_nested_transaction_joins_outer(repository):
    with pytest.raises(RuntimeError):
        with repository.transaction():
            with repository.transaction():
                make_session(repository, "alice")
            raise RuntimeError("outer fails")

    assert repository.count("sessions") == 0


def test_in_memory_database_keeps_data():
    repository = SQLiteRepository(":memory:")
    try:
        make_session(repository)
        assert repository.count("sessions") == 1
    finally:
        repository.close()


def test_to_db_value_conventions():
    assert to_db_value(True) == 1
    assert to_db_value(Decimal("3.5")) == "3.50"
    assert to_db_value(datetime(2025, 1, 5, tzinfo=timezone.utc)) == "2025-01-05T00:00:00.000000Z"
    assert to_db_value(datetime(2025, 1, 5)) == "2025-01-05T00:00:00.000000Z"
