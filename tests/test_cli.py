"""
CLI integration tests

Drives the ledger command through Typer's CliRunner against a temporary
database. Ids are read back from the command output, like a user would.

Fun fact: "ledger" comes from the Middle English "legger", a book that
lay permanently in one place, such as a church breviary.
"""

import json
import re

import pytest
from typer.testing import CliRunner

from household_ledger.cli.main import app


@pytest.fixture
def runner():
    """Typer CLI test runner"""
    return CliRunner()


@pytest.fixture
def db(runner, tmp_path):
    """An initialized database path"""
    path = tmp_path / "cli.db"
    result = runner.invoke(app, ["init", "--db", str(path)])
    assert result.exit_code == 0
    return str(path)


def invoke(runner, db, *args):
    return runner.invoke(app, [*args, "--db", db])


def created_id(output: str, what: str) -> str:
    match = re.search(rf"✓ {what}: (\S+)", output)
    assert match, output
    return match.group(1)


@pytest.fixture
def session_id(runner, db):
    result = invoke(runner, db, "session", "create", "--as", "alice", "--name", "Flat")
    assert result.exit_code == 0, result.output
    return created_id(result.output, "Created session")


def test_init_creates_database(runner, tmp_path) -> None:
    path = tmp_path / "new.db"

    result = runner.invoke(app, ["init", "--db", str(path)])

    assert result.exit_code == 0
    assert path.exists()
    assert "Initialized ledger database" in result.output


def test_init_refuses_existing_database(runner, db) -> None:
    result = runner.invoke(app, ["init", "--db", db])

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_missing_database(runner, tmp_path) -> None:
    result = runner.invoke(
        app, ["session", "list", "--as", "alice", "--db", str(tmp_path / "nope.db")]
    )

    assert result.exit_code == 1
    assert "Database not found" in result.output


def test_session_create_and_list(runner, db, session_id) -> None:
    result = invoke(runner, db, "session", "list", "--as", "alice")

    assert result.exit_code == 0
    assert f"{session_id}: Flat (default)" in result.output


def test_session_list_json(runner, db, session_id) -> None:
    result = invoke(runner, db, "session", "list", "--as", "alice", "--json")

    sessions = json.loads(result.output)
    assert [s["id"] for s in sessions] == [session_id]


def test_user_taken_from_environment(runner, db, session_id) -> None:
    result = runner.invoke(
        app, ["session", "list", "--db", db], env={"LEDGER_USER": "alice"}
    )

    assert result.exit_code == 0
    assert session_id in result.output


def test_refused_operation_exits_with_error(runner, db, session_id) -> None:
    result = invoke(runner, db, "session", "rename", "--as", "bob", "--id", session_id, "--name", "Mine")

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_invite_accept_flow(runner, db, session_id) -> None:
    invited = invoke(
        runner, db, "member", "invite", "--as", "alice", "--session", session_id,
        "--email", "bob@example.com", "--role", "COLLABORATOR",
    )
    assert invited.exit_code == 0, invited.output
    assert "Status: PENDING" in invited.output
    token = re.search(r"Invite token: (\S+)", invited.output).group(1)

    preview = invoke(runner, db, "member", "preview", "--token", token)
    assert "Invitation to: Flat" in preview.output

    accepted = invoke(runner, db, "member", "accept", "--as", "bob", "--token", token)
    assert accepted.exit_code == 0, accepted.output
    assert f"Joined session: {session_id}" in accepted.output

    again = invoke(runner, db, "member", "accept", "--as", "bob", "--token", token)
    assert again.exit_code == 1


def test_transactions_and_summary(runner, db, session_id) -> None:
    kid = invoke(runner, db, "member", "invite", "--as", "alice", "--session", session_id, "--name", "Kid")
    member_id = created_id(kid.output, "Added member")

    bank = invoke(
        runner, db, "bank", "create", "--as", "alice", "--session", session_id,
        "--label", "Joint", "--balance", "1500", "--member", member_id,
    )
    assert bank.exit_code == 0, bank.output
    account_id = created_id(bank.output, "Created bank account")

    budget = invoke(
        runner, db, "budget", "create", "--as", "alice", "--session", session_id,
        "--month", "2025-03", "--opening", "500",
    )
    assert budget.exit_code == 0, budget.output

    tx = invoke(
        runner, db, "tx", "add", "--as", "alice", "--session", session_id,
        "--account", account_id, "--type", "OUTFLOW", "--label", "Groceries",
        "--amount", "42.10", "--date", "2025-03-04", "--member", member_id, "--cleared",
    )
    assert tx.exit_code == 0, tx.output
    assert "Recorded transaction" in tx.output
    assert "OUTFLOW 42.10 on 2025-03-04T00:00:00Z" in tx.output

    summary = invoke(runner, db, "summary", "--as", "alice", "--session", session_id, "--month", "2025-03")
    assert summary.exit_code == 0, summary.output
    assert "Budget 2025-03" in summary.output
    assert "Opening balance:     500.00" in summary.output
    assert "Outflow:           42.10" in summary.output
    assert "Ending balance:    457.90" in summary.output


def test_invalid_amount_is_reported(runner, db, session_id) -> None:
    result = invoke(
        runner, db, "budget", "create", "--as", "alice", "--session", session_id,
        "--month", "2025-03", "--opening", "lots",
    )

    assert result.exit_code == 1
    assert "Error:" in result.output
