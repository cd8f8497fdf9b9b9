"""
Household Ledger CLI

Command-line interface for the shared household ledger.
Every command acts on behalf of a user given with --as (or LEDGER_USER).

Usage:
    ledger init --db household.db
    ledger session create --as alice --name "Flat share"
    ledger member invite --as alice --session <id> --email bob@example.com
    ledger member accept --as bob --token <token>
    ledger bank create --as alice --session <id> --label "Joint" --member <member_id>
    ledger tx add --as bob --session <id> --account <id> --type OUTFLOW \\
        --label "Groceries" --amount 42.10 --date 2025-03-04
    ledger summary --as bob --session <id> --month 2025-03
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from household_ledger.kernel.errors import LedgerError
from household_ledger.kernel.logging import configure_logging, is_production
from household_ledger.kernel.policy import LedgerPolicy
from household_ledger.ledger import Ledger

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=is_production(), log_level="WARNING")

app = typer.Typer(
    name="ledger",
    help="Household Ledger - shared household budgets",
    add_completion=False,
)

# Sub-apps
user_app = typer.Typer(help="User directory commands")
session_app = typer.Typer(help="Session management commands")
member_app = typer.Typer(help="Members and invitations commands")
bank_app = typer.Typer(help="Bank account commands")
income_app = typer.Typer(help="Planned income commands")
expense_app = typer.Typer(help="Planned expense commands")
budget_app = typer.Typer(help="Monthly budget commands")
tx_app = typer.Typer(help="Transaction commands")

app.add_typer(user_app, name="user")
app.add_typer(session_app, name="session")
app.add_typer(member_app, name="member")
app.add_typer(bank_app, name="bank")
app.add_typer(income_app, name="income")
app.add_typer(expense_app, name="expense")
app.add_typer(budget_app, name="budget")
app.add_typer(tx_app, name="tx")

# Global state
DEFAULT_DB = Path(".ledger.db")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", envvar="LEDGER_DB", help="Database path"),
]
AsOption = Annotated[
    str,
    typer.Option("--as", envvar="LEDGER_USER", help="Id of the user running the command"),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def get_ledger(db_path: Optional[Path] = None) -> Ledger:
    """Get Ledger instance"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'ledger init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return Ledger(str(db), policy=LedgerPolicy.from_env())


@contextmanager
def open_ledger(db_path: Optional[Path]) -> Iterator[Ledger]:
    """Open the ledger, report refused operations as "Error: ..." and exit 1"""
    ledger = get_ledger(db_path)
    try:
        yield ledger
    except LedgerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        ledger.close()


def echo_json(value: Any) -> None:
    typer.echo(json.dumps(value, indent=2, default=str))


# Initialization command


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(envvar="LEDGER_DB", help="Database path"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new ledger database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    # Create database by initializing the ledger
    Ledger(str(db)).close()
    typer.echo(f"✓ Initialized ledger database: {db}")


# User commands


@user_app.command("register")
def user_register(
    email: Annotated[str, typer.Option("--email", help="Email address")],
    first_name: Annotated[Optional[str], typer.Option("--first-name")] = None,
    last_name: Annotated[Optional[str], typer.Option("--last-name")] = None,
    db: DbOption = None,
) -> None:
    """Register a user in the directory"""
    with open_ledger(db) as ledger:
        user = ledger.register_user(email, first_name=first_name, last_name=last_name)

    typer.echo(f"✓ Registered user: {user['id']}")
    typer.echo(f"  Email: {user['email']}")


# Session commands


@session_app.command("create")
def session_create(
    requester: AsOption,
    name: Annotated[Optional[str], typer.Option("--name", help="Session name")] = None,
    db: DbOption = None,
) -> None:
    """Create a session; it becomes your default"""
    with open_ledger(db) as ledger:
        session = ledger.create_session(requester, name)

    typer.echo(f"✓ Created session: {session['id']}")
    typer.echo(f"  Name: {session['name']}")


@session_app.command("list")
def session_list(
    requester: AsOption,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List the sessions you own"""
    with open_ledger(db) as ledger:
        sessions = ledger.list_sessions(requester)

    if json_output:
        echo_json(sessions)
        return
    if not sessions:
        typer.echo("No sessions")
        return

    typer.echo(f"Sessions ({len(sessions)}):")
    for session in sessions:
        marker = " (default)" if session["is_default"] else ""
        typer.echo(f"  {session['id']}: {session['name']}{marker}")


@session_app.command("default")
def session_default(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--id", help="Session ID")],
    db: DbOption = None,
) -> None:
    """Make a session your default"""
    with open_ledger(db) as ledger:
        session = ledger.set_default_session(requester, session_id)

    typer.echo(f"✓ Default session: {session['id']} ({session['name']})")


@session_app.command("rename")
def session_rename(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--id", help="Session ID")],
    name: Annotated[str, typer.Option("--name", help="New name")],
    db: DbOption = None,
) -> None:
    """Rename a session (owner only)"""
    with open_ledger(db) as ledger:
        session = ledger.update_session(requester, session_id, name=name)

    typer.echo(f"✓ Renamed session: {session['id']}")
    typer.echo(f"  Name: {session['name']}")


@session_app.command("delete")
def session_delete(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--id", help="Session ID")],
    db: DbOption = None,
) -> None:
    """Delete a session and everything in it (owner only)"""
    with open_ledger(db) as ledger:
        session = ledger.delete_session(requester, session_id)

    typer.echo(f"✓ Deleted session: {session['id']}")


# Member commands


@member_app.command("invite")
def member_invite(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    user_id: Annotated[Optional[str], typer.Option("--user", help="Existing user ID")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="Email to invite")] = None,
    name: Annotated[
        Optional[str], typer.Option("--name", help="Placeholder name (no account)")
    ] = None,
    role: Annotated[
        Optional[str], typer.Option("--role", help="Role (COLLABORATOR, VIEWER)")
    ] = None,
    db: DbOption = None,
) -> None:
    """Add a member: link a user, invite an email, or add a placeholder"""
    with open_ledger(db) as ledger:
        member = ledger.invite(
            requester, session_id, user_id=user_id, invited_email=email, name=name, role=role
        )

    typer.echo(f"✓ Added member: {member['id']}")
    typer.echo(f"  Role: {member['role']}")
    typer.echo(f"  Status: {member['invitation_status']}")
    if member.get("invite_token"):
        typer.echo(f"  Invite token: {member['invite_token']}")


@member_app.command("preview")
def member_preview(
    token: Annotated[str, typer.Option("--token", help="Invitation token")],
    db: DbOption = None,
) -> None:
    """Show what an invitation is for"""
    with open_ledger(db) as ledger:
        preview = ledger.lookup_invite(token)

    typer.echo(f"Invitation to: {preview['session_name']}")
    typer.echo(f"  Role: {preview['role']}")
    typer.echo(f"  Invited: {preview['invited_at']}")


@member_app.command("accept")
def member_accept(
    requester: AsOption,
    token: Annotated[str, typer.Option("--token", help="Invitation token")],
    db: DbOption = None,
) -> None:
    """Accept an invitation"""
    with open_ledger(db) as ledger:
        member = ledger.accept_invite(requester, token)

    typer.echo(f"✓ Joined session: {member['session_id']}")
    typer.echo(f"  Member: {member['id']}")
    typer.echo(f"  Role: {member['role']}")


@member_app.command("decline")
def member_decline(
    token: Annotated[str, typer.Option("--token", help="Invitation token")],
    db: DbOption = None,
) -> None:
    """Decline an invitation"""
    with open_ledger(db) as ledger:
        member = ledger.decline_invite(token)

    typer.echo(f"✓ Declined invitation: {member['id']}")


@member_app.command("revoke")
def member_revoke(
    requester: AsOption,
    member_id: Annotated[str, typer.Option("--id", help="Member ID")],
    db: DbOption = None,
) -> None:
    """Revoke a pending invitation"""
    with open_ledger(db) as ledger:
        member = ledger.revoke_invite(requester, member_id)

    typer.echo(f"✓ Revoked invitation: {member['id']}")


@member_app.command("role")
def member_role(
    requester: AsOption,
    member_id: Annotated[str, typer.Option("--id", help="Member ID")],
    role: Annotated[str, typer.Option("--role", help="New role (COLLABORATOR, VIEWER)")],
    db: DbOption = None,
) -> None:
    """Change the role of a member"""
    with open_ledger(db) as ledger:
        member = ledger.change_role(requester, member_id, role)

    typer.echo(f"✓ Changed role: {member['id']} → {member['role']}")


@member_app.command("remove")
def member_remove(
    requester: AsOption,
    member_id: Annotated[str, typer.Option("--id", help="Member ID")],
    db: DbOption = None,
) -> None:
    """Remove a member from a session"""
    with open_ledger(db) as ledger:
        member = ledger.remove_member(requester, member_id)

    typer.echo(f"✓ Removed member: {member['id']}")


@member_app.command("list")
def member_list(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    status: Annotated[
        Optional[str],
        typer.Option("--status", help="Filter by status (PENDING, ACCEPTED, DECLINED)"),
    ] = None,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List the members of a session"""
    with open_ledger(db) as ledger:
        members = ledger.list_members(requester, session_id, status)

    if json_output:
        echo_json(members)
        return
    if not members:
        typer.echo("No members")
        return

    typer.echo(f"Members ({len(members)}):")
    for member in members:
        label = member.get("name") or member.get("user_id") or "(invited)"
        typer.echo(f"  {member['id']}: {label} [{member['role']}, {member['invitation_status']}]")


# Bank account commands


@bank_app.command("create")
def bank_create(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    label: Annotated[str, typer.Option("--label", help="Account label")],
    bank_name: Annotated[Optional[str], typer.Option("--bank-name", help="Bank name")] = None,
    balance: Annotated[str, typer.Option("--balance", help="Initial balance")] = "0.00",
    members: Annotated[
        Optional[list[str]],
        typer.Option("--member", help="Member ID (repeatable)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Create a bank account"""
    with open_ledger(db) as ledger:
        account = ledger.create_bank_account(
            requester,
            session_id,
            label,
            bank_name=bank_name,
            initial_balance=balance,
            member_ids=members or [],
        )

    typer.echo(f"✓ Created bank account: {account['id']}")
    typer.echo(f"  Label: {account['label']}")
    typer.echo(f"  Initial balance: {account['initial_balance']}")
    typer.echo(f"  Members: {len(account['member_ids'])}")


@bank_app.command("list")
def bank_list(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List the bank accounts of a session"""
    with open_ledger(db) as ledger:
        accounts = ledger.list_bank_accounts(requester, session_id)

    if json_output:
        echo_json(accounts)
        return
    if not accounts:
        typer.echo("No bank accounts")
        return

    typer.echo(f"Bank accounts ({len(accounts)}):")
    for account in accounts:
        typer.echo(f"  {account['id']}: {account['label']} ({account['initial_balance']})")


@bank_app.command("attach")
def bank_attach(
    requester: AsOption,
    account_id: Annotated[str, typer.Option("--id", help="Bank account ID")],
    members: Annotated[list[str], typer.Option("--member", help="Member ID (repeatable)")],
    db: DbOption = None,
) -> None:
    """Attach members to a bank account"""
    with open_ledger(db) as ledger:
        account = ledger.add_account_members(requester, account_id, member_ids=members)

    typer.echo(f"✓ Bank account {account['id']} now has {len(account['member_ids'])} member(s)")


@bank_app.command("detach")
def bank_detach(
    requester: AsOption,
    account_id: Annotated[str, typer.Option("--id", help="Bank account ID")],
    member_id: Annotated[str, typer.Option("--member", help="Member ID")],
    db: DbOption = None,
) -> None:
    """Detach a member; the account is deleted when its last member leaves"""
    with open_ledger(db) as ledger:
        removal = ledger.remove_account_member(requester, account_id, member_id)

    typer.echo(f"✓ Detached member {removal['member_id']}")
    if removal["account_deleted"]:
        typer.echo(f"  Bank account {removal['bank_account_id']} had no member left and was deleted")


@bank_app.command("delete")
def bank_delete(
    requester: AsOption,
    account_id: Annotated[str, typer.Option("--id", help="Bank account ID")],
    db: DbOption = None,
) -> None:
    """Delete a bank account with its incomes, expenses and transactions"""
    with open_ledger(db) as ledger:
        account = ledger.delete_bank_account(requester, account_id)

    typer.echo(f"✓ Deleted bank account: {account['id']}")


# Income commands


@income_app.command("add")
def income_add(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    member_id: Annotated[str, typer.Option("--member", help="Member ID")],
    account_id: Annotated[str, typer.Option("--account", help="Bank account ID")],
    label: Annotated[str, typer.Option("--label", help="Income label")],
    amount: Annotated[str, typer.Option("--amount", help="Amount (e.g. 1800.00)")],
    day: Annotated[int, typer.Option("--day", help="Day of month (1-31)")],
    db: DbOption = None,
) -> None:
    """Add a planned monthly income"""
    with open_ledger(db) as ledger:
        income = ledger.create_income(
            requester,
            session_id,
            member_id=member_id,
            bank_account_id=account_id,
            label=label,
            amount=amount,
            day=day,
        )

    typer.echo(f"✓ Added income: {income['id']}")
    typer.echo(f"  {income['label']}: {income['amount']} on day {income['day']}")


@income_app.command("list")
def income_list(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List planned incomes"""
    with open_ledger(db) as ledger:
        incomes = ledger.list_incomes(requester, session_id)

    if json_output:
        echo_json(incomes)
        return
    typer.echo(f"Incomes ({len(incomes)}):")
    for income in incomes:
        typer.echo(f"  {income['id']}: {income['label']} {income['amount']} (day {income['day']})")


@income_app.command("delete")
def income_delete(
    requester: AsOption,
    income_id: Annotated[str, typer.Option("--id", help="Income ID")],
    db: DbOption = None,
) -> None:
    """Delete a planned income"""
    with open_ledger(db) as ledger:
        income = ledger.delete_income(requester, income_id)

    typer.echo(f"✓ Deleted income: {income['id']}")


# Expense commands


@expense_app.command("add")
def expense_add(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    member_id: Annotated[str, typer.Option("--member", help="Member ID")],
    account_id: Annotated[str, typer.Option("--account", help="Bank account ID")],
    label: Annotated[str, typer.Option("--label", help="Expense label")],
    amount: Annotated[str, typer.Option("--amount", help="Amount (e.g. 750.00)")],
    day: Annotated[int, typer.Option("--day", help="Day of month (1-31)")],
    category: Annotated[str, typer.Option("--category", help="Expense category")] = "OTHER",
    db: DbOption = None,
) -> None:
    """Add a planned monthly expense"""
    with open_ledger(db) as ledger:
        expense = ledger.create_expense(
            requester,
            session_id,
            member_id=member_id,
            bank_account_id=account_id,
            label=label,
            amount=amount,
            day=day,
            category=category,
        )

    typer.echo(f"✓ Added expense: {expense['id']}")
    typer.echo(f"  {expense['label']}: {expense['amount']} on day {expense['day']}")
    typer.echo(f"  Category: {expense['category']}")


@expense_app.command("list")
def expense_list(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    active_only: Annotated[
        bool, typer.Option("--active-only", help="Hide archived expenses")
    ] = False,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List planned expenses"""
    with open_ledger(db) as ledger:
        expenses = ledger.list_expenses(requester, session_id, include_archived=not active_only)

    if json_output:
        echo_json(expenses)
        return
    typer.echo(f"Expenses ({len(expenses)}):")
    for expense in expenses:
        archived = " (archived)" if expense["is_archived"] else ""
        typer.echo(f"  {expense['id']}: {expense['label']} {expense['amount']}{archived}")


@expense_app.command("archive")
def expense_archive(
    requester: AsOption,
    expense_id: Annotated[str, typer.Option("--id", help="Expense ID")],
    restore: Annotated[bool, typer.Option("--restore", help="Unarchive instead")] = False,
    db: DbOption = None,
) -> None:
    """Archive an expense so it no longer counts as planned"""
    with open_ledger(db) as ledger:
        expense = ledger.update_expense(requester, expense_id, is_archived=not restore)

    state = "Archived" if expense["is_archived"] else "Restored"
    typer.echo(f"✓ {state} expense: {expense['id']}")


@expense_app.command("delete")
def expense_delete(
    requester: AsOption,
    expense_id: Annotated[str, typer.Option("--id", help="Expense ID")],
    db: DbOption = None,
) -> None:
    """Delete a planned expense"""
    with open_ledger(db) as ledger:
        expense = ledger.delete_expense(requester, expense_id)

    typer.echo(f"✓ Deleted expense: {expense['id']}")


# Budget commands


@budget_app.command("create")
def budget_create(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    month: Annotated[str, typer.Option("--month", help="Month (YYYY-MM)")],
    opening: Annotated[str, typer.Option("--opening", help="Opening balance")] = "0.00",
    notes: Annotated[Optional[str], typer.Option("--notes")] = None,
    db: DbOption = None,
) -> None:
    """Create the budget of a month"""
    with open_ledger(db) as ledger:
        budget = ledger.create_budget(
            requester, session_id, month, opening_balance=opening, notes=notes
        )

    typer.echo(f"✓ Created budget: {budget['id']}")
    typer.echo(f"  Month: {budget['month']}")
    typer.echo(f"  Opening balance: {budget['opening_balance']}")


@budget_app.command("list")
def budget_list(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List the budgets of a session"""
    with open_ledger(db) as ledger:
        budgets = ledger.list_budgets(requester, session_id)

    if json_output:
        echo_json(budgets)
        return
    if not budgets:
        typer.echo("No budgets")
        return

    typer.echo(f"Budgets ({len(budgets)}):")
    for budget in budgets:
        lock = " [locked]" if budget["locked"] else ""
        typer.echo(f"  {budget['id']}: {budget['month']} opening {budget['opening_balance']}{lock}")


@budget_app.command("lock")
def budget_lock(
    requester: AsOption,
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    db: DbOption = None,
) -> None:
    """Lock a budget against changes"""
    with open_ledger(db) as ledger:
        budget = ledger.update_budget(requester, budget_id, locked=True)

    typer.echo(f"✓ Locked budget: {budget['month']}")


@budget_app.command("unlock")
def budget_unlock(
    requester: AsOption,
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    db: DbOption = None,
) -> None:
    """Unlock a budget"""
    with open_ledger(db) as ledger:
        budget = ledger.update_budget(requester, budget_id, locked=False)

    typer.echo(f"✓ Unlocked budget: {budget['month']}")


@budget_app.command("delete")
def budget_delete(
    requester: AsOption,
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    db: DbOption = None,
) -> None:
    """Delete an unlocked budget without transactions"""
    with open_ledger(db) as ledger:
        budget = ledger.delete_budget(requester, budget_id)

    typer.echo(f"✓ Deleted budget: {budget['month']}")


# Transaction commands


@tx_app.command("add")
def tx_add(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    account_id: Annotated[str, typer.Option("--account", help="Bank account ID")],
    tx_type: Annotated[str, typer.Option("--type", help="INFLOW or OUTFLOW")],
    label: Annotated[str, typer.Option("--label", help="Label")],
    amount: Annotated[str, typer.Option("--amount", help="Positive amount")],
    date: Annotated[str, typer.Option("--date", help="ISO-8601 date or datetime")],
    member_id: Annotated[Optional[str], typer.Option("--member", help="Member ID")] = None,
    category: Annotated[Optional[str], typer.Option("--category")] = None,
    cleared: Annotated[bool, typer.Option("--cleared", help="Already on the statement")] = False,
    notes: Annotated[Optional[str], typer.Option("--notes")] = None,
    db: DbOption = None,
) -> None:
    """Record a transaction in the budget of its month"""
    with open_ledger(db) as ledger:
        tx = ledger.create_transaction(
            requester,
            session_id,
            bank_account_id=account_id,
            member_id=member_id,
            type=tx_type,
            label=label,
            amount=amount,
            date=date,
            category=category,
            is_cleared=cleared,
            notes=notes,
        )

    typer.echo(f"✓ Recorded transaction: {tx['id']}")
    typer.echo(f"  {tx['type']} {tx['amount']} on {tx['date']}")
    typer.echo(f"  Budget: {tx['budget_id']}")


@tx_app.command("list")
def tx_list(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    date_from: Annotated[Optional[str], typer.Option("--from", help="From date")] = None,
    date_to: Annotated[Optional[str], typer.Option("--to", help="To date")] = None,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List transactions, newest first"""
    with open_ledger(db) as ledger:
        transactions = ledger.list_transactions(requester, session_id, date_from, date_to)

    if json_output:
        echo_json(transactions)
        return
    if not transactions:
        typer.echo("No transactions")
        return

    typer.echo(f"Transactions ({len(transactions)}):")
    for tx in transactions:
        sign = "+" if tx["type"] == "INFLOW" else "-"
        cleared = " ✓" if tx["is_cleared"] else ""
        typer.echo(f"  {tx['date']}  {sign}{tx['amount']}  {tx['label']}{cleared}")


@tx_app.command("clear")
def tx_clear(
    requester: AsOption,
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID")],
    db: DbOption = None,
) -> None:
    """Mark a transaction as cleared"""
    with open_ledger(db) as ledger:
        tx = ledger.update_transaction(requester, transaction_id, is_cleared=True)

    typer.echo(f"✓ Cleared transaction: {tx['id']}")


@tx_app.command("delete")
def tx_delete(
    requester: AsOption,
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID")],
    db: DbOption = None,
) -> None:
    """Delete a transaction"""
    with open_ledger(db) as ledger:
        tx = ledger.delete_transaction(requester, transaction_id)

    typer.echo(f"✓ Deleted transaction: {tx['id']}")


# Summary command


@app.command()
def summary(
    requester: AsOption,
    session_id: Annotated[str, typer.Option("--session", help="Session ID")],
    month: Annotated[
        Optional[str],
        typer.Option("--month", help="Month (YYYY-MM), current month if omitted"),
    ] = None,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Planned vs actual vs cleared balances of a month"""
    with open_ledger(db) as ledger:
        if month:
            result = ledger.summarize(requester, session_id, month)
        else:
            result = ledger.summarize_current_month(requester, session_id)

    if json_output:
        echo_json(result)
        return

    typer.echo(f"Budget {result['month']}")
    if result["budget"] is None:
        typer.echo("  (no budget recorded for this month)")
    typer.echo(f"  Opening balance:     {result['opening_balance']}")
    typer.echo("  Planned")
    typer.echo(f"    Income:            {result['planned_income']}")
    typer.echo(f"    Expense:           {result['planned_expense']}")
    typer.echo(f"    Projected end:     {result['projected_end_balance']}")
    typer.echo("  Actual")
    typer.echo(f"    Inflow:            {result['actual_inflow']}")
    typer.echo(f"    Outflow:           {result['actual_outflow']}")
    typer.echo(f"    Ending balance:    {result['ending_balance']}")
    typer.echo("  Cleared")
    typer.echo(f"    Inflow:            {result['cleared_inflow']}")
    typer.echo(f"    Outflow:           {result['cleared_outflow']}")
    typer.echo(f"    Ending balance:    {result['cleared_ending_balance']}")


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
