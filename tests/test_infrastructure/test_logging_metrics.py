"""
Test infrastructure components: logging, metrics and retry.

These tests verify the production hardening infrastructure works correctly.
"""

import sqlite3
from collections.abc import Iterator

import pytest
import structlog
from structlog.testing import LogCapture, capture_logs

import household_ledger.ledger as ledger_module
from household_ledger.kernel.errors import (
    DuplicateRecord,
    InvalidInput,
    InvitationAlreadyResolved,
    NotAParticipant,
    StorageError,
)
from household_ledger.kernel.logging import (
    REDACTED,
    LogOperation,
    configure_logging,
    get_correlation_id,
    get_logger,
    is_production,
    redact_context,
    redact_sensitive_fields,
    set_correlation_id,
)
from household_ledger.kernel.metrics import (
    authorization_denials_total,
    operation_duration_seconds,
    operations_total,
    track_operation,
)
from household_ledger.kernel.retry import is_lock_contention, retry_on_sqlite_lock
from tests.helpers import OUTSIDER, OWNER


class TestLoggingFramework:
    """Test structured logging framework."""

    def test_configure_logging_console(self) -> None:
        """Test logging configuration for console output."""
        configure_logging(json_output=False, log_level="INFO")
        assert get_logger(__name__) is not None

    def test_configure_logging_json(self) -> None:
        """Test logging configuration for JSON output."""
        configure_logging(json_output=True, log_level="DEBUG")
        assert get_logger(__name__) is not None

    def test_correlation_id(self) -> None:
        """Test correlation ID context management."""
        cid = get_correlation_id()
        assert cid
        assert get_correlation_id() == cid

        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

    def test_is_production(self, monkeypatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "Production")
        assert is_production()
        monkeypatch.setenv("ENVIRONMENT", "staging")
        assert not is_production()


class TestRedaction:
    """PII and money never reach a log line."""

    def test_redact_context(self) -> None:
        redacted = redact_context(
            {"invited_email": "bob@example.com", "amount": "12.00", "role": "VIEWER"}
        )

        assert redacted == {"invited_email": REDACTED, "amount": REDACTED, "role": "VIEWER"}

    def test_redact_processor(self) -> None:
        event = {"event": "Invitation created", "invite_token": "abc", "member_id": "m-1"}

        result = redact_sensitive_fields(None, "info", event)

        assert result["invite_token"] == REDACTED
        assert result["member_id"] == "m-1"


class TestLogOperation:
    """LogOperation times a block and logs its outcome."""

    def test_success(self) -> None:
        with capture_logs() as logs:
            with LogOperation(structlog.get_logger("test"), "summarize", month="2025-01"):
                pass

        completed = [e for e in logs if e["event"] == "summarize completed"]
        assert len(completed) == 1
        assert completed[0]["month"] == "2025-01"
        assert completed[0]["duration_ms"] >= 0

    def test_refusal_is_a_warning(self) -> None:
        with capture_logs() as logs:
            with pytest.raises(InvalidInput):
                with LogOperation(structlog.get_logger("test"), "create_budget"):
                    raise InvalidInput("bad month")

        rejected = [e for e in logs if e["event"] == "create_budget rejected"]
        assert rejected[0]["log_level"] == "warning"
        assert rejected[0]["error_kind"] == "bad_request"

    def test_unexpected_error_is_an_error(self) -> None:
        with capture_logs() as logs:
            with pytest.raises(StorageError):
                with LogOperation(structlog.get_logger("test"), "create_budget"):
                    raise StorageError("disk full")

        failed = [e for e in logs if e["event"] == "create_budget failed"]
        assert failed[0]["log_level"] == "error"

    def test_context_is_redacted(self) -> None:
        with capture_logs() as logs:
            with LogOperation(structlog.get_logger("test"), "invite", invited_email="x@y.z"):
                pass

        assert all(e.get("invited_email") == REDACTED for e in logs)


@pytest.fixture
def operation_logs(monkeypatch) -> Iterator[list[dict]]:
    """Events of ledger operations, with the bound request context merged in"""
    capture = LogCapture()
    previous = structlog.get_config()
    structlog.configure(
        processors=[structlog.contextvars.merge_contextvars, capture],
        cache_logger_on_first_use=False,
    )
    monkeypatch.setattr(ledger_module, "logger", structlog.get_logger("household_ledger.ledger"))
    try:
        yield capture.entries
    finally:
        structlog.configure(**previous)


class TestOperationContext:
    """The façade binds the requester and the ids of each call, nothing else."""

    def test_positional_ids_are_logged(self, ledger, household, operation_logs) -> None:
        ledger.list_budgets(OWNER, household.session_id)

        completed = [e for e in operation_logs if e["event"] == "list_budgets completed"]
        assert completed[0]["session_id"] == household.session_id
        assert completed[0]["requester_id"] == OWNER

    def test_token_is_never_logged(self, ledger, household, operation_logs) -> None:
        invited = ledger.invite(
            OWNER, household.session_id, invited_email="carol@example.com", role="VIEWER"
        )
        token = invited["invite_token"]
        operation_logs.clear()

        ledger.decline_invite(token)
        with pytest.raises(InvitationAlreadyResolved):
            ledger.decline_invite(token)

        assert [e["event"] for e in operation_logs if e["event"].startswith("decline_invite")]
        assert token not in repr(operation_logs)
        assert all("requester_id" not in e for e in operation_logs)

    def test_email_is_never_logged(self, ledger, household, operation_logs) -> None:
        ledger.register_user("carol@example.com")
        with pytest.raises(DuplicateRecord):
            ledger.register_user("carol@example.com")

        ledger.invite(OWNER, household.session_id, invited_email="dora@example.com")
        with pytest.raises(DuplicateRecord):
            ledger.invite(OWNER, household.session_id, invited_email="dora@example.com")

        rejected = [e for e in operation_logs if e["event"].endswith("rejected")]
        assert len(rejected) == 2
        rendered = repr(operation_logs)
        assert "carol@example.com" not in rendered
        assert "dora@example.com" not in rendered
        registrations = [e for e in operation_logs if e["event"].startswith("register_user")]
        assert all("requester_id" not in e for e in registrations)


class TestMetrics:
    """Operation counters and timings."""

    def test_track_operation_success(self) -> None:
        @track_operation("test_success")
        def works() -> int:
            return 42

        before = operations_total.labels(operation="test_success", status="success")._value.get()

        assert works() == 42
        after = operations_total.labels(operation="test_success", status="success")._value.get()
        assert after == before + 1

    def test_track_operation_labels_error_kind(self) -> None:
        @track_operation("test_refused")
        def refuses() -> None:
            raise InvalidInput("no")

        counter = operations_total.labels(operation="test_refused", status="bad_request")
        before = counter._value.get()

        with pytest.raises(InvalidInput):
            refuses()

        assert counter._value.get() == before + 1

    def test_track_operation_labels_unknown_errors(self) -> None:
        @track_operation("test_crash")
        def crashes() -> None:
            raise RuntimeError("boom")

        counter = operations_total.labels(operation="test_crash", status="error")
        before = counter._value.get()

        with pytest.raises(RuntimeError):
            crashes()

        assert counter._value.get() == before + 1

    def test_duration_is_observed(self) -> None:
        @track_operation("test_timed")
        def quick() -> None:
            return None

        quick()

        histogram = operation_duration_seconds.labels(operation="test_timed")
        assert histogram._sum.get() >= 0

    def test_denials_are_counted(self, ledger, household) -> None:
        counter = authorization_denials_total.labels(reason="not_participant")
        before = counter._value.get()

        with pytest.raises(NotAParticipant):
            ledger.list_members(OUTSIDER, household.session_id)

        assert counter._value.get() == before + 1


class TestRetry:
    """SQLite lock contention is retried, everything else is not."""

    def test_is_lock_contention(self) -> None:
        assert is_lock_contention(sqlite3.OperationalError("database is locked"))
        assert is_lock_contention(sqlite3.OperationalError("database is busy"))
        assert not is_lock_contention(sqlite3.OperationalError("no such table: x"))
        assert not is_lock_contention(ValueError("locked"))

    def test_retries_lock_errors(self) -> None:
        calls = []

        @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=1)
        def flaky() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 3

    def test_gives_up_after_max_attempts(self) -> None:
        calls = []

        @retry_on_sqlite_lock(max_attempts=2, min_wait_ms=1, max_wait_ms=1)
        def always_locked() -> None:
            calls.append(1)
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(sqlite3.OperationalError):
            always_locked()
        assert len(calls) == 2

    def test_other_errors_are_not_retried(self) -> None:
        calls = []

        @retry_on_sqlite_lock(min_wait_ms=1, max_wait_ms=1)
        def broken() -> None:
            calls.append(1)
            raise sqlite3.OperationalError("no such table: budgets")

        with pytest.raises(sqlite3.OperationalError):
            broken()
        assert len(calls) == 1
