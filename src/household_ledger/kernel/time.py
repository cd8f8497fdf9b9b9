"""
Time provider and civil calendar

The clock is injectable so tests are deterministic. Month keys ("YYYY-MM")
are always derived in a fixed civil timezone rather than the host's local
zone: a transaction stamped 2025-02-01T00:30:00Z is still January in UTC
but already February in Paris, and both the month-bucketing resolver and
the ledger aggregator must agree on which budget it belongs to.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Annotated, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BeforeValidator, PlainSerializer, StringConstraints


class TimeProvider(Protocol):
    """Protocol for time providers - allows deterministic testing"""

    def now(self) -> datetime:
        """Return current UTC datetime"""
        ...


class RealTimeProvider:
    """Production time provider using system clock"""

    def now(self) -> datetime:
        """Return current UTC time from system clock"""
        return datetime.now(timezone.utc)


class TestTimeProvider:
    """
    Controllable time provider for deterministic tests

    Allows tests to freeze time and advance it explicitly, so that
    created_at stamps and "current month" lookups are reproducible.
    """

    __test__ = False

    def __init__(self, initial_time: datetime | None = None) -> None:
        """
        Initialize with optional fixed time

        Args:
            initial_time: Starting time (defaults to Unix epoch)
        """
        self._current_time = initial_time or datetime(1970, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        """Return current test time"""
        return self._current_time

    def set_time(self, dt: datetime) -> None:
        """Set current time to specific value"""
        self._current_time = dt

    def advance_seconds(self, seconds: int) -> None:
        """Advance time by specified seconds"""
        self._current_time += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        """Advance time by specified days"""
        self._current_time += timedelta(days=days)


def parse_instant(value: str | date | datetime) -> datetime:
    """
    Normalize an ISO-8601 value to an aware UTC datetime

    A date-only value ("2025-01-05") means midnight UTC of that day, and a
    datetime without offset is read as UTC.

    Raises:
        ValueError: If the string is not ISO-8601
    """
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, date):
        instant = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty date")
        instant = datetime.fromisoformat(text)
    else:
        raise ValueError(f"unsupported date value {value!r}")

    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def format_instant(instant: datetime) -> str:
    """Render an instant as ISO-8601 UTC with a trailing Z"""
    return instant.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class CivilCalendar:
    """
    Month derivation in a fixed civil timezone

    Injected into the month-bucketing resolver and the ledger aggregator
    so that both compute the same "YYYY-MM" key for the same instant.
    """

    def __init__(self, timezone_name: str = "Europe/Paris") -> None:
        try:
            self.zone = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown civil timezone {timezone_name!r}") from e
        self.timezone_name = timezone_name

    def local(self, instant: str | date | datetime) -> datetime:
        """Express an instant in the civil timezone"""
        return parse_instant(instant).astimezone(self.zone)

    def month_key(self, instant: str | date | datetime) -> str:
        """Return the "YYYY-MM" key of the civil month containing the instant"""
        local = self.local(instant)
        return f"{local.year:04d}-{local.month:02d}"

    def current_month(self, now: datetime) -> str:
        """Return the civil month key of "now" as given by a time provider"""
        return self.month_key(now)

    def __repr__(self) -> str:
        return f"CivilCalendar({self.timezone_name!r})"


MONTH_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

MonthKey = Annotated[str, StringConstraints(pattern=MONTH_KEY_PATTERN)]

# Accepts ISO-8601 strings, dates and datetimes; always stored as aware UTC
Instant = Annotated[
    datetime,
    BeforeValidator(parse_instant),
    PlainSerializer(format_instant, return_type=str, when_used="json"),
]
