"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from household_ledger.kernel.policy import LedgerPolicy
from household_ledger.kernel.repository import SQLiteRepository
from household_ledger.kernel.time import TestTimeProvider
from household_ledger.ledger import Ledger
from tests.helpers import Household, build_household


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Provide a database path inside pytest's temporary directory"""
    return tmp_path / "ledger.db"


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC, comfortably inside January in
    every civil timezone, so "current month" is always 2025-01.
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> LedgerPolicy:
    """Default policy: Paris civil calendar, collaborators by default"""
    return LedgerPolicy()


@pytest.fixture
def repository(temp_db: Path, test_time: TestTimeProvider) -> Iterator[SQLiteRepository]:
    """Provide a fresh repository for each test"""
    repo = SQLiteRepository(temp_db, test_time)
    yield repo
    repo.close()


@pytest.fixture
def ledger(
    temp_db: Path, policy: LedgerPolicy, test_time: TestTimeProvider
) -> Iterator[Ledger]:
    """Provide a fresh ledger façade for each test"""
    instance = Ledger(temp_db, policy=policy, time_provider=test_time)
    yield instance
    instance.close()


@pytest.fixture
def household(ledger: Ledger) -> Household:
    """
    A session owned by alice, with bob (COLLABORATOR), vic (VIEWER),
    a placeholder "Kid" and one joint bank account shared by bob and Kid
    """
    return build_household(ledger)
