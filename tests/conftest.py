"""Shared test fixtures for pulsemeter tests."""

import tempfile
from datetime import timezone
from pathlib import Path

import pytest

from helpers import TEST_HOST

from pulsemeter.engine import ActivityEngine
from pulsemeter.repository import SQLitePulseRepository


@pytest.fixture
def temp_data_dir():
    """Provide a temporary data directory, cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def repo(temp_data_dir):
    """Provide an empty SQLite repository grouping days in UTC."""
    repository = SQLitePulseRepository(temp_data_dir / "pulsemeter.db", tz=timezone.utc)
    yield repository
    repository.close()


@pytest.fixture
def engine(repo):
    """Provide an ActivityEngine over the temporary repository, in UTC."""
    return ActivityEngine(repo, timezone.utc, host=TEST_HOST)
