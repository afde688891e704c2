"""
Pytest configuration and fixtures for Billtrack tests.

This module provides shared fixtures and configuration for all test modules.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

from billtrack.core.time_tracker import TimeTracker
from billtrack.db.models import Project
from billtrack.db.repository import EntryRepository, ProjectRepository, TimerRepository
from billtrack.db.schema import DatabaseManager
from billtrack.utils import config as config_module
from billtrack.utils.config import ConfigManager

# Wednesday; its ISO week runs 2026-02-23 .. 2026-03-01
FIXED_NOW = datetime(2026, 2, 25, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def utc(*args: int) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture(autouse=True)
def isolated_config(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    """Keep every test away from the user's real configuration."""
    monkeypatch.delenv(config_module.DATA_DIR_ENV, raising=False)
    manager = ConfigManager(config_dir=temp_dir / "config", data_dir=temp_dir / "data")
    manager.set("timezone", "UTC")
    monkeypatch.setattr(config_module, "_config_manager", manager)
    return manager


@pytest.fixture
def test_db_path(temp_dir: Path) -> Path:
    """Provide a test database path."""
    return temp_dir / "test_billtrack.db"


@pytest.fixture
def db_manager(test_db_path: Path) -> DatabaseManager:
    """Provide a test database manager."""
    manager = DatabaseManager(test_db_path)
    manager.initialize_database()
    return manager


@pytest.fixture
def project_repository(db_manager: DatabaseManager) -> ProjectRepository:
    return ProjectRepository(db_manager)


@pytest.fixture
def entry_repository(db_manager: DatabaseManager) -> EntryRepository:
    return EntryRepository(db_manager)


@pytest.fixture
def timer_repository(db_manager: DatabaseManager) -> TimerRepository:
    return TimerRepository(db_manager)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock starting at FIXED_NOW."""
    return FakeClock()


@pytest.fixture
def time_tracker(temp_dir: Path, clock: FakeClock) -> TimeTracker:
    """Provide a tracker in UTC driven by the fake clock."""
    return TimeTracker(temp_dir / "data", tz=timezone.utc, clock=clock)


@pytest.fixture
def acme(time_tracker: TimeTracker) -> Project:
    """Provide a project billed at 100 USD per hour."""
    return time_tracker.create_project("Acme", client="Acme Corp", hourly_rate=Decimal("100"))


@pytest.fixture
def stored_project(project_repository: ProjectRepository) -> Project:
    """Provide a project already written through the repository."""
    return project_repository.create_project(
        Project(
            name="Website",
            client="Globex",
            hourly_rate=Decimal("80"),
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
        )
    )
