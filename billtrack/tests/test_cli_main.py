"""
Tests for CLI main module (billtrack.cli.main).

This module tests the command-line interface functionality including all commands,
error handling, and output formatting.
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Generator, Tuple
from unittest.mock import Mock, patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from billtrack import __version__
from billtrack.cli import main as cli_main
from billtrack.cli.main import app, get_tracker
from billtrack.core.errors import StorageError
from billtrack.core.time_tracker import TimeTracker
from billtrack.utils.config import ConfigManager

from .conftest import FakeClock, utc


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    # wide enough that table cells never wrap
    monkeypatch.setattr(cli_main, "console", Console(width=200))
    return CliRunner()


@pytest.fixture
def tracker(time_tracker: TimeTracker) -> Generator[TimeTracker, None, None]:
    """Route the CLI to the test tracker."""
    with patch("billtrack.cli.main.get_tracker", return_value=time_tracker):
        yield time_tracker


@pytest.fixture
def with_acme(tracker: TimeTracker) -> TimeTracker:
    tracker.create_project("Acme", client="Acme Corp", hourly_rate=100)
    return tracker


class TestProjectCommand:
    """Test cases for the project command."""

    def test_create(self, runner: CliRunner, tracker: TimeTracker) -> None:
        # Act
        result = runner.invoke(
            app, ["project", "create", "Acme", "--client", "Acme Corp", "--rate", "100"]
        )

        # Assert
        assert result.exit_code == 0
        assert "Created project: Acme" in result.stdout
        assert "Rate: $100.00/h" in result.stdout
        assert tracker.get_project("Acme").client == "Acme Corp"

    def test_create_without_name(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["project", "create"])

        assert result.exit_code == 1
        assert "Project name is required" in result.stdout

    def test_create_invalid_rate(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["project", "create", "Acme", "--rate=-5"])

        assert result.exit_code == 1
        assert "Error:" in result.stdout
        assert tracker.list_projects() == []

    def test_list(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        result = runner.invoke(app, ["project", "list"])

        assert result.exit_code == 0
        assert "Projects (1 total)" in result.stdout
        assert "Acme" in result.stdout

    def test_list_empty(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["project", "list", "--search", "nothing"])

        assert result.exit_code == 0
        assert "No projects found" in result.stdout

    def test_update_and_archive(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        # Act
        result = runner.invoke(app, ["project", "update", "acme", "--rate", "120", "--archive"])

        # Assert
        assert result.exit_code == 0
        assert "Updated project: Acme" in result.stdout
        assert "Status: archived" in result.stdout
        project = with_acme.get_project("Acme")
        assert project.archived is True
        assert project.hourly_rate == Decimal("120")

    def test_update_without_changes(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        result = runner.invoke(app, ["project", "update", "Acme"])

        assert result.exit_code == 0
        assert "Nothing to update" in result.stdout

    def test_unknown_action(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["project", "destroy", "Acme"])

        assert result.exit_code == 1
        assert "Unknown action: destroy" in result.stdout


class TestTimerCommands:
    """Test cases for start, stop, status and discard."""

    def test_start(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        # Act
        result = runner.invoke(app, ["start", "Acme", "-d", "Landing page", "-t", "ui"])

        # Assert
        assert result.exit_code == 0
        assert "Started timer on: Acme" in result.stdout
        assert "Description: Landing page" in result.stdout
        assert "Tags: ui" in result.stdout
        assert with_acme.get_timer_status().running is True

    def test_start_twice_fails(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        runner.invoke(app, ["start", "Acme"])

        result = runner.invoke(app, ["start", "Acme"])

        assert result.exit_code == 1
        assert "Error: Timer already running" in result.stdout

    def test_start_unknown_project(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["start", "Nobody"])

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_start_ambiguous_lists_candidates(self, runner: CliRunner, tracker: TimeTracker) -> None:
        tracker.create_project("Acme")
        tracker.create_project("ACME")

        result = runner.invoke(app, ["start", "acme"])

        assert result.exit_code == 1
        assert "ambiguous" in result.stdout
        assert "#2 ACME" in result.stdout

    def test_stop(self, runner: CliRunner, with_acme: TimeTracker, clock: FakeClock) -> None:
        # Arrange
        with_acme.start_timer("Acme")
        clock.advance(minutes=30)

        # Act
        result = runner.invoke(app, ["stop"])

        # Assert
        assert result.exit_code == 0
        assert "Stopped: Acme" in result.stdout
        assert "Duration: 30m" in result.stdout
        assert "Amount: $50.00" in result.stdout

    def test_stop_when_idle(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["stop"])

        assert result.exit_code == 1
        assert "No timer is running" in result.stdout

    def test_status_idle(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "No timer running" in result.stdout

    def test_status_running(self, runner: CliRunner, with_acme: TimeTracker, clock: FakeClock) -> None:
        with_acme.start_timer("Acme", description="Deploy")
        clock.advance(hours=1, minutes=5)

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Timer running" in result.stdout
        assert "1:05:00" in result.stdout
        assert "Deploy" in result.stdout

    def test_discard(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        with_acme.start_timer("Acme")

        result = runner.invoke(app, ["discard"])

        assert result.exit_code == 0
        assert "Discarded timer" in result.stdout
        assert with_acme.list_entries() == []


class TestEntryCommands:
    """Test cases for add, log and delete."""

    def test_add(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        # Act
        result = runner.invoke(
            app, ["add", "Acme", "2026-02-25 09:00", "2026-02-25 09:30", "-t", "call"]
        )

        # Assert
        assert result.exit_code == 0
        assert "Added entry #1: 30m" in result.stdout
        entry = with_acme.get_entry(1)
        assert entry.tags == ["call"]

    def test_add_non_billable(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        result = runner.invoke(
            app, ["add", "Acme", "2026-02-25T09:00", "2026-02-25T10:00", "--non-billable"]
        )

        assert result.exit_code == 0
        assert with_acme.get_entry(1).billable is False

    def test_add_end_before_start(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        result = runner.invoke(app, ["add", "Acme", "2026-02-25 10:00", "2026-02-25 09:00"])

        assert result.exit_code == 1
        assert "End time must be after start time" in result.stdout

    def test_add_malformed_datetime(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        result = runner.invoke(app, ["add", "Acme", "yesterday", "2026-02-25 09:00"])

        assert result.exit_code == 2
        assert with_acme.list_entries() == []

    def test_log(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        with_acme.add_entry("Acme", *_times("09:00", "09:30"))
        with_acme.add_entry("Acme", *_times("10:00", "11:00"))

        result = runner.invoke(app, ["log", "today"])

        assert result.exit_code == 0
        assert "Total: 1h 30m" in result.stdout
        assert "(2 entries)" in result.stdout

    def test_log_empty(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["log"])

        assert result.exit_code == 0
        assert "No entries found" in result.stdout

    def test_log_unknown_range(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["log", "fortnight"])

        assert result.exit_code == 1
        assert "Unknown range preset" in result.stdout

    def test_delete_with_yes(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        entry = with_acme.add_entry("Acme", *_times("09:00", "09:30"))

        result = runner.invoke(app, ["delete", str(entry.id), "--yes"])

        assert result.exit_code == 0
        assert f"Deleted entry #{entry.id}" in result.stdout
        assert with_acme.list_entries() == []

    def test_delete_cancelled(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        entry = with_acme.add_entry("Acme", *_times("09:00", "09:30"))

        result = runner.invoke(app, ["delete", str(entry.id)], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.stdout
        assert len(with_acme.list_entries()) == 1

    def test_delete_unknown(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["delete", "99", "--yes"])

        assert result.exit_code == 1
        assert "Time entry with ID 99 not found" in result.stdout


class TestReportCommands:
    """Test cases for timesheet and report."""

    def test_timesheet(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        # Arrange
        with_acme.add_entry("Acme", *_times("09:00", "09:30"))

        # Act
        result = runner.invoke(app, ["timesheet", "today"])

        # Assert
        assert result.exit_code == 0
        assert "Timesheet: 2026-02-25 to 2026-02-25" in result.stdout
        assert "Billable amount: $50.00" in result.stdout
        assert "Entries: 1" in result.stdout

    def test_timesheet_explicit_range(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        result = runner.invoke(app, ["timesheet", "--from", "2026-02-01", "--to", "2026-02-10"])

        assert result.exit_code == 0
        assert "Timesheet: 2026-02-01 to 2026-02-10" in result.stdout
        assert "No time entries found" in result.stdout

    def test_timesheet_needs_both_bounds(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["timesheet", "--from", "2026-02-01"])

        assert result.exit_code == 2

    def test_timesheet_inverted_range(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["timesheet", "--from", "2026-02-10", "--to", "2026-02-01"])

        assert result.exit_code == 1
        assert "before start" in result.stdout

    def test_report(self, runner: CliRunner, with_acme: TimeTracker) -> None:
        with_acme.add_entry("Acme", *_times("09:00", "09:30"))

        result = runner.invoke(app, ["report", "this_week"])

        assert result.exit_code == 0
        assert "Report: 2026-02-23 to 2026-02-25" in result.stdout
        assert "$50.00 earned" in result.stdout
        assert "2026-W09" in result.stdout

    def test_report_honors_hours_decimals(
        self, runner: CliRunner, with_acme: TimeTracker, isolated_config: ConfigManager
    ) -> None:
        with_acme.add_entry("Acme", *_times("09:00", "09:20"))
        isolated_config.set("display.hours_decimals", 2)

        result = runner.invoke(app, ["report", "today"])

        assert result.exit_code == 0
        assert "Total: 0.33h tracked" in result.stdout

    def test_report_defaults_to_this_week(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["report"])

        assert result.exit_code == 0
        assert "Report: 2026-02-23 to 2026-02-25" in result.stdout
        assert "No time entries found" in result.stdout


class TestMisc:
    def test_color_comes_from_config(self, isolated_config: ConfigManager) -> None:
        isolated_config.set("colors.money", "magenta")

        assert cli_main._color("money") == "magenta"
        assert cli_main._color("duration") == "cyan"

    def test_status_uses_configured_running_color(
        self, tracker: TimeTracker, isolated_config: ConfigManager, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Arrange
        tracker.create_project("Acme")
        tracker.start_timer("Acme")
        isolated_config.set("colors.running", "magenta")
        monkeypatch.setattr(
            cli_main, "console", Console(width=200, force_terminal=True, color_system="standard")
        )

        # Act
        result = CliRunner().invoke(app, ["status"])

        # Assert
        assert result.exit_code == 0
        assert "\x1b[35m● Timer running" in result.stdout

    @patch("billtrack.cli.main.get_tracker")
    def test_storage_error_exits_with_one(self, mock_get_tracker: Mock, runner: CliRunner) -> None:
        # Arrange
        mock_tracker = Mock()
        mock_tracker.get_timer_status.side_effect = StorageError("disk I/O error")
        mock_get_tracker.return_value = mock_tracker

        # Act
        result = runner.invoke(app, ["status"])

        # Assert
        assert result.exit_code == 1
        assert "Error: disk I/O error" in result.stdout

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert f"Billtrack version {__version__}" in result.stdout

    def test_verbose_flag(self, runner: CliRunner, tracker: TimeTracker) -> None:
        result = runner.invoke(app, ["--verbose", "status"])

        assert result.exit_code == 0

    def test_config_get_and_set(self, runner: CliRunner, isolated_config: ConfigManager) -> None:
        set_result = runner.invoke(app, ["config", "display.list_limit", "20"])
        get_result = runner.invoke(app, ["config", "display.list_limit"])

        assert set_result.exit_code == 0
        assert isolated_config.get_list_limit() == 20
        assert "display.list_limit = 20" in get_result.stdout

    def test_config_missing_key(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["config", "no.such.key"])

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_config_list(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["config", "--list"])

        assert result.exit_code == 0
        assert "default_currency" in result.stdout

    def test_get_tracker_uses_configuration(
        self, isolated_config: ConfigManager, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(cli_main, "tracker", None)

        built = get_tracker()

        assert built is get_tracker()
        assert built.data_dir == isolated_config.get_data_dir()
        assert (Path(built.data_dir) / "billtrack.db").exists()


def _times(start: str, end: str) -> Tuple[datetime, datetime]:
    """Two UTC instants on 2026-02-25 from HH:MM strings."""
    first, second = (utc(2026, 2, 25, *map(int, t.split(":"))) for t in (start, end))
    return first, second
