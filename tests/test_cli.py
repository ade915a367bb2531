"""Tests for the CLI interface."""

import os
import tempfile
from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner

from readtracker.cli import app
from readtracker.config import reset_config
from readtracker.db.schemas import SyncStatus
from readtracker.db.sqlite import get_db, reset_db


@pytest.fixture(autouse=True)
def setup_test_db():
    """Set up a test database for each test."""
    reset_db()
    reset_config()

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    os.environ["READTRACKER_DB_PATH"] = db_path
    os.environ.pop("READTRACKER_TLS_PROXY_URL", None)

    yield

    # Cleanup
    reset_db()
    reset_config()
    if "READTRACKER_DB_PATH" in os.environ:
        del os.environ["READTRACKER_DB_PATH"]
    if Path(db_path).exists():
        Path(db_path).unlink()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


def add_book(runner: CliRunner, title: str, author: str = "Someone", *extra: str):
    result = runner.invoke(app, ["add", "--title", title, "--author", author, *extra])
    assert result.exit_code == 0, result.stdout
    return result


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Track your reading" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout

    def test_kindle_help(self, runner: CliRunner):
        result = runner.invoke(app, ["kindle", "--help"])
        assert result.exit_code == 0
        assert "login" in result.stdout


class TestBookCommands:
    """Tests for adding, updating and listing books."""

    def test_add(self, runner: CliRunner):
        result = add_book(runner, "Dune", "Frank Herbert", "--pages", "412")
        assert "Added: Dune by Frank Herbert" in result.stdout

        book = get_db().search_books("Dune")[0]
        assert book.total_pages == 412
        assert book.status == "want-to-read"

    def test_add_reading_sets_started_at(self, runner: CliRunner):
        add_book(runner, "Dune", "Frank Herbert", "--status", "reading")
        assert get_db().search_books("Dune")[0].started_at is not None

    def test_list_empty(self, runner: CliRunner):
        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "No books found" in result.stdout

    def test_list_filters_by_status(self, runner: CliRunner):
        add_book(runner, "Dune", "Frank Herbert", "--status", "reading")
        add_book(runner, "Emma", "Jane Austen")

        result = runner.invoke(app, ["list", "--status", "reading"])

        assert result.exit_code == 0
        assert "Dune" in result.stdout
        assert "Emma" not in result.stdout

    def test_update_to_completed(self, runner: CliRunner):
        add_book(runner, "Dune", "Frank Herbert", "--status", "reading")

        result = runner.invoke(app, ["update", "Dune", "--status", "completed"])

        assert result.exit_code == 0
        book = get_db().search_books("Dune")[0]
        assert book.status == "completed"
        assert book.completed_at is not None

    def test_update_nothing(self, runner: CliRunner):
        add_book(runner, "Dune")
        result = runner.invoke(app, ["update", "Dune"])
        assert result.exit_code == 1
        assert "Nothing to update" in result.stdout

    def test_update_unknown_book(self, runner: CliRunner):
        result = runner.invoke(app, ["update", "Nope", "--page", "3"])
        assert result.exit_code == 1
        assert "No book found" in result.stdout

    def test_delete(self, runner: CliRunner):
        add_book(runner, "Dune")
        result = runner.invoke(app, ["delete", "Dune", "--yes"])
        assert result.exit_code == 0
        assert get_db().get_all_books() == []


class TestSessionCommands:
    """Tests for logging and listing reading sessions."""

    def test_log_with_page_range(self, runner: CliRunner):
        add_book(runner, "Dune")

        result = runner.invoke(
            app, ["log", "Dune", "--from", "10", "--to", "40", "--date", "2025-06-15"]
        )

        assert result.exit_code == 0
        assert "Pages: 30" in result.stdout
        db = get_db()
        entry = db.get_sessions_for_day(date(2025, 6, 15))[0]
        assert entry.pages_read == 30
        assert entry.source == "manual"
        assert db.search_books("Dune")[0].current_page == 40

    def test_log_invalid_date(self, runner: CliRunner):
        add_book(runner, "Dune")
        result = runner.invoke(app, ["log", "Dune", "--date", "15/06/2025"])
        assert result.exit_code == 1
        assert "Invalid date" in result.stdout

    def test_sessions(self, runner: CliRunner):
        add_book(runner, "Dune")
        runner.invoke(app, ["log", "Dune", "--pages", "12", "--date", "2025-06-15"])

        result = runner.invoke(app, ["sessions"])

        assert result.exit_code == 0
        assert "2025-06-15" in result.stdout

    def test_sessions_empty(self, runner: CliRunner):
        result = runner.invoke(app, ["sessions"])
        assert "No reading sessions yet" in result.stdout


class TestKindleCommands:
    """Tests for Kindle credential and sync commands."""

    def test_login_status_logout(self, runner: CliRunner):
        result = runner.invoke(
            app, ["kindle", "login", "--cookies", "session-id=abc", "--device-token", "TOKEN"]
        )
        assert result.exit_code == 0
        assert "credentials saved" in result.stdout

        status = runner.invoke(app, ["kindle", "status"])
        assert "configured" in status.stdout
        assert "never" in status.stdout

        runner.invoke(app, ["kindle", "logout"])
        status = runner.invoke(app, ["kindle", "status"])
        assert "not configured" in status.stdout

    def test_login_rejects_blank(self, runner: CliRunner):
        result = runner.invoke(app, ["kindle", "login", "--cookies", " ", "--device-token", "TOKEN"])
        assert result.exit_code == 1

    def test_proxy(self, runner: CliRunner):
        result = runner.invoke(app, ["kindle", "proxy", "http://proxy.test:8080"])
        assert result.exit_code == 0

        shown = runner.invoke(app, ["kindle", "proxy"])
        assert "http://proxy.test:8080" in shown.stdout

        runner.invoke(app, ["kindle", "proxy", "--clear"])
        shown = runner.invoke(app, ["kindle", "proxy"])
        assert "Proxy: -" in shown.stdout

    def test_sync_without_credentials(self, runner: CliRunner):
        result = runner.invoke(app, ["sync", "--no-progress"])

        assert result.exit_code == 1
        assert "Kindle credentials not configured" in result.stdout
        assert "kindle login" in result.stdout

    def test_sync_history(self, runner: CliRunner):
        get_db().add_sync_log(SyncStatus.ERROR, error_message="proxy down")

        result = runner.invoke(app, ["sync-history"])

        assert result.exit_code == 0
        assert "error" in result.stdout
        assert "proxy down" in result.stdout


class TestStatsCommands:
    """Tests for statistics output."""

    def test_stats_empty(self, runner: CliRunner):
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "Current streak: 0 days" in result.stdout

    def test_monthly(self, runner: CliRunner):
        result = runner.invoke(app, ["monthly", "--months", "2"])
        assert result.exit_code == 0
        assert date.today().strftime("%b %Y") in result.stdout

    def test_weekly_empty(self, runner: CliRunner):
        result = runner.invoke(app, ["weekly"])
        assert result.exit_code == 0
        assert "No reading sessions yet" in result.stdout

    def test_weekly(self, runner: CliRunner):
        add_book(runner, "Dune")
        runner.invoke(app, ["log", "Dune", "--pages", "5"])

        result = runner.invoke(app, ["weekly"])

        assert result.exit_code == 0
        assert "█" in result.stdout


class TestGoalCommands:
    """Tests for goal management commands."""

    def test_add_list_deactivate(self, runner: CliRunner):
        result = runner.invoke(
            app, ["goals", "add", "--type", "daily-reading", "--target", "5", "--period", "week"]
        )
        assert result.exit_code == 0
        goal_id = get_db().get_goals()[0].id

        listed = runner.invoke(app, ["goals", "list"])
        assert "0/5" in listed.stdout

        result = runner.invoke(app, ["goals", "deactivate", goal_id[:8]])
        assert result.exit_code == 0
        assert "No active goals" in runner.invoke(app, ["goals", "list"]).stdout

    def test_delete_unknown(self, runner: CliRunner):
        result = runner.invoke(app, ["goals", "delete", "ffffffff"])
        assert result.exit_code == 1
        assert "No unique goal" in result.stdout
