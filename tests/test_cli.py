"""Tests for the command line entry point against a temporary SQLite store."""

from __future__ import annotations

import logging
import re

import pytest
from typer.testing import CliRunner

from triplab.config.settings import get_settings
from triplab.main import app

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("DATE_WRITE_DEBOUNCE_SECONDS", "0.01")
    get_settings.cache_clear()
    root = logging.getLogger()
    handlers = list(root.handlers)
    yield tmp_path
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    get_settings.cache_clear()


def _invoke(user: str, *args: str):
    return runner.invoke(app, ["--user-id", user, "--name", user.title(), *args])


def test_full_planning_round(cli_env):
    created = _invoke("alice", "create", "Lisbon")
    assert created.exit_code == 0, created.output
    trip_id, code = re.search(r"Trip (\S+) created\. Share code: (\w+)", created.output).groups()

    assert "Joined" in _invoke("bob", "join", code.lower()).output
    assert "Already in" in _invoke("bob", "join", code).output

    assert "Selected: 2024-07-01, 2024-07-02" in _invoke("alice", "dates", trip_id, "2024-07-01", "2024-07-02").output
    _invoke("bob", "dates", trip_id, "2024-07-02", "2024-07-03")

    assert "Everyone locked: False" in _invoke("alice", "lock", trip_id).output
    locked = _invoke("bob", "lock", trip_id)
    assert "Overlap: 2024-07-02" in locked.output

    added = _invoke("alice", "add-activity", trip_id, "2024-07-02", "evening", "Fado night")
    activity_id = re.search(r"Added Fado night \((\S+)\)", added.output).group(1)
    assert "Upvoted" in _invoke("bob", "vote", trip_id, "2024-07-02", "evening", activity_id, "up").output
    assert "Vote cleared" in _invoke("bob", "vote", trip_id, "2024-07-02", "evening", activity_id, "up").output

    status = _invoke("alice", "status", trip_id)
    assert "Everyone's available: Jul 2, 2024" in status.output
    assert "Fado night" in _invoke("bob", "plan", trip_id).output
    assert (cli_env / "data" / "logs" / "triplab.log").exists()


def test_errors_exit_non_zero(cli_env):
    result = _invoke("bob", "join", "AB12O0")
    assert result.exit_code == 1
    assert "Error: Invalid trip code format" in result.output


def test_locked_dates_cannot_be_edited(cli_env):
    created = _invoke("alice", "create", "Kyoto")
    trip_id = re.search(r"Trip (\S+) created", created.output).group(1)
    _invoke("alice", "lock", trip_id)
    result = _invoke("alice", "dates", trip_id, "2024-07-01")
    assert result.exit_code == 1
    assert "Unlock them first" in result.output


def test_bad_date_is_a_usage_error(cli_env):
    result = _invoke("alice", "dates", "t1", "July 1st")
    assert result.exit_code == 2
