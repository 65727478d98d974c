from __future__ import annotations

import json
from pathlib import Path

import pytest
import sqlalchemy as sa
from typer.testing import CliRunner

from game_lifecycle.cli.app import app
from game_lifecycle.core.config import settings
from game_lifecycle.db.base import Base


def test_cli_help_smoke() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    # Basic sanity checks that the top-level commands are registered.
    for command in ("run", "backfill", "cancel", "status", "locks", "queue"):
        assert command in result.stdout


@pytest.fixture
def sqlite_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    url = f"sqlite+pysqlite:///{tmp_path / 'cli.db'}"
    engine = sa.create_engine(url, future=True)
    import game_lifecycle.db.models  # noqa: F401

    Base.metadata.create_all(engine)
    engine.dispose()
    monkeypatch.setattr(settings, "database_url", url)
    return url


def test_locks_and_queue_on_empty_database(sqlite_db: str) -> None:
    runner = CliRunner()

    locks = runner.invoke(app, ["locks", "list"])
    assert locks.exit_code == 0
    assert json.loads(locks.stdout) == []

    stats = runner.invoke(app, ["queue", "stats"])
    assert stats.exit_code == 0
    assert json.loads(stats.stdout)["total"] == 0

    cancel = runner.invoke(app, ["cancel", "sync"])
    assert cancel.exit_code == 0
    assert "not running" in cancel.stdout


def test_status_command_prints_report(sqlite_db: str) -> None:
    result = CliRunner().invoke(app, ["status"])
    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["locks"] == []
    assert report["last_runs"]["discover"] is None


def test_run_without_api_key_exits_nonzero(sqlite_db: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "api_sports_key", None)
    result = CliRunner().invoke(app, ["run", "discover"])
    assert result.exit_code == 1


def test_run_rejects_backfill(sqlite_db: str) -> None:
    result = CliRunner().invoke(app, ["run", "backfill"])
    assert result.exit_code != 0
