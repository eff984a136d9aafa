"""Tests for the command-line entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from inbox_sweeper.cli import build_parser, execute
from inbox_sweeper.core.config import AppSettings, StorageSettings


@pytest.fixture()
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(storage=StorageSettings(db_path=tmp_path / "cli.db"))


def _run(settings: AppSettings, *argv: str) -> int:
    return execute(build_parser().parse_args(list(argv)), settings)


def test_info_is_default(settings: AppSettings, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(settings) == 0
    assert "LLM provider: openai" in capsys.readouterr().out


def test_seed_categories_is_idempotent(
    settings: AppSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    assert _run(settings, "seed-categories") == 0
    assert "Newsletters" in capsys.readouterr().out

    assert _run(settings, "seed-categories") == 0
    assert "already exist" in capsys.readouterr().out


def test_add_owner_then_sync_reports_missing_categories(
    settings: AppSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    assert _run(settings, "add-owner", "--email", "me@example.com", "--access-token", "t") == 0
    assert "Created owner" in capsys.readouterr().out

    assert _run(settings, "sync", "--owner", "me@example.com") == 1
    assert "Sync failed" in capsys.readouterr().out


def test_sync_requires_owner(settings: AppSettings) -> None:
    assert _run(settings, "sync") == 2
    assert _run(settings, "sync", "--owner", "ghost@example.com") == 1
