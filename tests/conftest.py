"""Shared fixtures for Mortimer tests."""

from datetime import datetime, timedelta, timezone

import pytest

from mortimer import config as config_module
from mortimer.schemas import HistoryEntry
from mortimer.storage import database as database_module


BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_entry(command, minutes=0, directory='/home/user', redacted=False, original=None):
    return HistoryEntry(
        command=command,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        directory=directory,
        redacted=redacted,
        original=original,
    )


@pytest.fixture
def entries():
    return [
        make_entry("echo hello world", minutes=0),
        make_entry("ls -la", minutes=1, directory='/home/user/documents'),
        make_entry("password=<redacted>", minutes=2, redacted=True, original="password=secret123"),
        make_entry("echo Hello World", minutes=3, directory='/tmp'),
    ]


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point the global config and database at a temporary directory."""
    config_file = tmp_path / 'mortimer.toml'
    config_file.write_text(
        '[general]\n'
        f'data_dir = "{tmp_path / "data"}"\n'
        '[history]\n'
        f'database = "{tmp_path / "history.db"}"\n'
    )
    monkeypatch.setenv('MORTIMER_CONFIG', str(config_file))
    config_module.reset_config()
    database_module.reset_database()
    yield config_file
    database_module.reset_database()
    config_module.reset_config()
