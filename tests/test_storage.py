"""Tests for the history database and command recorder."""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from conftest import BASE_TIME, make_entry
from mortimer.collectors.recorder import CommandRecorder
from mortimer.collectors.shell_history import ImportedCommand
from mortimer.config import Config
from mortimer.errors import InvalidPatternError
from mortimer.processors.token_extractor import ExtractedToken
from mortimer.storage import database as database_module
from mortimer.storage.database import Database


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / 'history.db')
    database.init_schema()
    yield database
    database.close()


@pytest.fixture
def config(tmp_path):
    return Config(str(tmp_path / 'missing.toml'))


# ── Database ─────────────────────────────────────────────────────────

def test_add_and_read_entries(db):
    first = db.add_command(make_entry("make build", 0, '/repo'))
    second = db.add_command(make_entry("password=<redacted>", 1, redacted=True, original="password=hunter22"))
    assert second > first

    entries = db.get_entries()
    assert [e.command for e in entries] == ["make build", "password=<redacted>"]
    assert entries[0].timestamp == BASE_TIME
    assert entries[0].directory == '/repo'
    assert entries[1].redacted
    assert entries[1].original == "password=hunter22"


def test_get_entries_limit_keeps_most_recent(db):
    for minute in range(5):
        db.add_command(make_entry(f"cmd {minute}", minute))
    assert [e.command for e in db.get_entries(limit=2)] == ["cmd 3", "cmd 4"]


def test_tokens_linked_to_command(db):
    command_id = db.add_command(make_entry("mysql -p <password:1>"))
    tokens = [ExtractedToken('password', '<password:1>', 'secret123')]
    db.store_tokens(command_id, tokens)

    assert db.get_tokens_for_command(command_id) == tokens
    assert db.get_tokens_for_command(command_id + 1) == []


def test_stats(db):
    db.add_command(make_entry("ls"))
    db.add_command(make_entry("ls", 1))
    command_id = db.add_command(make_entry("mysql -p <password:1>", 2, redacted=True))
    db.store_tokens(command_id, [ExtractedToken('password', '<password:1>', 'secret123')])

    assert db.get_stats() == {
        'total_commands': 3,
        'redacted_commands': 1,
        'unique_commands': 2,
        'stored_tokens': 1,
    }


def test_sub_second_timestamps_round_trip(db):
    earlier = BASE_TIME + timedelta(microseconds=250_000)
    later = BASE_TIME + timedelta(microseconds=750_001)
    db.add_command(make_entry("on the second"))
    db.add_command(make_entry("later").model_copy(update={'timestamp': later}))
    db.add_command(make_entry("earlier").model_copy(update={'timestamp': earlier}))

    entries = db.get_entries()
    assert [e.command for e in entries] == ["on the second", "earlier", "later"]
    assert entries[1].timestamp == earlier
    assert entries[2].timestamp == later


def test_naive_timestamps_stored_as_utc(db):
    db.add_command(make_entry("ls").model_copy(update={'timestamp': datetime(2024, 5, 1, 12, 0)}))
    assert db.get_entries()[0].timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_get_entries_by_directory(db):
    db.add_command(make_entry("make", 0, '/home/user/repo'))
    db.add_command(make_entry("ls", 1, '/tmp'))
    db.add_command(make_entry("git pull", 2, '/home/user/Repo'))

    assert [e.command for e in db.get_entries(directory='repo')] == ["make"]
    assert [e.command for e in db.get_entries(limit=1, directory='/home')] == ["git pull"]


def test_command_and_tokens_stored_together(db):
    entry = make_entry("mysql -p <password:1>", redacted=True)
    tokens = [ExtractedToken('password', '<password:1>', 'secret123')]
    command_id = db.add_command_with_tokens(entry, tokens)

    assert db.get_tokens_for_command(command_id) == tokens


def test_failed_token_insert_rolls_back_command(db, monkeypatch):
    def broken_rows(command_id, tokens):
        raise RuntimeError("disk full")

    monkeypatch.setattr(database_module, '_token_rows', broken_rows)
    with pytest.raises(RuntimeError):
        db.add_command_with_tokens(make_entry("mysql -p <password:1>"), [])

    assert db.get_entries() == []


# ── Recorder ─────────────────────────────────────────────────────────

def test_record_extracts_tokens(config, db):
    recorder = CommandRecorder(config=config, db=db)
    entry = recorder.record("mysql -u root -p secret123 mydb", directory='/srv', timestamp=BASE_TIME)

    assert entry.command == "mysql -u root -p <password:1> mydb"
    assert entry.redacted
    assert entry.original is None

    stored = db.get_entries()
    assert stored[-1].command == entry.command
    assert db.get_tokens_for_command(1)[0].original_value == 'secret123'
    assert recorder.stats.redacted_commands == 1


def test_record_clean_command(config, db):
    recorder = CommandRecorder(config=config, db=db)
    entry = recorder.record("git status", directory='/repo', timestamp=BASE_TIME)

    assert entry.command == "git status"
    assert not entry.redacted
    assert db.get_stats()['stored_tokens'] == 0


def test_record_falls_back_to_pattern_redaction(config, db):
    recorder = CommandRecorder(config=config, db=db)
    entry = recorder.record("psql postgresql://app:hunter22@db/app", directory='/repo')

    assert entry.command == "psql postgresql://app:<redacted>@db/app"
    assert db.get_stats()['stored_tokens'] == 0


def test_record_keeps_original_when_configured(config, db):
    config.set('history', 'log_redacted_commands', True)
    entry = CommandRecorder(config=config, db=db).record("mysql -p secret123", directory='/srv')
    assert entry.original == "mysql -p secret123"


def test_record_without_redaction(config, db):
    config.set('history', 'enable_redaction', False)
    entry = CommandRecorder(config=config, db=db).record("mysql -p secret123", directory='/srv')
    assert entry.command == "mysql -p secret123"
    assert not entry.redacted


def test_record_skips_excluded_commands(config, db):
    recorder = CommandRecorder(config=config, db=db)
    assert recorder.record("ls -la", directory='/repo') is None
    assert db.get_entries() == []


def test_record_defaults_directory_and_timestamp(config, db, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    entry = CommandRecorder(config=config, db=db).record("make")
    assert Path(entry.directory).resolve() == tmp_path.resolve()
    assert entry.timestamp.tzinfo is not None
    assert db.get_entries()[0].timestamp == entry.timestamp


def test_recorder_rejects_invalid_config(config, db):
    config.set('redaction', 'custom_patterns', ['[invalid'])
    with pytest.raises(InvalidPatternError):
        CommandRecorder(config=config, db=db)


def test_record_is_atomic_with_its_tokens(config, db, monkeypatch):
    def broken_rows(command_id, tokens):
        raise RuntimeError("disk full")

    monkeypatch.setattr(database_module, '_token_rows', broken_rows)
    recorder = CommandRecorder(config=config, db=db)
    with pytest.raises(RuntimeError):
        recorder.record("mysql -p secret123", directory='/srv')

    assert db.get_entries() == []
    assert db.get_stats()['stored_tokens'] == 0


def test_record_without_redaction_for_one_command(config, db):
    recorder = CommandRecorder(config=config, db=db)
    entry = recorder.record("mysql -p secret123", directory='/srv', redact=False)

    assert entry.command == "mysql -p secret123"
    assert not entry.redacted
    assert db.get_stats()['stored_tokens'] == 0


@pytest.fixture
def mortimer_logs(caplog):
    package_logger = logging.getLogger('mortimer')
    package_logger.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger='mortimer')
    yield caplog
    package_logger.removeHandler(caplog.handler)


@pytest.mark.parametrize('enable_redaction', [True, False])
def test_recorded_command_text_not_logged(config, db, mortimer_logs, enable_redaction):
    config.set('history', 'enable_redaction', enable_redaction)
    CommandRecorder(config=config, db=db).record("mysql -p secret123", directory='/srv')

    assert "Recorded command #1" in mortimer_logs.text
    assert "secret123" not in mortimer_logs.text
    assert "mysql" not in mortimer_logs.text


# ── Import ───────────────────────────────────────────────────────────

def test_import_history_redacts_and_dedups(config, db):
    commands = [
        ImportedCommand("mysql -p secret123", BASE_TIME),
        ImportedCommand("ls -la", BASE_TIME + timedelta(minutes=1)),
        ImportedCommand("mysql -p secret123", BASE_TIME + timedelta(minutes=2)),
    ]
    count = CommandRecorder(config=config, db=db).import_history(commands)

    assert count == 2
    entries = db.get_entries()
    assert [e.command for e in entries] == ["mysql -p <password:1>", "ls -la"]
    assert all(e.directory == '<imported>' for e in entries)
    assert db.get_stats()['stored_tokens'] == 1


def test_import_history_without_dedup(config, db):
    commands = [ImportedCommand("make", BASE_TIME), ImportedCommand("make", BASE_TIME)]
    assert CommandRecorder(config=config, db=db).import_history(commands, deduplicate=False) == 2


def test_import_history_dry_run_stores_nothing(config, db):
    commands = [ImportedCommand("make", BASE_TIME), ImportedCommand("git pull", None)]
    assert CommandRecorder(config=config, db=db).import_history(commands, dry_run=True) == 2
    assert db.get_entries() == []


def test_import_history_days_filter(config, db):
    now = datetime.now(timezone.utc)
    commands = [
        ImportedCommand("old", now - timedelta(days=10)),
        ImportedCommand("new", now - timedelta(hours=1)),
        ImportedCommand("undated", None),
    ]
    assert CommandRecorder(config=config, db=db).import_history(commands, days=7) == 2
    assert [e.command for e in db.get_entries()] == ["new", "undated"]
