"""CLI commands for Mortimer."""

import json
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import click

from mortimer.collectors.recorder import CommandRecorder
from mortimer.collectors.shell_history import read_history
from mortimer.config import get_config, write_default_config
from mortimer.errors import InvalidPatternError
from mortimer.processors.redaction import RedactionEngine, RedactionStats
from mortimer.processors.token_extractor import TokenExtractor
from mortimer.reporting.exporter import HistoryExporter
from mortimer.search.engine import SearchEngine, SearchQuery
from mortimer.storage.database import get_database


def _redaction_engine() -> RedactionEngine:
    config = get_config()
    config.validate()
    return RedactionEngine.from_config(config)


def log_command(command: str, directory: Optional[str] = None, exit_code: Optional[int] = None,
                timestamp: Optional[int] = None, no_redact: bool = False):
    """Record a command in the history."""
    when = datetime.fromtimestamp(timestamp, tz=timezone.utc) if timestamp is not None else None
    entry = CommandRecorder().record(
        command, directory=directory, timestamp=when, exit_code=exit_code, redact=not no_redact
    )
    if entry is None:
        click.echo("Command excluded from history", err=True)


def redact_command(command: str, show_stats: bool = False):
    """Print a command with sensitive values redacted."""
    engine = _redaction_engine()

    if not show_stats:
        click.echo(engine.redact(command))
        return

    stats = RedactionStats()
    click.echo(engine.redact_with_stats(command, stats))
    click.echo(f"env vars redacted: {stats.env_vars_redacted}", err=True)
    for pattern, count in stats.patterns_matched.items():
        click.echo(f"  {count}x {pattern}", err=True)


def check_command(command: str) -> bool:
    """Report whether a command contains sensitive data.

    Returns:
        True if sensitive data was found
    """
    sensitive = _redaction_engine().contains_sensitive_data(command)
    click.echo("sensitive" if sensitive else "clean")
    return sensitive


def extract_command(command: str):
    """Print the redacted command and extracted tokens as JSON."""
    extractor = TokenExtractor(_redaction_engine())
    redacted, tokens = extractor.redact_and_extract(command)
    output = {
        'command': redacted,
        'tokens': [
            {
                'type': t.token_type,
                'placeholder': t.placeholder,
                'value': t.original_value,
            }
            for t in tokens
        ],
    }
    click.echo(json.dumps(output, ensure_ascii=False))


def search_command(term: str, exact: bool = False, regex: bool = False,
                   case_sensitive: Optional[bool] = None, directory: Optional[str] = None,
                   redacted_only: bool = False, limit: Optional[int] = None,
                   since_hours: Optional[float] = None, highlight: bool = True):
    """Search the history and print ranked results."""
    config = get_config()
    config.validate()
    engine = SearchEngine.from_config(config)
    engine.highlight_matches = engine.highlight_matches and highlight

    time_range = None
    if since_hours is not None:
        now = datetime.now(timezone.utc)
        time_range = (now - timedelta(hours=since_hours), now)

    query = SearchQuery(
        term=term,
        directory=directory,
        time_range=time_range,
        fuzzy=engine.fuzzy_search and not exact,
        case_sensitive=engine.case_sensitive if case_sensitive is None else case_sensitive,
        regex=regex,
        redacted_only=redacted_only,
        limit=limit if limit is not None else engine.max_results,
    )

    results = engine.search_with_query(get_database().get_entries(), query)
    if not results:
        click.echo("No matching commands", err=True)
        return

    for result in results:
        line = result.highlighted or result.entry.command
        if engine.include_timestamps:
            line = f"{result.entry.timestamp:%Y-%m-%d %H:%M:%S}  {line}"
        if engine.include_directory:
            line = f"{line}  [{result.entry.directory}]"
        click.echo(f"{result.score:6.2f}  {line}")


def frequent_command(directories: bool = False, count: int = 10):
    """Print the most frequent commands or directories."""
    engine = SearchEngine.from_config(get_config())
    entries = get_database().get_entries()

    if directories:
        rows = engine.aggregator.frequent_directories(entries, count)
    else:
        rows = engine.aggregator.frequent_commands(entries, count)

    for value, occurrences in rows:
        click.echo(f"{occurrences:6d}  {value}")


def tokens_command(command_id: int):
    """Print the tokens stored for a command."""
    tokens = get_database().get_tokens_for_command(command_id)
    if not tokens:
        click.echo(f"No tokens stored for command {command_id}", err=True)
        return

    for token in tokens:
        click.echo(f"{token.placeholder}\t{token.token_type}\t{token.original_value}")


def patterns_command():
    """Print every active redaction pattern."""
    for pattern in _redaction_engine().patterns:
        click.echo(pattern)


def stats_command():
    """Print history database statistics."""
    for key, value in get_database().get_stats().items():
        click.echo(f"{key.replace('_', ' ')}: {value}")


def validate_command():
    """Validate the configuration file."""
    config = get_config()
    config.validate()
    click.echo(f"Configuration OK: {config.config_path}")


def recent_command(count: int = 20, directory: Optional[str] = None, timestamps: bool = False):
    """Print the most recent commands, oldest first."""
    for entry in get_database().get_entries(limit=count, directory=directory):
        if timestamps:
            click.echo(f"{entry.timestamp:%Y-%m-%d %H:%M:%S}  {entry.command}")
        else:
            click.echo(entry.command)


def import_command(shell: str, path: Optional[str] = None, dry_run: bool = False,
                   days: Optional[int] = None, dedup: bool = True):
    """Import a shell history file through redaction."""
    commands = read_history(shell, Path(path) if path else None)
    count = CommandRecorder().import_history(commands, days=days, deduplicate=dedup, dry_run=dry_run)

    if dry_run:
        click.echo(f"DRY RUN: would import {count} commands from {shell} history")
    else:
        click.echo(f"Imported {count} commands from {shell} history")


def export_command(fmt: str = 'json', output: Optional[str] = None,
                   include_redacted: bool = False, include_original: bool = False,
                   directory: Optional[str] = None, days: Optional[int] = None):
    """Export the history to stdout or a file."""
    exporter = HistoryExporter(
        include_redacted=include_redacted,
        include_original=include_original,
        directory=directory,
        days=days,
    )
    entries = get_database().get_entries()
    text = exporter.export(entries, fmt)

    if output is None:
        click.echo(text, nl=False)
        return

    with open(output, 'w') as f:
        f.write(text)
    click.echo(f"Exported {len(exporter.select(entries))} entries to {output}", err=True)


def validate_pattern_command(pattern: str, test: Optional[str] = None) -> bool:
    """Check that a regex compiles and optionally try it on a string.

    Returns:
        True if there was no test string or the pattern matched it

    Raises:
        InvalidPatternError: If the pattern does not compile
    """
    try:
        regex = re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError('pattern', pattern, str(e)) from e

    click.echo(f"Pattern is valid: {pattern}")
    if test is None:
        return True

    match = regex.search(test)
    if match is None:
        click.echo("Pattern does not match test string")
        return False

    click.echo("Pattern matches test string")
    for index in range(len(match.groups()) + 1):
        group = match.group(index)
        if group is not None:
            click.echo(f"  Group {index}: {group}")
    return True


def config_show_command():
    """Print the effective configuration as TOML."""
    click.echo(get_config().dump(), nl=False)


def config_get_command(key: str):
    """Print one configuration value."""
    value = get_config().get_value(key)
    click.echo(json.dumps(value) if isinstance(value, (list, dict, bool)) else value)


def config_set_command(key: str, value: str):
    """Set one configuration value and save the file."""
    config = get_config()
    config.set_value(key, value)
    config.save()
    click.echo(f"Set {key} in {config.config_path}")


def config_init_command(force: bool = False):
    """Write a default configuration file."""
    path = write_default_config(get_config().config_path, force=force)
    click.echo(f"Configuration initialized at {path}")
