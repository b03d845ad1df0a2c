"""Mortimer CLI entry point."""

import sys

import click

from mortimer.cli.commands import (
    check_command,
    config_get_command,
    config_init_command,
    config_set_command,
    config_show_command,
    export_command,
    extract_command,
    frequent_command,
    import_command,
    log_command,
    patterns_command,
    recent_command,
    redact_command,
    search_command,
    stats_command,
    tokens_command,
    validate_command,
    validate_pattern_command,
)
from mortimer.config import get_config
from mortimer.errors import MortimerError
from mortimer.utils.logger import setup_logger


class MortimerGroup(click.Group):
    """Click group that turns Mortimer errors into clean CLI failures."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except MortimerError as e:
            raise click.ClickException(str(e)) from e


@click.group(cls=MortimerGroup)
def cli():
    """Mortimer - shell history with redaction and ranked search."""
    config = get_config()
    log_file = config.log_file if config.get('general', 'log_to_file', False) else None
    setup_logger('mortimer', level=config.get('general', 'log_level', 'INFO'), log_file=log_file)


@cli.command()
@click.argument('command', nargs=-1, required=True)
@click.option('--dir', 'directory', default=None, help='Working directory (default: current)')
@click.option('--exit-code', type=int, default=None, help='Exit code of the command')
@click.option('-T', '--timestamp', type=int, default=None, help='Unix timestamp (default: now)')
@click.option('--no-redact', is_flag=True, help='Store this command without redaction')
def log(command, directory, exit_code, timestamp, no_redact):
    """Record a command in the history."""
    log_command(' '.join(command), directory=directory, exit_code=exit_code,
                timestamp=timestamp, no_redact=no_redact)


@cli.command()
@click.argument('command', nargs=-1, required=True)
@click.option('--stats', 'show_stats', is_flag=True, help='Show which patterns matched')
def redact(command, show_stats):
    """Print a command with sensitive values redacted."""
    redact_command(' '.join(command), show_stats=show_stats)


@cli.command()
@click.argument('command', nargs=-1, required=True)
def check(command):
    """Check a command for sensitive data (exit code 1 if found)."""
    if check_command(' '.join(command)):
        sys.exit(1)


@cli.command()
@click.argument('command', nargs=-1, required=True)
def extract(command):
    """Extract secrets from a command into numbered tokens."""
    extract_command(' '.join(command))


@cli.command()
@click.argument('term', default='')
@click.option('--exact', is_flag=True, help='Exact substring matching instead of fuzzy')
@click.option('--regex', is_flag=True, help='Treat TERM as a regular expression')
@click.option('--case-sensitive/--ignore-case', default=None, help='Override case sensitivity')
@click.option('--dir', 'directory', default=None, help='Only commands run in a matching directory')
@click.option('--redacted-only', is_flag=True, help='Only redacted commands')
@click.option('--limit', type=click.IntRange(min=0), default=None, help='Maximum number of results')
@click.option('--since-hours', type=float, default=None, help='Only commands from the last N hours')
@click.option('--no-highlight', is_flag=True, help='Disable match highlighting')
def search(term, exact, regex, case_sensitive, directory, redacted_only, limit, since_hours, no_highlight):
    """Search the command history."""
    search_command(
        term,
        exact=exact,
        regex=regex,
        case_sensitive=case_sensitive,
        directory=directory,
        redacted_only=redacted_only,
        limit=limit,
        since_hours=since_hours,
        highlight=not no_highlight,
    )


@cli.command()
@click.option('--dirs', is_flag=True, help='Rank directories instead of commands')
@click.option('--count', type=click.IntRange(min=0), default=10, help='Number of rows (default: 10)')
def frequent(dirs, count):
    """Show the most frequent commands or directories."""
    frequent_command(directories=dirs, count=count)


@cli.command()
@click.argument('command_id', type=int)
def tokens(command_id):
    """Show tokens extracted from a stored command."""
    tokens_command(command_id)


@cli.command()
def patterns():
    """List active redaction patterns."""
    patterns_command()


@cli.command()
def stats():
    """Show history statistics."""
    stats_command()


@cli.command()
def validate():
    """Validate the configuration."""
    validate_command()

@cli.command()
@click.option('-n', '--count', type=click.IntRange(min=0), default=20, help='Number of commands (default: 20)')
@click.option('--dir', 'directory', default=None, help='Only commands run in a matching directory')
@click.option('-T', '--timestamps', is_flag=True, help='Show timestamps')
def recent(count, directory, timestamps):
    """Show the most recent commands."""
    recent_command(count=count, directory=directory, timestamps=timestamps)


@cli.command(name='import')
@click.argument('shell', type=click.Choice(['zsh', 'bash', 'fish']), default='zsh')
@click.option('-f', '--file', 'path', type=click.Path(dir_okay=False), default=None,
              help='History file (default: the shell\'s usual location)')
@click.option('--dry-run', is_flag=True, help='Count what would be imported without storing it')
@click.option('--days', type=click.IntRange(min=0), default=None, help='Only import the last N days')
@click.option('--no-dedup', is_flag=True, help='Keep duplicate commands')
def import_(shell, path, dry_run, days, no_dedup):
    """Import shell history, redacting it on the way in."""
    import_command(shell, path=path, dry_run=dry_run, days=days, dedup=not no_dedup)


@cli.command()
@click.argument('fmt', metavar='FORMAT', type=click.Choice(['json', 'csv', 'tsv', 'plain']), default='json')
@click.option('-o', '--output', type=click.Path(dir_okay=False), default=None, help='Output file (default: stdout)')
@click.option('--include-redacted', is_flag=True, help='Include commands that were redacted')
@click.option('--include-original', is_flag=True, help='Include unredacted originals where stored')
@click.option('--dir', 'directory', default=None, help='Only commands run in a matching directory')
@click.option('--days', type=click.IntRange(min=0), default=None, help='Only the last N days')
def export(fmt, output, include_redacted, include_original, directory, days):
    """Export the history."""
    export_command(fmt, output=output, include_redacted=include_redacted,
                   include_original=include_original, directory=directory, days=days)


@cli.command(name='validate-pattern')
@click.argument('pattern')
@click.argument('test', required=False)
def validate_pattern(pattern, test):
    """Check a regex pattern, optionally against a test string (exit code 1 if it does not match)."""
    if not validate_pattern_command(pattern, test):
        sys.exit(1)


@cli.group(name='config')
def config_group():
    """Show and edit the configuration."""


@config_group.command(name='show')
def config_show():
    """Print the effective configuration."""
    config_show_command()


@config_group.command(name='get')
@click.argument('key')
def config_get(key):
    """Print a value, e.g. search.max_results."""
    config_get_command(key)


@config_group.command(name='set')
@click.argument('key')
@click.argument('value')
def config_set(key, value):
    """Set a value and save the configuration file."""
    config_set_command(key, value)


@config_group.command(name='init')
@click.option('--force', is_flag=True, help='Overwrite an existing file')
def config_init(force):
    """Write a configuration file with the defaults."""
    config_init_command(force=force)


if __name__ == '__main__':
    cli()
