"""Command recording for Mortimer."""

import os
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Set, Tuple

from mortimer.collectors.shell_history import ImportedCommand
from mortimer.config import Config, get_config
from mortimer.processors.redaction import RedactionEngine, RedactionStats
from mortimer.processors.token_extractor import ExtractedToken, TokenExtractor
from mortimer.schemas import HistoryEntry, as_utc
from mortimer.storage.database import Database, get_database
from mortimer.utils.logger import setup_logger

logger = setup_logger(__name__)

IMPORTED_DIRECTORY = '<imported>'


class CommandRecorder:
    """Redact shell commands and store them with their extracted tokens."""

    def __init__(self, config: Optional[Config] = None, db: Optional[Database] = None):
        """Initialize command recorder.

        Args:
            config: Configuration, defaults to the global config
            db: History database, defaults to the global database

        Raises:
            InvalidPatternError: If the configured patterns are invalid
            ConfigValidationError: If any other configured value is invalid
        """
        self.config = config or get_config()
        self.config.validate()
        self.db = db or get_database()
        self.engine = RedactionEngine.from_config(self.config)
        self.extractor = TokenExtractor(self.engine)
        self.stats = RedactionStats()

    def record(self, command: str, directory: Optional[str] = None,
               timestamp: Optional[datetime] = None,
               exit_code: Optional[int] = None,
               redact: bool = True) -> Optional[HistoryEntry]:
        """Record a command.

        Args:
            command: Raw command text
            directory: Working directory, defaults to the current directory
            timestamp: Execution time, defaults to now
            exit_code: Command exit code, if known
            redact: Set to False to store this command as typed

        Returns:
            The stored entry, or None if the command is excluded
        """
        if self.config.should_exclude_command(command):
            logger.debug("Skipped excluded command")
            return None

        if directory is None:
            try:
                directory = os.getcwd()
            except OSError:
                directory = '<unknown>'

        return self._store(command, directory, timestamp, exit_code, redact)

    def import_history(self, commands: Iterable[ImportedCommand], days: Optional[int] = None,
                       deduplicate: bool = True, dry_run: bool = False) -> int:
        """Import commands read from a shell history file.

        Commands go through the same redaction as recorded ones and are stored
        under the directory "<imported>". Shell exclusions do not apply.

        Args:
            commands: Parsed history commands
            days: Only import commands from the last N days
            deduplicate: Skip commands already seen in this import
            dry_run: Count what would be imported without storing anything

        Returns:
            Number of commands imported (or that would be imported)
        """
        now = datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days) if days is not None else None
        seen: Set[str] = set()
        count = 0

        for item in commands:
            timestamp = as_utc(item.timestamp) if item.timestamp is not None else now
            if cutoff is not None and timestamp < cutoff:
                continue
            if not item.command.strip():
                continue
            if deduplicate:
                if item.command in seen:
                    continue
                seen.add(item.command)

            if not dry_run:
                self._store(item.command, IMPORTED_DIRECTORY, timestamp, None, True)
            count += 1

        logger.info(f"{'Would import' if dry_run else 'Imported'} {count} commands")
        return count

    def _store(self, command: str, directory: str, timestamp: Optional[datetime],
               exit_code: Optional[int], redact: bool) -> HistoryEntry:
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        if redact:
            stored_command, tokens = self._redact(command)
        else:
            stored_command, tokens = command, []
        was_redacted = stored_command != command

        entry = HistoryEntry(
            command=stored_command,
            timestamp=timestamp,
            directory=directory,
            redacted=was_redacted,
            original=command if was_redacted and self.config.get('history', 'log_redacted_commands', False) else None,
        )

        command_id = self.db.add_command_with_tokens(entry, tokens)

        # Command text stays out of the log; it may be unredacted
        logger.debug(f"Recorded command #{command_id} (redacted={was_redacted}, {len(tokens)} token(s))")
        return entry

    def _redact(self, command: str) -> Tuple[str, List[ExtractedToken]]:
        """Redact a command, keeping tokens only when the command changed."""
        if not self.config.get('history', 'enable_redaction', True):
            return command, []

        redacted, tokens = self.extractor.redact_and_extract(command, self.stats)
        if redacted == command:
            return command, []
        return redacted, tokens
