"""SQLite history database for Mortimer."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from contextlib import contextmanager

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import SQLAlchemyError

from mortimer.config import get_config
from mortimer.processors.token_extractor import ExtractedToken
from mortimer.schemas import HistoryEntry, as_utc
from mortimer.storage.models import Base, ShellCommand, Token
from mortimer.utils.logger import setup_logger

logger = setup_logger(__name__)


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MICROSECOND = timedelta(microseconds=1)


def _to_ts(timestamp: datetime) -> int:
    # Microseconds since the epoch, exact integer arithmetic
    return (as_utc(timestamp) - EPOCH) // ONE_MICROSECOND


def _from_ts(ts: int) -> datetime:
    return EPOCH + timedelta(microseconds=ts)


def _token_rows(command_id: int, tokens: Sequence[ExtractedToken]) -> List[Token]:
    return [
        Token(
            command_id=command_id,
            token_type=token.token_type,
            placeholder=token.placeholder,
            original_value=token.original_value,
        )
        for token in tokens
    ]


class Database:
    """SQLite database manager for Mortimer."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection.

        Args:
            db_path: SQLite file path. If None, uses the configured path.
        """
        if db_path is None:
            db_path = get_config().database_path

        self.db_path = Path(db_path)
        self._engine = None
        self._session_factory = None

        self._connect()

    def _connect(self):
        """Create database engine and session factory."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._engine = create_engine(f"sqlite:///{self.db_path}", echo=False)
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
            logger.debug(f"Opened history database: {self.db_path}")
        except SQLAlchemyError as e:
            logger.error(f"Failed to open database: {e}")
            raise

    def init_schema(self):
        """Create tables that do not exist yet."""
        Base.metadata.create_all(self._engine)

    @contextmanager
    def session(self):
        """Provide a transactional scope for database operations.

        Yields:
            SQLAlchemy Session object
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def add_command(self, entry: HistoryEntry, exit_code: Optional[int] = None) -> int:
        """Insert shell command record.

        Args:
            entry: History entry to store
            exit_code: Command exit code, if known

        Returns:
            Storage id of the new command
        """
        return self.add_command_with_tokens(entry, (), exit_code=exit_code)

    def add_command_with_tokens(self, entry: HistoryEntry, tokens: Sequence[ExtractedToken],
                                exit_code: Optional[int] = None) -> int:
        """Insert a command and its extracted tokens in one transaction.

        Either both the command and all of its tokens are stored, or nothing is.

        Args:
            entry: History entry to store
            tokens: Tokens produced for that command
            exit_code: Command exit code, if known

        Returns:
            Storage id of the new command
        """
        with self.session() as session:
            row = ShellCommand(
                command=entry.command,
                directory=entry.directory,
                ts=_to_ts(entry.timestamp),
                redacted=entry.redacted,
                original=entry.original,
                exit_code=exit_code,
            )
            session.add(row)
            session.flush()
            session.add_all(_token_rows(row.id, tokens))
            return row.id

    def store_tokens(self, command_id: int, tokens: Sequence[ExtractedToken]):
        """Link extracted tokens to a stored command.

        Args:
            command_id: Id returned by add_command
            tokens: Tokens produced for that command
        """
        if not tokens:
            return

        with self.session() as session:
            session.add_all(_token_rows(command_id, tokens))

    def get_entries(self, limit: Optional[int] = None,
                    directory: Optional[str] = None) -> List[HistoryEntry]:
        """Get history entries, oldest first.

        Args:
            limit: Only return the most recent entries
            directory: Only entries whose directory contains this text

        Returns:
            List of history entries
        """
        with self.session() as session:
            stmt = select(ShellCommand).order_by(ShellCommand.ts.desc(), ShellCommand.id.desc())
            if directory is not None:
                # instr is case-sensitive, unlike LIKE
                stmt = stmt.where(func.instr(ShellCommand.directory, directory) > 0)
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = session.execute(stmt).scalars().all()

            return [
                HistoryEntry(
                    command=row.command,
                    timestamp=_from_ts(row.ts),
                    directory=row.directory,
                    redacted=row.redacted,
                    original=row.original,
                )
                for row in reversed(rows)
            ]

    def get_tokens_for_command(self, command_id: int) -> List[ExtractedToken]:
        """Get tokens extracted from a command.

        Args:
            command_id: Storage id of the command

        Returns:
            Tokens in extraction order
        """
        with self.session() as session:
            rows = session.execute(
                select(Token).where(Token.command_id == command_id).order_by(Token.id)
            ).scalars().all()

            return [ExtractedToken(r.token_type, r.placeholder, r.original_value) for r in rows]

    def get_stats(self) -> Dict[str, Any]:
        """Get row counts for the history database."""
        with self.session() as session:
            total = session.scalar(select(func.count()).select_from(ShellCommand))
            redacted = session.scalar(
                select(func.count()).select_from(ShellCommand).where(ShellCommand.redacted.is_(True))
            )
            unique = session.scalar(select(func.count(func.distinct(ShellCommand.command))))
            tokens = session.scalar(select(func.count()).select_from(Token))

        return {
            'total_commands': total or 0,
            'redacted_commands': redacted or 0,
            'unique_commands': unique or 0,
            'stored_tokens': tokens or 0,
        }

    def close(self):
        """Close database connection."""
        if self._engine:
            self._engine.dispose()
            logger.debug("Database connection closed")


# Global database instance
_db: Optional[Database] = None


def get_database() -> Database:
    """Get global database instance."""
    global _db
    if _db is None:
        _db = Database()
        _db.init_schema()
    return _db


def reset_database():
    """Close and drop the global database instance."""
    global _db
    if _db is not None:
        _db.close()
    _db = None
