"""Pydantic schemas shared by storage, search and the CLI."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class HistoryEntry(BaseModel):
    """A single command in the history, as handed to search."""
    
    command: str = Field(
        description="Command text as stored (already redacted when redacted is true)"
    )
    timestamp: datetime = Field(
        description="When the command was executed"
    )
    directory: str = Field(
        default='',
        description="Working directory the command ran in"
    )
    redacted: bool = Field(
        default=False,
        description="Whether redaction changed the command"
    )
    original: Optional[str] = Field(
        default=None,
        description="Unredacted command, kept only when configured"
    )


def as_utc(timestamp: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp
