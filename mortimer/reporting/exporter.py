"""History export for Mortimer."""

import csv
import io
import json
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from mortimer.schemas import HistoryEntry
from mortimer.utils.logger import setup_logger

logger = setup_logger(__name__)

EXPORT_FORMATS = ('json', 'csv', 'tsv', 'plain')


class HistoryExporter:
    """Render history entries as JSON, CSV, TSV or plain text."""

    def __init__(self, include_redacted: bool = False, include_original: bool = False,
                 directory: Optional[str] = None, days: Optional[int] = None):
        """Initialize history exporter.

        Args:
            include_redacted: Export entries that redaction changed
            include_original: Add the unredacted command where one was kept
            directory: Only entries whose directory contains this text
            days: Only entries from the last N days
        """
        self.include_redacted = include_redacted
        self.include_original = include_original
        self.directory = directory
        self.days = days

    def select(self, entries: Iterable[HistoryEntry]) -> List[HistoryEntry]:
        """Apply the exporter's filters."""
        cutoff = None
        if self.days is not None:
            cutoff = datetime.now(timezone.utc) - timedelta(days=self.days)

        selected = []
        for entry in entries:
            if entry.redacted and not self.include_redacted:
                continue
            if self.directory is not None and self.directory not in entry.directory:
                continue
            if cutoff is not None and entry.timestamp < cutoff:
                continue
            selected.append(entry)
        return selected

    def export(self, entries: Iterable[HistoryEntry], fmt: str = 'json') -> str:
        """Render the selected entries.

        Args:
            entries: History entries, oldest first
            fmt: One of json, csv, tsv or plain

        Returns:
            Rendered text
        """
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {fmt}")

        selected = self.select(entries)
        logger.debug(f"Exporting {len(selected)} entries as {fmt}")

        if fmt == 'json':
            return self._to_json(selected)
        if fmt == 'plain':
            return ''.join(f"{entry.command}\n" for entry in selected)
        return self._to_delimited(selected, ',' if fmt == 'csv' else '\t')

    def _columns(self) -> List[str]:
        columns = ['timestamp', 'directory', 'command', 'redacted']
        if self.include_original:
            columns.append('original')
        return columns

    def _row(self, entry: HistoryEntry) -> dict:
        row = {
            'timestamp': entry.timestamp.isoformat(),
            'directory': entry.directory,
            'command': entry.command,
            'redacted': entry.redacted,
        }
        if self.include_original:
            row['original'] = entry.original
        return row

    def _to_json(self, entries: List[HistoryEntry]) -> str:
        return json.dumps([self._row(e) for e in entries], indent=2, ensure_ascii=False) + '\n'

    def _to_delimited(self, entries: List[HistoryEntry], delimiter: str) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=self._columns(), delimiter=delimiter,
                                lineterminator='\n')
        writer.writeheader()
        for entry in entries:
            row = self._row(entry)
            if row.get('original') is None and self.include_original:
                row['original'] = ''
            writer.writerow(row)
        return buffer.getvalue()
