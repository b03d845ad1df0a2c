"""Frequency aggregation for Mortimer history."""

from typing import Callable, Dict, Iterable, List, Optional, Tuple

from mortimer.schemas import HistoryEntry
from mortimer.utils.logger import setup_logger

logger = setup_logger(__name__)


class FrequencyAggregator:
    """Count how often commands and directories occur in a history."""

    def __init__(self, default_limit: Optional[int] = None):
        """Initialize frequency aggregator.

        Args:
            default_limit: Maximum rows returned when no limit is given
        """
        self.default_limit = default_limit

    def count(self, values: Iterable[str], limit: Optional[int] = None) -> List[Tuple[str, int]]:
        """Count values and rank them.

        Ties are broken by first occurrence in the input, so the output is
        fully determined by the input order.

        Args:
            values: Values to count
            limit: Maximum number of rows to return

        Returns:
            (value, count) pairs, most frequent first

        Raises:
            ValueError: If limit is negative
        """
        if limit is None:
            limit = self.default_limit
        if limit is not None and limit < 0:
            raise ValueError(f"limit must not be negative: {limit}")

        counts: Dict[str, int] = {}
        first_seen: Dict[str, int] = {}

        for position, value in enumerate(values):
            if value not in counts:
                counts[value] = 0
                first_seen[value] = position
            counts[value] += 1

        ranked = sorted(counts.items(), key=lambda item: (-item[1], first_seen[item[0]]))

        if limit is not None:
            ranked = ranked[:limit]

        return ranked

    def _count_by(self, entries: Iterable[HistoryEntry], key: Callable[[HistoryEntry], str],
                  limit: Optional[int]) -> List[Tuple[str, int]]:
        ranked = self.count((key(entry) for entry in entries), limit)
        logger.debug(f"Aggregated {len(ranked)} distinct values")
        return ranked

    def frequent_commands(self, entries: Iterable[HistoryEntry],
                          limit: Optional[int] = None) -> List[Tuple[str, int]]:
        """Most frequently used commands.

        Args:
            entries: History entries
            limit: Maximum number of commands to return

        Returns:
            (command, count) pairs, most frequent first
        """
        return self._count_by(entries, lambda e: e.command, limit)

    def frequent_directories(self, entries: Iterable[HistoryEntry],
                             limit: Optional[int] = None) -> List[Tuple[str, int]]:
        """Most frequently used working directories.

        Args:
            entries: History entries
            limit: Maximum number of directories to return

        Returns:
            (directory, count) pairs, most frequent first
        """
        return self._count_by(entries, lambda e: e.directory, limit)
