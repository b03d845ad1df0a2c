"""Search engine for Mortimer history.

Entries are filtered, matched with one of three strategies (exact substring,
fuzzy subsequence or regex), scored, ranked and optionally highlighted.
"""

import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from mortimer.errors import SearchError
from mortimer.processors.aggregator import FrequencyAggregator
from mortimer.schemas import HistoryEntry, as_utc
from mortimer.utils.logger import setup_logger

logger = setup_logger(__name__)

HIGHLIGHT_START = '\x1b[1;33m'
HIGHLIGHT_END = '\x1b[0m'

Span = Tuple[int, int]


@dataclass
class SearchQuery:
    """Search term plus filters and matching options."""
    term: str
    directory: Optional[str] = None
    time_range: Optional[Tuple[datetime, datetime]] = None
    fuzzy: bool = True
    case_sensitive: bool = False
    regex: bool = False
    redacted_only: bool = False
    limit: Optional[int] = None


@dataclass
class SearchResult:
    """A matching entry with its relevance score and match spans."""
    entry: HistoryEntry
    score: float
    highlighted: Optional[str] = None
    matches: List[Span] = field(default_factory=list)


@dataclass
class SearchStats:
    """Bookkeeping for a single search call."""
    total_searched: int = 0
    matches_found: int = 0
    results_returned: int = 0
    search_time_ms: float = 0.0


class SearchEngine:
    """Search and rank history entries."""

    def __init__(self, fuzzy_search: bool = True, case_sensitive: bool = False,
                 include_directory: bool = True, include_timestamps: bool = False,
                 max_results: int = 1000, highlight_matches: bool = True):
        """Initialize search engine.

        Args:
            fuzzy_search: Use fuzzy matching for simple searches
            case_sensitive: Match case for simple searches
            include_directory: Show directories when results are displayed
            include_timestamps: Show timestamps when results are displayed
            max_results: Result cap for simple searches and frequency reports
            highlight_matches: Produce highlighted command text
        """
        self.fuzzy_search = fuzzy_search
        self.case_sensitive = case_sensitive
        self.include_directory = include_directory
        self.include_timestamps = include_timestamps
        self.max_results = max_results
        self.highlight_matches = highlight_matches
        self.aggregator = FrequencyAggregator(default_limit=max_results)
        self.last_stats = SearchStats()

    @classmethod
    def from_config(cls, config) -> 'SearchEngine':
        """Build an engine from the [search] section of a Config."""
        section = config.get_section('search')
        return cls(
            fuzzy_search=section.get('fuzzy_search', True),
            case_sensitive=section.get('case_sensitive', False),
            include_directory=section.get('include_directory', True),
            include_timestamps=section.get('include_timestamps', False),
            max_results=section.get('max_results', 1000),
            highlight_matches=section.get('highlight_matches', True),
        )

    def search(self, entries: Sequence[HistoryEntry], term: str) -> List[SearchResult]:
        """Search with the engine's default options.

        Args:
            entries: History entries
            term: Search term

        Returns:
            Ranked search results
        """
        query = SearchQuery(
            term=term,
            fuzzy=self.fuzzy_search,
            case_sensitive=self.case_sensitive,
            limit=self.max_results,
        )
        return self.search_with_query(entries, query)

    def search_with_query(self, entries: Sequence[HistoryEntry], query: SearchQuery) -> List[SearchResult]:
        """Search with an explicit query.

        Args:
            entries: History entries
            query: Query with term, filters and options

        Returns:
            Results sorted by score, then most recent first, truncated to
            query.limit

        Raises:
            SearchError: If a regex query does not compile or the limit is negative
        """
        if query.limit is not None and query.limit < 0:
            raise SearchError(f"Result limit must not be negative: {query.limit}")

        started = time.perf_counter()
        stats = SearchStats()

        pattern = None
        if query.regex:
            flags = 0 if query.case_sensitive else re.IGNORECASE
            try:
                pattern = re.compile(query.term, flags)
            except re.error as e:
                raise SearchError(f"Invalid regex {query.term!r}: {e}") from e

        results: List[SearchResult] = []
        for entry in entries:
            stats.total_searched += 1

            if not self._matches_filters(entry, query):
                continue

            if not query.term:
                matched, spans, score = True, [], 0.0
            elif pattern is not None:
                matched, spans, score = self._regex_match(entry.command, pattern)
            elif query.fuzzy:
                matched, spans, score = self._fuzzy_match(entry.command, query.term, query.case_sensitive)
            else:
                matched, spans, score = self._exact_match(entry.command, query.term, query.case_sensitive)

            if not matched:
                continue

            stats.matches_found += 1
            highlighted = None
            if self.highlight_matches and spans:
                highlighted = self.highlight_command(entry.command, spans)

            results.append(SearchResult(entry=entry, score=score, highlighted=highlighted, matches=spans))

        # Scores are only known after matching, so rank the whole set
        results.sort(key=lambda r: (r.score, r.entry.timestamp), reverse=True)

        if query.limit is not None:
            results = results[:query.limit]

        stats.results_returned = len(results)
        stats.search_time_ms = (time.perf_counter() - started) * 1000
        self.last_stats = stats
        logger.debug(
            f"Searched {stats.total_searched} entries for {query.term!r}: "
            f"{stats.matches_found} matches, {stats.results_returned} returned "
            f"in {stats.search_time_ms:.1f}ms"
        )

        return results

    def search_redacted(self, entries: Sequence[HistoryEntry]) -> List[SearchResult]:
        """List redacted entries, newest first.

        Args:
            entries: History entries

        Returns:
            Results with score 1.0, capped at max_results
        """
        return self._listing([e for e in entries if e.redacted])

    def search_by_directory(self, entries: Sequence[HistoryEntry], directory: str) -> List[SearchResult]:
        """List entries whose directory contains the given text, newest first.

        Args:
            entries: History entries
            directory: Directory substring

        Returns:
            Results with score 1.0, capped at max_results
        """
        return self._listing([e for e in entries if directory in e.directory])

    def get_frequent_commands(self, entries: Sequence[HistoryEntry]) -> List[Tuple[str, int]]:
        """Most frequently used commands, capped at max_results."""
        return self.aggregator.frequent_commands(entries, self.max_results)

    def get_frequent_directories(self, entries: Sequence[HistoryEntry]) -> List[Tuple[str, int]]:
        """Most frequently used directories, capped at max_results."""
        return self.aggregator.frequent_directories(entries, self.max_results)

    def highlight_command(self, command: str, matches: Sequence[Span]) -> str:
        """Wrap each match span in terminal highlight codes.

        Args:
            command: Original command text
            matches: Non-overlapping, increasing (start, end) spans

        Returns:
            Command with highlighted spans
        """
        if not matches:
            return command

        parts: List[str] = []
        last_end = 0
        for start, end in matches:
            if start > last_end:
                parts.append(command[last_end:start])
            parts.append(HIGHLIGHT_START)
            parts.append(command[start:end])
            parts.append(HIGHLIGHT_END)
            last_end = end

        if last_end < len(command):
            parts.append(command[last_end:])

        return ''.join(parts)

    def _listing(self, entries: List[HistoryEntry]) -> List[SearchResult]:
        results = [SearchResult(entry=e, score=1.0) for e in entries]
        results.sort(key=lambda r: r.entry.timestamp, reverse=True)
        return results[:self.max_results]

    @staticmethod
    def _matches_filters(entry: HistoryEntry, query: SearchQuery) -> bool:
        if query.directory is not None and query.directory not in entry.directory:
            return False

        if query.time_range is not None:
            start, end = query.time_range
            timestamp = as_utc(entry.timestamp)
            if timestamp < as_utc(start) or timestamp > as_utc(end):
                return False

        if query.redacted_only and not entry.redacted:
            return False

        return True

    @staticmethod
    def _exact_match(command: str, term: str, case_sensitive: bool) -> Tuple[bool, List[Span], float]:
        """Find all non-overlapping occurrences of term."""
        flags = 0 if case_sensitive else re.IGNORECASE
        spans = [m.span() for m in re.finditer(re.escape(term), command, flags)]

        if not spans:
            return False, spans, 0.0

        position_bonus = 0.5 if spans[0][0] == 0 else 0.0
        score = len(spans) + position_bonus + len(term) / len(command)
        return True, spans, score

    @staticmethod
    def _fuzzy_match(command: str, term: str, case_sensitive: bool) -> Tuple[bool, List[Span], float]:
        """Match the characters of term in order, not necessarily adjacent."""
        if case_sensitive:
            needle = list(term)
            fold = lambda ch: ch
        else:
            needle = [ch.lower() for ch in term]
            fold = str.lower

        needle_pos = 0
        match_start = None
        for pos, ch in enumerate(command):
            if fold(ch) != needle[needle_pos]:
                continue
            if match_start is None:
                match_start = pos
            needle_pos += 1
            if needle_pos == len(needle):
                span_length = pos - match_start + 1
                score = len(needle) / span_length * 0.8
                return True, [(match_start, pos + 1)], score

        return False, [], 0.0

    @staticmethod
    def _regex_match(command: str, pattern: re.Pattern) -> Tuple[bool, List[Span], float]:
        spans = [m.span() for m in pattern.finditer(command)]

        if not spans:
            return False, spans, 0.0

        matched_chars = sum(end - start for start, end in spans)
        ratio = matched_chars / len(command) if command else 0.0
        return True, spans, len(spans) + ratio
