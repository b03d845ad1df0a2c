"""Mortimer - shell history with redaction and ranked search."""

from mortimer.errors import (
    ConfigValidationError,
    HistoryFileNotFoundError,
    InvalidPatternError,
    MortimerError,
    PatternCacheError,
    SearchError,
)
from mortimer.processors import (
    ExtractedToken,
    FrequencyAggregator,
    RedactionEngine,
    RedactionStats,
    TokenExtractor,
)
from mortimer.schemas import HistoryEntry
from mortimer.search import SearchEngine, SearchQuery, SearchResult

__all__ = [
    'ConfigValidationError',
    'HistoryFileNotFoundError',
    'InvalidPatternError',
    'MortimerError',
    'PatternCacheError',
    'SearchError',
    'ExtractedToken',
    'FrequencyAggregator',
    'RedactionEngine',
    'RedactionStats',
    'TokenExtractor',
    'HistoryEntry',
    'SearchEngine',
    'SearchQuery',
    'SearchResult',
]
__version__ = '0.1.0'
