"""Search package for Mortimer."""

from mortimer.search.engine import SearchEngine, SearchQuery, SearchResult, SearchStats

__all__ = ['SearchEngine', 'SearchQuery', 'SearchResult', 'SearchStats']
