"""Command processors for Mortimer."""

from mortimer.processors.patterns import BuiltinPatterns, CompiledPattern, PatternSet, ReplacementMode
from mortimer.processors.redaction import RedactionEngine, RedactionStats
from mortimer.processors.token_extractor import ExtractedToken, TokenExtractor
from mortimer.processors.aggregator import FrequencyAggregator

__all__ = [
    'BuiltinPatterns',
    'CompiledPattern',
    'PatternSet',
    'ReplacementMode',
    'RedactionEngine',
    'RedactionStats',
    'ExtractedToken',
    'TokenExtractor',
    'FrequencyAggregator',
]
