"""Exception types for Mortimer."""


class MortimerError(Exception):
    """Base class for all Mortimer errors."""


class ConfigValidationError(MortimerError):
    """A configuration value failed validation."""
    
    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Configuration validation failed: {field} - {reason}")


class InvalidPatternError(ConfigValidationError):
    """A user-supplied redaction pattern does not compile."""
    
    def __init__(self, field: str, pattern: str, reason: str):
        self.pattern = pattern
        super().__init__(field, f"invalid pattern {pattern!r}: {reason}")


class PatternCacheError(MortimerError):
    """The shared built-in pattern list could not be produced."""


class SearchError(MortimerError):
    """A search query could not be executed."""


class HistoryFileNotFoundError(MortimerError):
    """A shell history file to import does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"History file not found: {path}")
