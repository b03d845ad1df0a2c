"""Sensitive-data patterns for Mortimer.

Built-in patterns are compiled once per process and shared read-only by
every redaction engine. Custom and exclude patterns come from configuration
and are owned by the engine that compiled them.
"""

import re
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Tuple

from mortimer.errors import InvalidPatternError, PatternCacheError
from mortimer.utils.logger import setup_logger

logger = setup_logger(__name__)


# Assignment-style patterns capture the secret in a ``value`` group so the
# minimum redaction length applies to the secret rather than the key name.
BUILTIN_PATTERNS: Tuple[str, ...] = (
    # Passwords
    r'(?i)password\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)pwd\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)pass\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)passwd\s*[=:]\s*(?P<value>[^\s]+)',
    # Tokens
    r'(?i)token\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)auth_token\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)access_token\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)refresh_token\s*[=:]\s*(?P<value>[^\s]+)',
    # API keys
    r'(?i)api_key\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)apikey\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)key\s*[=:]\s*(?P<value>[a-zA-Z0-9]{16,})',
    # Secrets
    r'(?i)secret\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)secret[-_]key\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)client_secret\s*[=:]\s*(?P<value>[^\s]+)',
    # Connection strings
    r'(?i)(://[^:/@]+:)[^@]*(@)',
    r'(?i)(mongodb://[^:]+:)[^@]*(@)',
    r'(?i)(postgresql://[^:]+:)[^@]*(@)',
    r'(?i)(mysql://[^:]+:)[^@]*(@)',
    # Bearer tokens
    r'(?i)bearer\s+(?P<value>[a-zA-Z0-9._-]+)',
    r'(?i)authorization:\s*bearer\s+(?P<value>[a-zA-Z0-9._-]+)',
    # SSH keys
    r'-----BEGIN [A-Z ]+-----[^-]*-----END [A-Z ]+-----',
    r'ssh-[a-z0-9]+ (?P<value>[A-Za-z0-9+/=]+)',
    # Private keys
    r'(?i)private_key\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)priv_key\s*[=:]\s*(?P<value>[^\s]+)',
    # Certificates
    r'(?i)cert\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)certificate\s*[=:]\s*(?P<value>[^\s]+)',
    # AWS credentials
    r'(?i)aws_access_key_id\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)aws_secret_access_key\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)aws_session_token\s*[=:]\s*(?P<value>[^\s]+)',
    # GitHub tokens
    r'(?i)github_token\s*[=:]\s*(?P<value>[^\s]+)',
    r'(?i)gh_token\s*[=:]\s*(?P<value>[^\s]+)',
    r'ghp_[a-zA-Z0-9]{36}',
    r'gho_[a-zA-Z0-9]{36}',
    r'ghu_[a-zA-Z0-9]{36}',
    r'ghs_[a-zA-Z0-9]{36}',
    r'ghr_[a-zA-Z0-9]{36}',
    # Long alphanumeric strings (hashes, opaque tokens)
    r'[a-zA-Z0-9]{40,}',
)


@dataclass(frozen=True)
class ReplacementMode:
    """How a pattern's matches are rewritten.

    ``keep_groups`` empty means the whole match becomes the placeholder.
    Otherwise the listed capture groups are kept and the placeholder is
    inserted right after the first of them.
    """
    keep_groups: Tuple[int, ...] = ()

    @classmethod
    def full(cls) -> 'ReplacementMode':
        return cls()

    @classmethod
    def partial(cls, *groups: int) -> 'ReplacementMode':
        return cls(keep_groups=tuple(groups))

    @property
    def is_full(self) -> bool:
        return not self.keep_groups


FULL = ReplacementMode.full()


def replacement_mode_for(source: str) -> ReplacementMode:
    """Pick the replacement mode for a built-in pattern from its source text."""
    if '://' in source and '@' in source:
        return ReplacementMode.partial(1, 2)
    return FULL


def apply_replacement(match: 're.Match[str]', mode: ReplacementMode, placeholder: str) -> str:
    """Build the replacement text for a single match.

    Args:
        match: Regex match to replace
        mode: Replacement mode of the pattern that produced the match
        placeholder: Placeholder text

    Returns:
        Text that takes the place of the match
    """
    if mode.is_full:
        return placeholder

    parts: List[str] = []
    for index in mode.keep_groups:
        group = match.group(index)
        if group is None:
            continue
        parts.append(group)
        if index == mode.keep_groups[0]:
            parts.append(placeholder)
    return ''.join(parts)


def sensitive_length(match: 're.Match[str]', mode: ReplacementMode) -> int:
    """Length of the part of a match that would be hidden."""
    if 'value' in match.re.groupindex and match.group('value') is not None:
        return len(match.group('value'))

    total = len(match.group(0))
    for index in mode.keep_groups:
        group = match.group(index)
        if group is not None:
            total -= len(group)
    return total


@dataclass(frozen=True)
class CompiledPattern:
    """A compiled regex with its source text and replacement mode."""
    regex: Pattern
    source: str
    mode: ReplacementMode = FULL

    def replace(self, text: str, placeholder: str) -> str:
        return self.regex.sub(lambda m: apply_replacement(m, self.mode, placeholder), text)

    def shortest_match(self, text: str) -> Optional[int]:
        """Sensitive length of the shortest match in text, or None."""
        lengths = [sensitive_length(m, self.mode) for m in self.regex.finditer(text)]
        return min(lengths) if lengths else None


class BuiltinPatterns:
    """Immutable, ordered collection of compiled built-in patterns."""

    __slots__ = ('_patterns',)

    def __init__(self, patterns: Iterable[CompiledPattern]):
        self._patterns: Tuple[CompiledPattern, ...] = tuple(patterns)

    @classmethod
    def compile(cls, sources: Iterable[str] = BUILTIN_PATTERNS) -> 'BuiltinPatterns':
        """Compile built-in sources, skipping any that fail."""
        compiled = []
        for source in sources:
            try:
                regex = re.compile(source)
            except re.error as e:
                logger.warning(f"Skipping built-in pattern {source!r}: {e}")
                continue
            compiled.append(CompiledPattern(regex, source, replacement_mode_for(source)))
        return cls(compiled)

    def __iter__(self):
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __getitem__(self, index: int) -> CompiledPattern:
        return self._patterns[index]


_builtin_lock = threading.Lock()
_builtin: Optional[BuiltinPatterns] = None


def load_builtin_patterns() -> BuiltinPatterns:
    """Return the process-wide built-in patterns, compiling them on first use.

    Concurrent first callers block on the lock; exactly one of them compiles.

    Raises:
        PatternCacheError: If the shared list could not be produced
    """
    global _builtin
    if _builtin is None:
        with _builtin_lock:
            if _builtin is None:
                try:
                    _builtin = BuiltinPatterns.compile()
                except Exception as e:
                    raise PatternCacheError(f"Failed to initialize built-in patterns: {e}") from e
                logger.debug(f"Compiled {len(_builtin)} built-in redaction patterns")
    return _builtin


def compile_user_patterns(sources: Iterable[str], field: str) -> Tuple[CompiledPattern, ...]:
    """Compile configured patterns, failing on the first bad one.

    Args:
        sources: Pattern source texts
        field: Config field the patterns came from, used in error messages

    Returns:
        Compiled patterns in the given order

    Raises:
        InvalidPatternError: If any pattern does not compile
    """
    compiled = []
    for source in sources:
        try:
            regex = re.compile(source)
        except re.error as e:
            raise InvalidPatternError(field, source, str(e)) from e
        compiled.append(CompiledPattern(regex, source, FULL))
    return tuple(compiled)


class PatternSet:
    """Built-in, custom and exclude patterns used by one engine."""

    def __init__(self, builtin: Optional[BuiltinPatterns] = None,
                 custom_patterns: Iterable[str] = (),
                 exclude_patterns: Iterable[str] = ()):
        """Initialize pattern set.

        Args:
            builtin: Shared built-in patterns, or None to use none
            custom_patterns: Extra pattern sources from configuration
            exclude_patterns: Patterns that suppress redaction when matched

        Raises:
            InvalidPatternError: If a custom or exclude pattern is invalid
        """
        self.builtin = builtin
        self.custom = compile_user_patterns(custom_patterns, 'redaction.custom_patterns')
        self.exclude = compile_user_patterns(exclude_patterns, 'redaction.exclude_patterns')
        self._ordered: Tuple[CompiledPattern, ...] = tuple(builtin or ()) + self.custom

    @property
    def patterns(self) -> Tuple[CompiledPattern, ...]:
        """Sensitive patterns in application order."""
        return self._ordered

    def is_excluded(self, text: str) -> bool:
        return any(p.regex.search(text) for p in self.exclude)

    def sources(self) -> List[str]:
        return [p.source for p in self.patterns]
