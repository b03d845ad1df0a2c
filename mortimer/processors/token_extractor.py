"""Reversible token extraction for Mortimer.

Secrets found by a small set of high-specificity patterns are swapped for
numbered placeholders such as ``<password:1>`` and returned alongside the
redacted command so the storage layer can keep the mapping.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Set, Tuple

from mortimer.processors.redaction import RedactionEngine, RedactionStats
from mortimer.utils.logger import setup_logger

logger = setup_logger(__name__)


# Applied in this order; the first category that captures a value owns it.
TOKEN_PATTERNS: Tuple[Tuple[str, str], ...] = (
    (r'''(?i)(?:password|passwd|pwd)[\s=:]+['"]?([^\s'"]{3,})['"]?''', 'password'),
    (r'''(?i)(?:token|api_key|apikey|api-key)[\s=:]+['"]?([^\s'"]{10,})['"]?''', 'api_key'),
    (r'''(?i)(?:secret|secret_key|secretkey)[\s=:]+['"]?([^\s'"]{10,})['"]?''', 'secret'),
    (r'''(?i)(?:bearer|authorization)[\s:]+['"]?([^\s'"]{10,})['"]?''', 'bearer_token'),
    (r'''(?i)--password[=\s]+['"]?([^\s'"]{3,})['"]?''', 'password'),
    (r'''(?i)-p\s+['"]?([^\s'"]{3,})['"]?''', 'password'),
)

_COMPILED_TOKEN_PATTERNS: Tuple[Tuple[Pattern, str], ...] = tuple(
    (re.compile(source), token_type) for source, token_type in TOKEN_PATTERNS
)


@dataclass(frozen=True)
class ExtractedToken:
    """A secret removed from a command and the placeholder that replaced it."""
    token_type: str
    placeholder: str
    original_value: str


class TokenExtractor:
    """Extract secrets into reversible tokens, falling back to plain redaction."""

    def __init__(self, engine: RedactionEngine, min_redaction_length: Optional[int] = None):
        """Initialize token extractor.

        Args:
            engine: Redaction engine used when no token could be extracted
            min_redaction_length: Shortest value worth extracting; defaults to
                the engine's setting
        """
        self.engine = engine
        if min_redaction_length is None:
            min_redaction_length = engine.min_redaction_length
        self.min_redaction_length = min_redaction_length

    def redact_and_extract(self, command: str,
                           stats: Optional[RedactionStats] = None) -> Tuple[str, List[ExtractedToken]]:
        """Replace secrets with numbered placeholders.

        Categories run in a fixed order against the buffer as left by the
        previous categories. A value already replaced, or one that is itself
        a placeholder issued in this call, is never extracted again.

        Args:
            command: Raw command text
            stats: Optional accumulator, updated the same way as
                RedactionEngine.redact_with_stats

        Returns:
            Tuple of (redacted command, extracted tokens in extraction order)
        """
        tokens: List[ExtractedToken] = []
        issued: Set[str] = set()
        redacted = command

        for regex, token_type in _COMPILED_TOKEN_PATTERNS:
            snapshot = redacted
            for match in regex.finditer(snapshot):
                value = match.group(1)

                if len(value) < self.min_redaction_length:
                    continue
                if value in issued:
                    continue

                placeholder = f"<{token_type}:{len(tokens) + 1}>"
                replaced = _replace_outside(redacted, value, placeholder, issued)
                if replaced == redacted:
                    continue
                redacted = replaced
                issued.add(placeholder)
                tokens.append(ExtractedToken(token_type, placeholder, value))

        if not tokens:
            if stats is not None:
                return self.engine.redact_with_stats(redacted, stats), tokens
            return self.engine.redact(redacted), tokens

        if stats is not None:
            stats.total_commands += 1
            stats.redacted_commands += 1

        logger.debug(f"Extracted {len(tokens)} token(s): {', '.join(t.placeholder for t in tokens)}")
        return redacted, tokens

    # Name used by the history layer
    redact_and_extract_tokens = redact_and_extract


def _replace_outside(text: str, value: str, placeholder: str, issued: Set[str]) -> str:
    """Replace every occurrence of value that is not part of an issued placeholder."""
    if not issued:
        return text.replace(value, placeholder)

    guard = re.compile('(' + '|'.join(re.escape(p) for p in sorted(issued, key=len, reverse=True)) + ')')
    pieces = guard.split(text)
    # Odd indices hold the placeholders captured by the split
    return ''.join(
        piece if i % 2 else piece.replace(value, placeholder)
        for i, piece in enumerate(pieces)
    )
