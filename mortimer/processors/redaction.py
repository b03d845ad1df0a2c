"""Sensitive information redaction for Mortimer."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from mortimer.processors.patterns import (
    BuiltinPatterns,
    CompiledPattern,
    PatternSet,
    load_builtin_patterns,
)
from mortimer.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_PLACEHOLDER = '<redacted>'
DEFAULT_MIN_LENGTH = 3


@dataclass
class RedactionStats:
    """Counters accumulated by RedactionEngine.redact_with_stats."""
    total_commands: int = 0
    redacted_commands: int = 0
    patterns_matched: Dict[str, int] = field(default_factory=dict)
    env_vars_redacted: int = 0


class RedactionEngine:
    """Redact passwords, tokens, keys and other secrets from commands."""

    def __init__(self, use_builtin: bool = True,
                 custom_patterns: Sequence[str] = (),
                 exclude_patterns: Sequence[str] = (),
                 placeholder: str = DEFAULT_PLACEHOLDER,
                 min_redaction_length: int = DEFAULT_MIN_LENGTH,
                 env_var_names: Sequence[str] = (),
                 redact_env_vars: bool = False,
                 builtin: Optional[BuiltinPatterns] = None):
        """Initialize redaction engine.

        Args:
            use_builtin: Apply the built-in sensitive-data patterns
            custom_patterns: Additional regex sources, applied after built-ins
            exclude_patterns: Regex sources that suppress redaction when they
                match the command
            placeholder: Text that replaces sensitive values
            min_redaction_length: Values shorter than this are left alone
            env_var_names: Environment variable names whose values are scrubbed
            redact_env_vars: Enable environment variable scrubbing
            builtin: Shared built-in patterns; defaults to the process-wide set

        Raises:
            InvalidPatternError: If a custom or exclude pattern does not compile
        """
        if use_builtin and builtin is None:
            builtin = load_builtin_patterns()

        self.pattern_set = PatternSet(
            builtin=builtin if use_builtin else None,
            custom_patterns=custom_patterns,
            exclude_patterns=exclude_patterns,
        )
        self.placeholder = placeholder
        self.min_redaction_length = min_redaction_length
        self.redact_env_vars = redact_env_vars
        self.env_var_names: Tuple[str, ...] = tuple(env_var_names)
        self._env_patterns = self._compile_env_patterns(self.env_var_names)

    @classmethod
    def from_config(cls, config) -> 'RedactionEngine':
        """Build an engine from the [redaction] section of a Config.

        Args:
            config: Mortimer Config instance

        Returns:
            Configured RedactionEngine
        """
        section = config.get_section('redaction')
        return cls(
            use_builtin=section.get('use_builtin_patterns', True),
            custom_patterns=section.get('custom_patterns', []),
            exclude_patterns=section.get('exclude_patterns', []),
            placeholder=section.get('placeholder', DEFAULT_PLACEHOLDER),
            min_redaction_length=section.get('min_redaction_length', DEFAULT_MIN_LENGTH),
            env_var_names=section.get('env_vars', []),
            redact_env_vars=section.get('redact_env_vars', False),
        )

    @staticmethod
    def _compile_env_patterns(names: Sequence[str]) -> List[Tuple[str, re.Pattern, re.Pattern, re.Pattern]]:
        compiled = []
        for name in names:
            escaped = re.escape(name)
            compiled.append((
                name,
                re.compile(r'\$\{' + escaped + r'\}'),
                re.compile(r'\$' + escaped),
                re.compile(escaped + r'=[^\s]+'),
            ))
        return compiled

    @property
    def patterns(self) -> List[str]:
        """Source text of every sensitive pattern, in application order."""
        return self.pattern_set.sources()

    def redact(self, command: str) -> str:
        """Redact sensitive information from a command.

        Args:
            command: Raw command text

        Returns:
            Command with sensitive values replaced by the placeholder
        """
        result = command

        if self.redact_env_vars:
            result = self._redact_env_variables(result)

        for pattern in self.pattern_set.patterns:
            if self._should_skip(result, pattern):
                continue
            result = pattern.replace(result, self.placeholder)

        return result

    def redact_with_stats(self, command: str, stats: RedactionStats) -> str:
        """Redact a command and record what happened in stats.

        Produces exactly the same output as redact().

        Args:
            command: Raw command text
            stats: Accumulator owned by the caller

        Returns:
            Redacted command
        """
        result = command
        was_redacted = False
        stats.total_commands += 1

        if self.redact_env_vars:
            scrubbed = self._redact_env_variables(result)
            if scrubbed != result:
                stats.env_vars_redacted += 1
                was_redacted = True
            result = scrubbed

        for pattern in self.pattern_set.patterns:
            if self._should_skip(result, pattern):
                continue

            before = result
            result = pattern.replace(result, self.placeholder)
            if result != before:
                was_redacted = True
                stats.patterns_matched[pattern.source] = stats.patterns_matched.get(pattern.source, 0) + 1

        if was_redacted:
            stats.redacted_commands += 1

        return result

    def contains_sensitive_data(self, command: str) -> bool:
        """Check whether any pattern would redact part of the command.

        Args:
            command: Command text

        Returns:
            True if a non-excluded pattern matches
        """
        for pattern in self.pattern_set.patterns:
            if pattern.regex.search(command) and not self._should_skip(command, pattern):
                return True
        return False

    def _should_skip(self, text: str, pattern: CompiledPattern) -> bool:
        """Decide whether a pattern must not be applied to the text."""
        if self.pattern_set.is_excluded(text):
            return True

        shortest = pattern.shortest_match(text)
        if shortest is not None and shortest < self.min_redaction_length:
            return True

        return False

    def _redact_env_variables(self, command: str) -> str:
        """Scrub ${VAR}, $VAR and VAR=value for every configured name."""
        result = command
        placeholder = self.placeholder

        for name, braced, bare, assignment in self._env_patterns:
            result = braced.sub(lambda m: placeholder, result)
            result = bare.sub(lambda m: placeholder, result)
            # Keep the variable name so the assignment stays readable
            result = assignment.sub(lambda m, name=name: f"{name}={placeholder}", result)

        return result
