"""Configuration management for Mortimer."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Tuple
import toml
from dotenv import load_dotenv

from mortimer.errors import ConfigValidationError, InvalidPatternError
from mortimer.utils.logger import setup_logger

# Load environment variables
load_dotenv()

logger = setup_logger(__name__)

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class Config:
    """Mortimer configuration manager."""

    def __init__(self, config_path: str | None = None):
        """Initialize configuration.

        Args:
            config_path: Path to config file. If None, uses default location.
        """
        if config_path is None:
            config_path = self._get_config_path()

        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = self._load_config()

    @staticmethod
    def _get_config_path() -> Path:
        """Get config file path with priority order:
        1. Environment variable MORTIMER_CONFIG
        2. Project directory mortimer.toml (for development)
        3. ~/.config/mortimer/mortimer.toml (default)
        """
        env_config = os.getenv('MORTIMER_CONFIG')
        if env_config:
            return Path(env_config)

        project_root = Path(__file__).parent.parent
        dev_config = project_root / 'mortimer.toml'
        if dev_config.exists():
            return dev_config

        config_home = os.getenv('XDG_CONFIG_HOME', str(Path.home() / '.config'))
        return Path(config_home) / 'mortimer' / 'mortimer.toml'

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file, layered over the defaults."""
        config = self._get_default_config()

        if not self.config_path.exists():
            logger.info(f"Config file not found: {self.config_path}, using default configuration")
            return config

        try:
            loaded = toml.load(self.config_path)
        except (OSError, toml.TomlDecodeError) as e:
            logger.warning(f"Failed to load config from {self.config_path}: {e}")
            return config

        for section, values in loaded.items():
            if isinstance(values, dict):
                config.setdefault(section, {}).update(values)
            else:
                config[section] = values

        return config

    @staticmethod
    def _get_default_config() -> Dict[str, Any]:
        """Get default configuration."""
        data_dir = Path(os.getenv('XDG_DATA_HOME', str(Path.home() / '.local' / 'share'))) / 'mortimer'
        return {
            'general': {
                'data_dir': str(data_dir),
                'log_level': 'INFO',
                'log_to_file': False,
            },
            'history': {
                'enable_redaction': True,
                'database': '',  # Defaults to <data_dir>/history.db
                'log_redacted_commands': False,
            },
            'redaction': {
                'placeholder': '<redacted>',
                'use_builtin_patterns': True,
                'custom_patterns': [],
                'exclude_patterns': [],
                'redact_env_vars': True,
                'min_redaction_length': 3,
                'env_vars': ['PASSWORD', 'SECRET', 'TOKEN', 'API_KEY', 'PRIVATE_KEY'],
            },
            'search': {
                'fuzzy_search': True,
                'case_sensitive': False,
                'include_directory': True,
                'include_timestamps': False,
                'max_results': 1000,
                'highlight_matches': True,
            },
            'shell_integration': {
                'exclude_commands': ['ls', 'cd', 'pwd', 'clear', 'history'],
                'log_space_prefixed': False,
                'min_command_length': 1,
            },
        }

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            section: Configuration section name
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value
        """
        return self._config.get(section, {}).get(key, default)

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire configuration section.

        Args:
            section: Configuration section name

        Returns:
            Configuration section dict
        """
        return self._config.get(section, {})

    def set(self, section: str, key: str, value: Any):
        """Set a configuration value in memory."""
        self._config.setdefault(section, {})[key] = value

    def get_value(self, dotted_key: str) -> Any:
        """Get a value by "section.key" name.

        Raises:
            ConfigValidationError: If the key is malformed or unknown
        """
        section, key = split_key(dotted_key)
        if key not in self.get_section(section):
            raise ConfigValidationError(dotted_key, "unknown configuration key")
        return self.get(section, key)

    def set_value(self, dotted_key: str, raw_value: str):
        """Set a value by "section.key" name from its command-line text.

        The text is read as a TOML value (numbers, booleans, arrays), falling
        back to a plain string.
        """
        section, key = split_key(dotted_key)
        self.set(section, key, parse_value(raw_value))

    def dump(self) -> str:
        """Render the effective configuration as TOML."""
        return toml.dumps(self._config)

    def save(self, path: str | Path | None = None):
        """Validate and write the configuration as TOML.

        Args:
            path: Destination, defaults to the file it was loaded from
        """
        self.validate()
        target = Path(path) if path is not None else self.config_path
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w') as f:
            toml.dump(self._config, f)
        logger.info(f"Saved configuration to {target}")

    def validate(self):
        """Validate the configuration.

        Raises:
            InvalidPatternError: If a custom or exclude pattern does not compile
            ConfigValidationError: If any other value is out of range
        """
        redaction = self.get_section('redaction')
        for key in ('custom_patterns', 'exclude_patterns'):
            patterns = redaction.get(key, [])
            if not isinstance(patterns, list):
                raise ConfigValidationError(f"redaction.{key}", "must be a list of regex patterns")
            for pattern in patterns:
                try:
                    re.compile(pattern)
                except (re.error, TypeError) as e:
                    raise InvalidPatternError(f"redaction.{key}", str(pattern), str(e)) from e

        min_length = redaction.get('min_redaction_length', 0)
        if not isinstance(min_length, int) or min_length < 0:
            raise ConfigValidationError("redaction.min_redaction_length", "must be a non-negative integer")

        max_results = self.get('search', 'max_results', 0)
        if not isinstance(max_results, int) or max_results <= 0:
            raise ConfigValidationError("search.max_results", "must be greater than 0")

        level = str(self.get('general', 'log_level', 'INFO')).upper()
        if level not in LOG_LEVELS:
            raise ConfigValidationError("general.log_level", f"must be one of: {', '.join(LOG_LEVELS)}")

    def should_exclude_command(self, command: str) -> bool:
        """Check if a command should be kept out of the history.

        Args:
            command: Raw command text

        Returns:
            True if the command must not be recorded
        """
        shell = self.get_section('shell_integration')

        for excluded in shell.get('exclude_commands', []):
            if command.startswith(excluded):
                return True

        if len(command) < shell.get('min_command_length', 1):
            return True

        if not shell.get('log_space_prefixed', False) and command.startswith(' '):
            return True

        return False

    @property
    def data_dir(self) -> Path:
        """Get data directory path."""
        path = Path(self.get('general', 'data_dir'))
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def database_path(self) -> Path:
        """Get history database path."""
        configured = self.get('history', 'database')
        if configured:
            return Path(configured).expanduser()
        return self.data_dir / 'history.db'

    @property
    def log_file(self) -> Path:
        """Get log file path."""
        return self.data_dir / 'mortimer.log'


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config():
    """Drop the global configuration so the next get_config() reloads it."""
    global _config
    _config = None


def split_key(dotted_key: str) -> Tuple[str, str]:
    """Split "section.key" into its parts.

    Raises:
        ConfigValidationError: If the key is not of that form
    """
    section, sep, key = dotted_key.partition('.')
    if not sep or not section or not key:
        raise ConfigValidationError(dotted_key, "expected <section>.<key>")
    return section, key


def parse_value(raw_value: str) -> Any:
    """Read command-line text as a TOML value, or keep it as a string."""
    try:
        return toml.loads(f"value = {raw_value}")['value']
    except (ValueError, IndexError, KeyError):
        return raw_value


def write_default_config(path: Path, force: bool = False) -> Path:
    """Write the default configuration to a file.

    Args:
        path: Destination file
        force: Overwrite an existing file

    Returns:
        The written path

    Raises:
        ConfigValidationError: If the file exists and force is not set
    """
    path = Path(path)
    if path.exists() and not force:
        raise ConfigValidationError(str(path), "file already exists (use --force to overwrite)")

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        toml.dump(Config._get_default_config(), f)
    logger.info(f"Wrote default configuration to {path}")
    return path
