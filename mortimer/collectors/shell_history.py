"""Shell history file parsers for Mortimer imports."""

import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from mortimer.errors import HistoryFileNotFoundError
from mortimer.utils.logger import setup_logger

logger = setup_logger(__name__)

SHELLS = ('zsh', 'bash', 'fish')

# ": 1609786800:0;command"
ZSH_EXTENDED = re.compile(r'^: (\d+):\d+;(.*)')
BASH_TIMESTAMP = re.compile(r'^#(\d+)$')


@dataclass
class ImportedCommand:
    """A command read from a shell history file."""
    command: str
    timestamp: Optional[datetime] = None


def default_history_path(shell: str) -> Path:
    """Get the usual history file location for a shell.

    Args:
        shell: One of zsh, bash or fish

    Returns:
        Path to the shell's history file
    """
    home = Path.home()
    if shell == 'zsh':
        return Path(os.getenv('ZDOTDIR', str(home))) / '.zsh_history'
    if shell == 'bash':
        return home / '.bash_history'
    if shell == 'fish':
        config_home = os.getenv('XDG_CONFIG_HOME', str(home / '.config'))
        return Path(config_home) / 'fish' / 'fish_history'
    raise ValueError(f"Unsupported shell: {shell}")


def _from_unix(value: str) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def parse_zsh(lines: Iterator[str]) -> Iterator[ImportedCommand]:
    """Parse zsh extended history; lines without a timestamp header are skipped."""
    for line in lines:
        match = ZSH_EXTENDED.match(line)
        if not match:
            continue
        timestamp = _from_unix(match.group(1))
        if timestamp is None:
            continue
        yield ImportedCommand(match.group(2), timestamp)


def parse_bash(lines: Iterator[str]) -> Iterator[ImportedCommand]:
    """Parse bash history, honoring HISTTIMEFORMAT "#<unix>" comment lines."""
    pending: Optional[datetime] = None
    for line in lines:
        line = line.strip()
        if not line:
            continue
        if line.startswith('#'):
            match = BASH_TIMESTAMP.match(line)
            pending = _from_unix(match.group(1)) if match else None
            continue
        yield ImportedCommand(line, pending)
        pending = None


def parse_fish(lines: Iterator[str]) -> Iterator[ImportedCommand]:
    """Parse fish's YAML-like history; entries need both cmd and when."""
    command: Optional[str] = None
    timestamp: Optional[datetime] = None

    for line in lines:
        line = line.strip()
        if line.startswith('- cmd: '):
            if command is not None and timestamp is not None:
                yield ImportedCommand(command, timestamp)
            command, timestamp = line[len('- cmd: '):], None
        elif line.startswith('when: '):
            timestamp = _from_unix(line[len('when: '):])

    if command is not None and timestamp is not None:
        yield ImportedCommand(command, timestamp)


_PARSERS = {
    'zsh': parse_zsh,
    'bash': parse_bash,
    'fish': parse_fish,
}


def read_history(shell: str, path: Optional[Path] = None) -> List[ImportedCommand]:
    """Read every command from a shell history file.

    Args:
        shell: One of zsh, bash or fish
        path: History file, defaults to the shell's usual location

    Returns:
        Commands in file order

    Raises:
        HistoryFileNotFoundError: If the file does not exist
    """
    if shell not in _PARSERS:
        raise ValueError(f"Unsupported shell: {shell}")

    history_path = Path(path) if path is not None else default_history_path(shell)
    if not history_path.exists():
        raise HistoryFileNotFoundError(history_path)

    # zsh writes metafied bytes; undecodable characters are replaced
    with open(history_path, encoding='utf-8', errors='replace') as f:
        commands = list(_PARSERS[shell](iter(f.read().splitlines())))

    logger.info(f"Read {len(commands)} commands from {history_path}")
    return commands
