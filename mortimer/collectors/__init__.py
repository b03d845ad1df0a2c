"""Collector modules for Mortimer."""

from mortimer.collectors.recorder import CommandRecorder
from mortimer.collectors.shell_history import ImportedCommand, read_history

__all__ = [
    'CommandRecorder',
    'ImportedCommand',
    'read_history',
]
