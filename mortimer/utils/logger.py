"""Logging setup for Mortimer."""

import logging
import sys
from pathlib import Path
from typing import Optional


ROOT_LOGGER = 'mortimer'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def _root_logger() -> logging.Logger:
    """Package logger that owns the handlers; module loggers propagate to it."""
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        console.setLevel(logging.WARNING)
        root.addHandler(console)
        root.propagate = False
    return root


def setup_logger(name: str, level: Optional[str] = None, log_file: Optional[Path] = None) -> logging.Logger:
    """Get a logger under the mortimer package logger.

    Args:
        name: Logger name, usually the module's __name__
        level: Log level name; None leaves the current level untouched
        log_file: Optional file that receives every record at or above level

    Returns:
        Configured logger
    """
    root = _root_logger()
    logger = logging.getLogger(name)

    if level is not None:
        logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if log_file is not None:
        log_path = Path(log_file).resolve()
        already = any(
            isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_path
            for h in root.handlers
        )
        if not already:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(file_handler)

    return logger
