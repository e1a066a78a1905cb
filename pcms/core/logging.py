"""
Logging configuration for PCMS.

One stdout handler per named logger, formatted the same everywhere. The
default level comes from ``logging.level`` in config.yaml so an import run
can be made chatty without touching code.
"""

import logging
import sys
from typing import Dict, Optional, Union

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_loggers: Dict[str, logging.Logger] = {}
_level_override: Optional[int] = None


def _configured_level() -> int:
    """Read the default level from config.yaml, falling back to INFO."""
    try:
        from pcms.core.config import get_config_value

        raw = get_config_value("logging", "level", default="INFO")
    except FileNotFoundError:
        return logging.INFO
    return _coerce_level(raw)


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    # getLevelName returns "Level X" for names it does not know
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(name: str, level: Optional[Union[int, str]] = None) -> logging.Logger:
    """
    Get a configured logger for a module.

    Args:
        name: Logger name (e.g., 'pcms.imports.engine', 'pcms.fields.catalog')
        level: Logging level; defaults to ``logging.level`` from config.yaml

    Returns:
        Configured logger
    """
    if name in _loggers:
        return _loggers[name]

    if level is not None:
        resolved = _coerce_level(level)
    elif _level_override is not None:
        resolved = _level_override
    else:
        resolved = _configured_level()

    logger = logging.getLogger(name)
    logger.setLevel(resolved)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(resolved)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    _loggers[name] = logger
    return logger


def set_level(level: Union[int, str]) -> None:
    """Change the level of every logger, including ones created later (CLI --verbose)."""
    global _level_override

    resolved = _coerce_level(level)
    _level_override = resolved
    for logger in _loggers.values():
        logger.setLevel(resolved)
        for handler in logger.handlers:
            handler.setLevel(resolved)
