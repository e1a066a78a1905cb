"""
PCMS Core - Shared services for all modules.

Usage:
    from pcms.core import get_db, get_config, get_logger, PCMS_PATHS
"""

from pcms.core.config import get_config, get_config_value, PCMS_PATHS
from pcms.core.db import get_db, execute_query, migrate_all
from pcms.core.logging import get_logger

__all__ = [
    "get_config",
    "get_config_value",
    "PCMS_PATHS",
    "get_db",
    "execute_query",
    "migrate_all",
    "get_logger",
]
