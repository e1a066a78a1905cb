"""
Configuration management for PCMS.

Loads config.yaml and provides type-safe access to settings.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Optional

# Config file location: lives inside the pcms package
_PACKAGE_DIR = Path(__file__).parent.parent.resolve()
CONFIG_PATH = _PACKAGE_DIR / "config.yaml"

# Cache for loaded config
_config_cache: Optional[Dict[str, Any]] = None


def get_config(reload: bool = False) -> Dict[str, Any]:
    """
    Load configuration from config.yaml.

    Args:
        reload: Force reload even if cached

    Returns:
        Configuration dictionary
    """
    global _config_cache

    if _config_cache is not None and not reload:
        return _config_cache

    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as f:
        _config_cache = yaml.safe_load(f) or {}

    return _config_cache


def get_config_value(*keys: str, default: Any = None) -> Any:
    """
    Get a nested config value safely.

    Args:
        *keys: Path of keys to traverse (e.g., 'imports', 'defaults', 'match_mode')
        default: Value to return if key not found

    Example:
        threshold = get_config_value('imports', 'defaults', 'fuzzy_threshold', default=0.8)
    """
    config = get_config()

    for key in keys:
        if isinstance(config, dict) and key in config:
            config = config[key]
        else:
            return default

    return config


def update_config_section(section_path: str, data: dict) -> None:
    """
    Update a section of config.yaml and write back to disk.

    Args:
        section_path: Dot-notation path (e.g., "imports.defaults")
        data: Dictionary of values to merge into the section

    Raises:
        KeyError: If the section path doesn't exist in config
    """
    global _config_cache

    # Always reload from disk to avoid overwriting concurrent changes
    with open(CONFIG_PATH, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    keys = section_path.split(".")
    target = config
    for key in keys[:-1]:
        if key not in target or not isinstance(target[key], dict):
            raise KeyError(f"Config section not found: {section_path}")
        target = target[key]

    last_key = keys[-1]
    if last_key not in target:
        raise KeyError(f"Config section not found: {section_path}")

    if isinstance(target[last_key], dict):
        target[last_key].update(data)
    else:
        target[last_key] = data

    with open(CONFIG_PATH, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    # Invalidate cache so next get_config() reloads from disk
    _config_cache = None


class PCMSPaths:
    """
    Centralized path access for PCMS.

    All paths are loaded from config.yaml with sensible fallbacks.

    Usage:
        from pcms.core.config import PCMS_PATHS
        db = PCMS_PATHS.database
        inbox = PCMS_PATHS.inbox
    """

    def __init__(self):
        self._config = None

    def _ensure_config(self):
        if self._config is None:
            self._config = get_config()

    def _resolve(self, raw: str) -> Path:
        """Resolve a path: if relative, resolve against _PACKAGE_DIR."""
        p = Path(raw).expanduser()
        if not p.is_absolute():
            p = _PACKAGE_DIR / p
        return p

    @property
    def database(self) -> Path:
        self._ensure_config()
        raw = self._config.get("destinations", {}).get("database", "data/pcms.db")
        return self._resolve(raw)

    @property
    def inbox(self) -> Path:
        """Default folder scanned by ``pcms import run`` when no files are given."""
        self._ensure_config()
        raw = self._config.get("inbox", {}).get("path", "data/inbox")
        return self._resolve(raw)

    @property
    def config_dir(self) -> Path:
        return _PACKAGE_DIR

    @property
    def root(self) -> Path:
        return _PACKAGE_DIR


# Singleton instance
PCMS_PATHS = PCMSPaths()
