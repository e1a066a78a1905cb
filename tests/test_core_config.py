"""Tests for config loading and PCMS_PATHS path resolution."""

import pytest

from pcms.core.config import (
    PCMS_PATHS,
    _PACKAGE_DIR,
    get_config,
    get_config_value,
    update_config_section,
)


def test_get_config_returns_dict():
    config = get_config(reload=True)
    assert isinstance(config, dict)
    assert "destinations" in config
    assert "imports" in config


def test_get_config_caching():
    c1 = get_config()
    c2 = get_config()
    assert c1 is c2


def test_get_config_reload_returns_fresh():
    get_config()
    c2 = get_config(reload=True)
    c3 = get_config()
    assert c3 is c2


def test_get_config_value_nested():
    assert get_config_value("imports", "defaults", "min_match_fields") == 3
    assert get_config_value("imports", "defaults", "match_mode") == "strict"


def test_get_config_value_missing_returns_default():
    result = get_config_value("nonexistent", "deep", "path", default="fallback")
    assert result == "fallback"


def test_allowed_extensions_configured():
    exts = get_config_value("imports", "limits", "allowed_extensions")
    assert ".xlsx" in exts
    assert ".csv" in exts


def test_paths_resolve_under_package_dir():
    for prop in ["database", "inbox"]:
        path = getattr(PCMS_PATHS, prop)
        assert path.is_absolute(), f"{prop} is not absolute"
        assert str(path).startswith(str(_PACKAGE_DIR))


def test_database_path_is_relative_in_config():
    raw = get_config_value("destinations", "database")
    assert raw is not None
    assert not raw.startswith("/")
    assert raw.endswith("pcms.db")


class TestUpdateConfigSection:
    def test_merges_into_section(self, tmp_config):
        update_config_section("imports.defaults", {"min_match_fields": 4})
        assert get_config_value("imports", "defaults", "min_match_fields") == 4
        # untouched keys survive
        assert get_config_value("imports", "defaults", "match_mode") == "strict"

    def test_unknown_section_raises(self, tmp_config):
        with pytest.raises(KeyError):
            update_config_section("imports.nope", {"a": 1})
