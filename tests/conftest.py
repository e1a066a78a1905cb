"""
Shared test fixtures for PCMS.

Provides an in-memory database with all schemas, a file-backed database for
threaded import runs, a CLI runner, the default field catalog, and helpers
that write small workbooks with openpyxl.
"""

import shutil
import sqlite3
import zipfile
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import patch

import pytest
from openpyxl import Workbook

from pcms.core.db import SCHEMA_ORDER, apply_schemas
from pcms.fields.catalog import FieldCatalog, StaticFieldProvider
from pcms.fields.seed import default_field_definitions, seed_default_fields
from pcms.imports.specs import ImportSettings

CONTRACT_HEADER = ["合同编号", "合同名称", "甲方", "乙方", "合同金额"]
PROCUREMENT_HEADER = ["招采编号", "招采名称", "采购人", "中标价", "采购方式"]


@pytest.fixture
def memory_db():
    """Provide an in-memory SQLite database with ALL schemas applied in FK order."""
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys = ON")
    conn.row_factory = sqlite3.Row

    schema_dir = Path(__file__).parent.parent / "pcms"
    for module in SCHEMA_ORDER:
        schema_file = schema_dir / module / "schema.sql"
        if schema_file.exists():
            conn.executescript(schema_file.read_text(encoding="utf-8"))

    yield conn
    conn.close()


@pytest.fixture
def seeded_db(memory_db):
    """In-memory database with the default field catalog seeded."""
    seed_default_fields(memory_db)
    return memory_db


@pytest.fixture
def mock_db(memory_db):
    """Patch get_db to return the in-memory database (main-thread callers only)."""

    @contextmanager
    def _get_db(readonly=False, db_path=None):
        yield memory_db

    with patch("pcms.core.db.get_db", _get_db), \
         patch("pcms.core.get_db", _get_db):
        yield memory_db


@pytest.fixture
def file_db(tmp_path, monkeypatch):
    """
    A seeded SQLite file in tmp_path, made the configured database.

    Import jobs open their own connections on a worker thread, so they need
    a real file rather than the in-memory connection.
    """
    db_path = tmp_path / "pcms.db"
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    apply_schemas(conn)
    seed_default_fields(conn)
    conn.commit()
    conn.close()

    monkeypatch.setattr("pcms.core.db.get_db_path", lambda: db_path)
    return db_path


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def catalog():
    """The stock field catalog, no database needed."""
    return FieldCatalog(StaticFieldProvider(default_field_definitions()))


@pytest.fixture
def settings():
    """Default settings independent of config.yaml."""
    return ImportSettings().validate()


@pytest.fixture
def make_xlsx(tmp_path):
    """
    Write a workbook and return its path.

    Usage: make_xlsx("name.xlsx", {"Sheet A": [[...], [...]], "Sheet B": [...]})
    """

    def _make(name, sheets):
        wb = Workbook()
        wb.remove(wb.active)
        for title, rows in sheets.items():
            ws = wb.create_sheet(title)
            for row in rows:
                ws.append(row)
        path = tmp_path / name
        wb.save(path)
        return path

    return _make


@pytest.fixture
def corrupt_xlsx(tmp_path):
    """A file with an .xlsx name that is not a zip archive."""
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"this is not a workbook")
    return path


@pytest.fixture
def tmp_config(tmp_path, monkeypatch):
    """A writable copy of config.yaml, made the active config for one test."""
    from pcms.core import config as config_module

    path = tmp_path / "config.yaml"
    shutil.copy(config_module.CONFIG_PATH, path)
    monkeypatch.setattr(config_module, "CONFIG_PATH", path)
    config_module.get_config(reload=True)
    yield path
    monkeypatch.undo()
    config_module.get_config(reload=True)


@pytest.fixture
def damaged_xlsx(make_xlsx):
    """
    A valid zip archive whose named part is not well-formed XML.

    Usage: damaged_xlsx("xl/worksheets/sheet1.xml")
    """

    def _make(part, name="damaged.xlsx"):
        source = make_xlsx("source_" + name, {"合同": [CONTRACT_HEADER, ["HT-9", "x", "a", "b", 1]]})
        path = source.with_name(name)
        with zipfile.ZipFile(source) as src, zipfile.ZipFile(path, "w") as dst:
            for item in src.infolist():
                data = src.read(item.filename)
                if item.filename == part:
                    data = b"<worksheet><sheetData><row"
                dst.writestr(item, data)
        return path

    return _make
