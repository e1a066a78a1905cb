"""
Record storage: writes extracted rows into the contracts / procurements tables.

SqliteRecordSink is the import engine's persistence collaborator. Fields with
a matching table column are stored there; any other catalog field (added by
a user after the schema was created) goes into the extended_fields JSON.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Set

from pcms.core.db import get_db
from pcms.core.logging import get_logger
from pcms.fields.catalog import FieldKind
from pcms.imports.errors import PersistError
from pcms.imports.specs import ExtractedRecord, FileMetadata
from pcms.projects.store import ProjectLinker

logger = get_logger("pcms.records.store")

TABLES: Dict[FieldKind, str] = {
    FieldKind.CONTRACT: "contracts",
    FieldKind.PROCUREMENT: "procurements",
}

META_COLUMNS = {
    "id", "project_id", "extended_fields", "file_path", "file_name", "sheet_name", "source_row",
    "has_errors", "error_info", "created_at", "updated_at",
}


def table_for(kind: FieldKind) -> str:
    return TABLES[FieldKind(kind)]


def field_columns(conn: sqlite3.Connection, table: str) -> Set[str]:
    """Columns of ``table`` that hold catalog fields."""
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {r["name"] for r in rows} - META_COLUMNS


def _sql_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class SqliteRecordSink:
    """
    Inserts records on one connection; ``flush`` commits. Each record is
    linked to a registered project when its code or name identifies one.

    Use from a single thread (the import worker that opened the connection).
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.persisted = 0
        self._columns: Dict[str, Set[str]] = {}
        self.linker = ProjectLinker(conn)

    def _columns_for(self, table: str) -> Set[str]:
        if table not in self._columns:
            self._columns[table] = field_columns(self.conn, table)
        return self._columns[table]

    def persist(self, kind: FieldKind, record: ExtractedRecord, meta: FileMetadata) -> None:
        """
        Insert one record.

        Raises:
            PersistError: The insert failed.
        """
        table = table_for(kind)
        columns = self._columns_for(table)

        values: Dict[str, Any] = {
            k: _sql_value(v) for k, v in record.fields.items() if k in columns
        }
        extended = {k: _sql_value(v) for k, v in record.fields.items() if k not in columns}
        values["extended_fields"] = json.dumps(extended, ensure_ascii=False)
        values["file_path"] = meta.file_path
        values["file_name"] = meta.file_name
        values["sheet_name"] = meta.sheet_name
        values["source_row"] = record.source_row_index + 1   # 1-based, as shown in Excel
        values["has_errors"] = 1 if record.has_errors else 0
        values["error_info"] = json.dumps(
            [{"field": e.field_name, "message": e.message, "raw_value": _sql_value(e.raw_value)}
             for e in record.errors],
            ensure_ascii=False,
        ) if record.errors else None

        try:
            values["project_id"] = self.linker.link(kind, record.fields)
        except sqlite3.Error as e:
            logger.warning("Project lookup failed for %s row %d: %s", table, values["source_row"], e)
            values["project_id"] = None

        cols = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        try:
            self.conn.execute(
                f"INSERT INTO {table} ({cols}) VALUES ({placeholders})", list(values.values())
            )
        except sqlite3.Error as e:
            raise PersistError(f"{table} row {values['source_row']}: {e}") from e
        self.persisted += 1

    def flush(self) -> None:
        self.conn.commit()


@contextmanager
def open_record_sink(db_path: Optional[Path] = None) -> Generator[SqliteRecordSink, None, None]:
    """
    Sink factory for ImportOrchestrator.

    Opens its own connection, so call it on the thread that will use the sink.
    Uncommitted rows are discarded if the block raises.
    """
    with get_db(db_path=db_path) as conn:
        sink = SqliteRecordSink(conn)
        yield sink
        sink.flush()
        logger.debug("Record sink closed after %d inserts", sink.persisted)


def _decode(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    try:
        data["extended_fields"] = json.loads(data.get("extended_fields") or "{}")
    except json.JSONDecodeError:
        data["extended_fields"] = {}
    data["error_info"] = json.loads(data["error_info"]) if data.get("error_info") else []
    return data


def list_records(
    conn: sqlite3.Connection,
    kind: FieldKind,
    file_path: Optional[str] = None,
    errors_only: bool = False,
    project_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """Stored records of one kind, in import order."""
    sql = f"SELECT * FROM {table_for(kind)} WHERE 1=1"
    params: list = []
    if file_path:
        sql += " AND file_path = ?"
        params.append(file_path)
    if errors_only:
        sql += " AND has_errors = 1"
    if project_id is not None:
        sql += " AND project_id = ?"
        params.append(project_id)
    sql += " ORDER BY id LIMIT ? OFFSET ?"
    params.extend([limit, offset])
    return [_decode(r) for r in conn.execute(sql, params).fetchall()]


def count_records(conn: sqlite3.Connection, file_path: Optional[str] = None) -> Dict[str, int]:
    """Row counts per kind, optionally for one source file."""
    counts = {}
    for kind, table in TABLES.items():
        if file_path:
            row = conn.execute(
                f"SELECT COUNT(*) AS n FROM {table} WHERE file_path = ?", (file_path,)
            ).fetchone()
        else:
            row = conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()
        counts[kind.value] = row["n"]
    return counts
