"""
Import history: finished jobs are written to import_jobs / import_job_errors.

The in-memory job registry forgets a job once it is cleared; this is the
durable record that ``pcms import history`` reads.
"""

import json
import sqlite3
from typing import Any, Dict, List, Optional

from pcms.core.logging import get_logger
from pcms.imports.specs import ImportJob

logger = get_logger("pcms.imports.history")

# Per-job cap on stored error rows; the count column keeps the full total
MAX_STORED_ERRORS = 1000


def save_job_summary(conn: sqlite3.Connection, job: ImportJob) -> None:
    """Insert or replace one job and its errors."""
    t = job.totals
    conn.execute("DELETE FROM import_job_errors WHERE job_id = ?", (job.id,))
    conn.execute(
        """INSERT OR REPLACE INTO import_jobs
           (id, status, cancelled, file_paths, settings,
            total_files, processed_files, total_sheets, processed_sheets,
            total_rows, processed_rows, error_rows, imported_rows, error_count,
            created_at, started_at, finished_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            job.id, job.status.value, 1 if job.cancelled else 0,
            json.dumps(job.file_paths, ensure_ascii=False),
            json.dumps(job.settings.to_dict()) if job.settings else None,
            t.files, t.processed_files, t.sheets, t.processed_sheets,
            t.rows, t.processed_rows, t.error_rows, t.imported_rows, len(job.errors),
            job.created_at, job.started_at, job.finished_at,
        ),
    )
    conn.executemany(
        """INSERT INTO import_job_errors
           (job_id, error_type, message, file_path, sheet_name, row_index, details)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        [
            (job.id, e.type.value, e.message, e.file_path, e.sheet_name, e.row_index,
             json.dumps(e.details, ensure_ascii=False) if e.details else None)
            for e in job.errors[:MAX_STORED_ERRORS]
        ],
    )
    conn.commit()
    logger.debug("Saved history for import %s (%d errors)", job.id, len(job.errors))


def get_import_history(conn: sqlite3.Connection, limit: int = 20) -> List[Dict[str, Any]]:
    """Most recent jobs first."""
    rows = conn.execute(
        "SELECT * FROM import_jobs ORDER BY created_at DESC, rowid DESC LIMIT ?", (limit,)
    ).fetchall()
    history = []
    for r in rows:
        item = dict(r)
        item["file_paths"] = json.loads(item["file_paths"] or "[]")
        item["settings"] = json.loads(item["settings"]) if item["settings"] else None
        history.append(item)
    return history


def get_job_errors(
    conn: sqlite3.Connection, job_id: str, error_type: Optional[str] = None
) -> List[Dict[str, Any]]:
    sql = "SELECT * FROM import_job_errors WHERE job_id = ?"
    params: list = [job_id]
    if error_type:
        sql += " AND error_type = ?"
        params.append(error_type)
    sql += " ORDER BY id"
    errors = []
    for r in conn.execute(sql, params).fetchall():
        item = dict(r)
        item["details"] = json.loads(item["details"]) if item["details"] else None
        errors.append(item)
    return errors
