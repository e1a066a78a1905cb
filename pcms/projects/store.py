"""
Project register and record-to-project linking.

During an import every stored contract or procurement is linked to a project
when its project code, or its name, identifies exactly one registered project:

    linker = ProjectLinker(conn)
    linker.link(FieldKind.CONTRACT, {"contract_name": "一号楼", ...})   # -> 3 or None
"""

import sqlite3
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pcms.core.db import execute_query
from pcms.core.logging import get_logger
from pcms.fields.catalog import FieldKind

logger = get_logger("pcms.projects.store")

# Record fields that carry a project code, and a project name, per kind.
# project_code / project_name exist once a user adds them to the catalog;
# the 项目名称 column of the stock ledgers lands in the kind's name field.
CODE_FIELDS: Tuple[str, ...] = ("project_code",)
NAME_FIELDS: Dict[FieldKind, Tuple[str, ...]] = {
    FieldKind.CONTRACT: ("project_name", "contract_name"),
    FieldKind.PROCUREMENT: ("project_name", "procurement_name"),
}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def create_project(
    conn: sqlite3.Connection,
    name: str,
    code: Optional[str] = None,
    alias: Optional[str] = None,
) -> int:
    """
    Register a project and return its id.

    Raises:
        ValueError: Blank name, or the code is already registered.
    """
    name = _text(name)
    if not name:
        raise ValueError("Project name is required")
    code = _text(code)
    try:
        cursor = conn.execute(
            "INSERT INTO projects (project_code, project_name, project_alias) VALUES (?, ?, ?)",
            (code, name, _text(alias)),
        )
    except sqlite3.IntegrityError:
        raise ValueError(f"Project code '{code}' already exists")
    conn.commit()
    logger.info("Project created: %s (%s)", name, code or "no code")
    return cursor.lastrowid


def find_project(
    conn: sqlite3.Connection,
    name: Optional[str] = None,
    code: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Look a project up by code, then exact name, then alias substring.

    Returns None when nothing (or nothing unambiguous) matches.
    """
    code, name = _text(code), _text(name)
    if code:
        row = conn.execute("SELECT * FROM projects WHERE project_code = ?", (code,)).fetchone()
        if row:
            return dict(row)
    if not name:
        return None

    rows = conn.execute(
        "SELECT * FROM projects WHERE project_name = ? ORDER BY id", (name,)
    ).fetchall()
    if not rows:
        rows = conn.execute(
            "SELECT * FROM projects WHERE project_alias LIKE ? ORDER BY id", (f"%{name}%",)
        ).fetchall()
    if len(rows) != 1:
        if rows:
            logger.debug("Project name '%s' is ambiguous (%d matches)", name, len(rows))
        return None
    return dict(rows[0])


def list_projects() -> List[Dict[str, Any]]:
    """All registered projects, oldest first."""
    rows = execute_query("SELECT * FROM projects ORDER BY id")
    return [dict(r) for r in rows]


class ProjectLinker:
    """
    Resolves records to project ids on one connection.

    Lookups are cached per (code, name); a ledger repeats the same project
    on many rows.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._cache: Dict[Tuple[Optional[str], Optional[str]], Optional[int]] = {}

    def link(self, kind: FieldKind, fields: Mapping[str, Any]) -> Optional[int]:
        code = next((c for c in (_text(fields.get(f)) for f in CODE_FIELDS) if c), None)
        name = next(
            (n for n in (_text(fields.get(f)) for f in NAME_FIELDS[FieldKind(kind)]) if n), None
        )
        if not code and not name:
            return None

        key = (code, name)
        if key not in self._cache:
            project = find_project(self.conn, name=name, code=code)
            self._cache[key] = project["id"] if project else None
        return self._cache[key]
