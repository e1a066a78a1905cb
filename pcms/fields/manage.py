"""
Field configuration management: CRUD over field_configs and cleaning_rules.

The import pipeline only reads this configuration; these helpers are what
the settings screens and ``pcms fields`` use to change it between runs.
"""

import json
import sqlite3
from typing import Any, Dict, List, Optional

from pcms.core.logging import get_logger
from pcms.fields.catalog import DataType, FieldKind, split_aliases

logger = get_logger("pcms.fields.manage")

_UPDATABLE = {
    "label", "aliases", "data_type", "category", "is_required",
    "is_visible", "is_active", "display_order",
}


def list_fields(
    conn: sqlite3.Connection, kind: Optional[str] = None, include_inactive: bool = False
) -> List[Dict[str, Any]]:
    """Field configs as dicts, ordered by kind then display order."""
    sql = "SELECT * FROM field_configs WHERE 1=1"
    params: list = []
    if kind:
        sql += " AND kind = ?"
        params.append(FieldKind(kind).value)
    if not include_inactive:
        sql += " AND is_active = 1"
    sql += " ORDER BY kind, display_order, id"
    return [dict(r) for r in conn.execute(sql, params).fetchall()]


def get_field(conn: sqlite3.Connection, kind: str, field_name: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT * FROM field_configs WHERE kind = ? AND field_name = ?",
        (FieldKind(kind).value, field_name),
    ).fetchone()
    return dict(row) if row else None


def create_field(
    conn: sqlite3.Connection,
    kind: str,
    field_name: str,
    label: str,
    aliases: Optional[List[str]] = None,
    data_type: str = "text",
    required: bool = False,
    category: str = "extended",
    display_order: Optional[int] = None,
) -> int:
    """
    Add a field to the catalog. Returns the new row id.

    Raises:
        ValueError: Blank name/label, unknown kind or data type, or duplicate.
    """
    kind_value = FieldKind(kind).value
    data_type_value = DataType(data_type).value
    if not field_name.strip() or not label.strip():
        raise ValueError("Field name and label are required")
    if get_field(conn, kind_value, field_name.strip()):
        raise ValueError(f"Field '{field_name}' already exists for {kind_value}")

    if display_order is None:
        row = conn.execute(
            "SELECT COALESCE(MAX(display_order), 0) + 1 AS next FROM field_configs WHERE kind = ?",
            (kind_value,),
        ).fetchone()
        display_order = row["next"]

    cur = conn.execute(
        """INSERT INTO field_configs
           (field_name, label, kind, aliases, data_type, category, is_required, display_order)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (field_name.strip(), label.strip(), kind_value, ",".join(aliases or []),
         data_type_value, category, 1 if required else 0, display_order),
    )
    conn.commit()
    logger.info("Created %s field '%s' (%s)", kind_value, field_name, label)
    return cur.lastrowid


def update_field(conn: sqlite3.Connection, field_id: int, **changes: Any) -> bool:
    """
    Update whitelisted columns of one field config.

    Returns True if a row changed. Unknown column names raise ValueError.
    """
    unknown = set(changes) - _UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update field columns: {', '.join(sorted(unknown))}")
    if not changes:
        return False

    if "data_type" in changes:
        changes["data_type"] = DataType(changes["data_type"]).value
    if isinstance(changes.get("aliases"), (list, tuple)):
        changes["aliases"] = ",".join(changes["aliases"])
    for flag in ("is_required", "is_visible", "is_active"):
        if flag in changes:
            changes[flag] = 1 if changes[flag] else 0

    sets = ", ".join(f"{col} = ?" for col in changes)
    cur = conn.execute(
        f"UPDATE field_configs SET {sets}, updated_at = datetime('now') WHERE id = ?",
        [*changes.values(), field_id],
    )
    conn.commit()
    return cur.rowcount > 0


def add_alias(conn: sqlite3.Connection, kind: str, field_name: str, alias: str) -> List[str]:
    """
    Append an alias to a field. Returns the resulting alias list.

    Raises:
        ValueError: Field not found or alias blank.
    """
    alias = alias.strip()
    if not alias:
        raise ValueError("Alias cannot be blank")
    existing = get_field(conn, kind, field_name)
    if existing is None:
        raise ValueError(f"Field '{field_name}' not found for {kind}")

    aliases = list(split_aliases(existing["aliases"]))
    if alias not in aliases:
        aliases.append(alias)
        update_field(conn, existing["id"], aliases=aliases)
    return aliases


def delete_field(conn: sqlite3.Connection, field_id: int) -> bool:
    """Remove a field and its cleaning rules."""
    row = conn.execute(
        "SELECT field_name, kind FROM field_configs WHERE id = ?", (field_id,)
    ).fetchone()
    if row is None:
        return False
    conn.execute(
        "DELETE FROM cleaning_rules WHERE field_name = ? AND kind = ?",
        (row["field_name"], row["kind"]),
    )
    conn.execute("DELETE FROM field_configs WHERE id = ?", (field_id,))
    conn.commit()
    return True


def set_cleaning_rule(
    conn: sqlite3.Connection,
    kind: str,
    field_name: str,
    cleaning_type: str,
    config: Dict[str, Any],
    priority: int = 0,
    description: Optional[str] = None,
) -> None:
    """Insert or replace the rule of one cleaning type for a field."""
    from pcms.imports.cleaning import build_rule

    # Validates the type and config shape before anything is written
    build_rule(cleaning_type, config)

    conn.execute(
        """INSERT INTO cleaning_rules
               (field_name, kind, cleaning_type, rule_config, priority, description)
           VALUES (?, ?, ?, ?, ?, ?)
           ON CONFLICT (field_name, kind, cleaning_type)
           DO UPDATE SET rule_config = excluded.rule_config,
                         priority = excluded.priority,
                         description = excluded.description,
                         is_active = 1""",
        (field_name, FieldKind(kind).value, cleaning_type,
         json.dumps(config, ensure_ascii=False), priority, description),
    )
    conn.commit()
