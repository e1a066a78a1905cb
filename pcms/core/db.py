"""
Database access for PCMS.

Provides connection management, query execution, and schema migration.
Each module ships a schema.sql; migrate_all() applies them in dependency order.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from pcms.core.config import PCMS_PATHS
from pcms.core.paths import ensure_directory


def get_db_path() -> Path:
    """Get database path from config."""
    return PCMS_PATHS.database


@contextmanager
def get_db(
    readonly: bool = False, db_path: Optional[Path] = None
) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.

    Enables foreign keys and Row factory automatically. A fresh connection
    is opened per call, so it is safe to use from an import worker thread.

    Args:
        readonly: Open in read-only mode (useful for queries)
        db_path: Override the configured database location

    Yields:
        sqlite3.Connection with Row factory enabled
    """
    path = Path(db_path) if db_path is not None else get_db_path()

    if readonly:
        conn = sqlite3.connect(f"file:{path}?mode=ro", uri=True)
    else:
        ensure_directory(path.parent)
        conn = sqlite3.connect(str(path))

    try:
        conn.execute("PRAGMA foreign_keys = ON")
        if not readonly:
            conn.execute("PRAGMA journal_mode = WAL")
        conn.row_factory = sqlite3.Row
        yield conn
    finally:
        conn.close()


def execute_query(query: str, params: tuple = (), readonly: bool = True) -> list:
    """
    Execute a query and return results as list of Row objects.

    Args:
        query: SQL query
        params: Query parameters
        readonly: Use read-only connection

    Returns:
        List of sqlite3.Row objects
    """
    with get_db(readonly=readonly) as conn:
        cursor = conn.execute(query, params)
        return cursor.fetchall()


# Schema dependency order: field configuration first, import bookkeeping last.
SCHEMA_ORDER = [
    "fields",
    "projects",
    "records",
    "imports",
]


def schema_files() -> list:
    """Existing schema.sql paths in SCHEMA_ORDER."""
    package_dir = Path(__file__).parent.parent
    paths = []
    for module_name in SCHEMA_ORDER:
        schema_file = package_dir / module_name / "schema.sql"
        if schema_file.exists():
            paths.append(schema_file)
    return paths


def apply_schemas(conn: sqlite3.Connection) -> None:
    """Apply every module schema to an open connection (idempotent)."""
    for schema_file in schema_files():
        conn.executescript(schema_file.read_text(encoding="utf-8"))


def migrate_all(seed: bool = True):
    """
    Run all module schemas in dependency order, then seed default fields.

    Each module's schema.sql uses CREATE TABLE IF NOT EXISTS, making this
    safe to run repeatedly.
    """
    from pcms.core.logging import get_logger

    logger = get_logger("pcms.migrate")

    with get_db() as conn:
        for schema_file in schema_files():
            logger.info("Applying schema: %s/schema.sql", schema_file.parent.name)
            conn.executescript(schema_file.read_text(encoding="utf-8"))
        conn.commit()
        logger.info("All schemas applied successfully")

        if seed:
            from pcms.fields.seed import seed_default_fields

            counts = seed_default_fields(conn)
            logger.info(
                "Default fields seeded: %d fields, %d cleaning rules",
                counts["fields"], counts["rules"],
            )
