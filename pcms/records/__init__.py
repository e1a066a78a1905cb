"""
Records module: storage and queries for imported contracts and procurements.
"""

from pcms.records.store import (
    SqliteRecordSink,
    count_records,
    list_records,
    open_record_sink,
    table_for,
)

__all__ = [
    "SqliteRecordSink",
    "count_records",
    "list_records",
    "open_record_sink",
    "table_for",
]
