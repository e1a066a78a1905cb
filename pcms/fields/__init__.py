"""
PCMS Fields: canonical field catalog for contract and procurement data.

Usage:
    from pcms.fields import FieldCatalog, FieldKind, SqliteFieldProvider
    from pcms.fields.seed import default_field_definitions
"""

from pcms.fields.catalog import (
    DataType,
    FieldCatalog,
    FieldDefinition,
    FieldKind,
    RuleSpec,
    SqliteFieldProvider,
    StaticFieldProvider,
)
