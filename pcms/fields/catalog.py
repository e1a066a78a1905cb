"""
Field Catalog: canonical fields per data kind.

Every importable attribute of a contract or procurement record is a
FieldDefinition: a canonical name (the storage column), a display label, and
the alternate header strings accepted for it. The catalog is read from a
provider (static list or the SQLite field tables) and is treated as read-only
for the duration of an import run.

Public API:
    FieldKind, DataType, RuleSpec, FieldDefinition
    normalize_name()          - header/alias normalization used for matching
    split_aliases()           - parse the comma-separated alias column
    StaticFieldProvider       - in-memory provider
    SqliteFieldProvider       - reads field_configs / cleaning_rules
    FieldCatalog              - ordered lookup by kind, frozen snapshots
"""

from __future__ import annotations

import json
import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from pcms.core.logging import get_logger

logger = get_logger("pcms.fields.catalog")


class FieldKind(str, Enum):
    CONTRACT = "contract"
    PROCUREMENT = "procurement"


class DataType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"


_WS_RE = re.compile(r"\s+")
_ALIAS_SPLIT_RE = re.compile(r"[,，;；]")


def normalize_name(value: Any) -> str:
    """
    Normalize a header cell or alias for comparison.

    NFKC folds full-width punctuation (``（元）`` becomes ``(元)``), internal
    whitespace runs collapse to one space, then trim and case-fold.
    ``None`` and non-text blanks normalize to the empty string.
    """
    if value is None:
        return ""
    text = unicodedata.normalize("NFKC", str(value))
    return _WS_RE.sub(" ", text).strip().casefold()


def split_aliases(raw: Optional[str]) -> Tuple[str, ...]:
    """Split a stored alias string ("合同号, 编号") into trimmed, non-empty aliases."""
    if not raw:
        return ()
    parts = (p.strip() for p in _ALIAS_SPLIT_RE.split(raw))
    return tuple(dict.fromkeys(p for p in parts if p))


@dataclass(frozen=True)
class RuleSpec:
    """A configured cleaning step: the rule type plus its JSON config."""

    cleaning_type: str
    config: Dict[str, Any] = field(default_factory=dict, hash=False, compare=True)
    priority: int = 0


@dataclass(frozen=True)
class FieldDefinition:
    """One canonical field of a data kind."""

    name: str                               # canonical name / storage column
    label: str                              # display label, also matched
    kind: FieldKind
    aliases: Tuple[str, ...] = ()
    data_type: DataType = DataType.TEXT
    required: bool = False
    cleaning_rules: Tuple[RuleSpec, ...] = ()
    display_order: int = 0

    def all_names(self) -> List[str]:
        """Normalized name, label and aliases, de-duplicated, order preserved."""
        names = [normalize_name(self.name), normalize_name(self.label)]
        names.extend(normalize_name(a) for a in self.aliases)
        return [n for n in dict.fromkeys(names) if n]


class FieldProvider(Protocol):
    def get_fields(self, kind: FieldKind) -> List[FieldDefinition]:
        ...


class StaticFieldProvider:
    """Provider over an in-memory list of definitions (tests, snapshots)."""

    def __init__(self, fields: Iterable[FieldDefinition]):
        self._fields = list(fields)

    def get_fields(self, kind: FieldKind) -> List[FieldDefinition]:
        return [f for f in self._fields if f.kind == FieldKind(kind)]


class SqliteFieldProvider:
    """Reads active field configuration and cleaning rules from SQLite."""

    def __init__(self, db_path: Optional[Path] = None):
        self._db_path = db_path

    def get_fields(self, kind: FieldKind) -> List[FieldDefinition]:
        from pcms.core.db import get_db

        kind = FieldKind(kind)
        with get_db(readonly=True, db_path=self._db_path) as conn:
            rows = conn.execute(
                "SELECT field_name, label, aliases, data_type, is_required, display_order "
                "FROM field_configs WHERE kind = ? AND is_active = 1 "
                "ORDER BY display_order, id",
                (kind.value,),
            ).fetchall()
            rule_rows = conn.execute(
                "SELECT field_name, cleaning_type, rule_config, priority "
                "FROM cleaning_rules WHERE kind = ? AND is_active = 1 "
                "ORDER BY priority, id",
                (kind.value,),
            ).fetchall()

        rules: Dict[str, List[RuleSpec]] = {}
        for r in rule_rows:
            try:
                config = json.loads(r["rule_config"] or "{}")
            except json.JSONDecodeError:
                logger.warning(
                    "Ignoring cleaning rule %s for %s.%s: invalid JSON config",
                    r["cleaning_type"], kind.value, r["field_name"],
                )
                continue
            rules.setdefault(r["field_name"], []).append(
                RuleSpec(r["cleaning_type"], config, r["priority"])
            )

        return [
            FieldDefinition(
                name=r["field_name"],
                label=r["label"] or r["field_name"],
                kind=kind,
                aliases=split_aliases(r["aliases"]),
                data_type=DataType(r["data_type"]),
                required=bool(r["is_required"]),
                cleaning_rules=tuple(rules.get(r["field_name"], ())),
                display_order=r["display_order"] or 0,
            )
            for r in rows
        ]


class FieldCatalog:
    """
    Ordered field lookup by kind.

    Order is display_order, then provider order; the matcher uses this order
    as its final tie-break, so it must be stable.
    """

    def __init__(self, provider: FieldProvider):
        self._provider = provider

    def lookup(self, kind: FieldKind) -> List[FieldDefinition]:
        fields = self._provider.get_fields(FieldKind(kind))
        if not fields:
            logger.debug("Field catalog is empty for kind '%s'", FieldKind(kind).value)
        # sorted() is stable, so equal display_order keeps provider order
        return sorted(fields, key=lambda f: f.display_order)

    def field(self, kind: FieldKind, name: str) -> Optional[FieldDefinition]:
        for f in self.lookup(kind):
            if f.name == name:
                return f
        return None

    def snapshot(self) -> "FieldCatalog":
        """Load every kind once and return a catalog frozen over that view."""
        fields: List[FieldDefinition] = []
        for kind in FieldKind:
            fields.extend(self.lookup(kind))
        return FieldCatalog(StaticFieldProvider(fields))
