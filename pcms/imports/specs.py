"""
Import pipeline data models.

Shared dataclasses used by the matcher, classifier, extractor, orchestrator
and the job query surface.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from pcms.fields.catalog import FieldDefinition, FieldKind
from pcms.imports.errors import SettingsError


class MatchMode(str, Enum):
    STRICT = "strict"   # exact name/label/alias matches only
    FUZZY = "fuzzy"     # also substring and similarity matches


class UpdateFrequency(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SheetType(str, Enum):
    CONTRACT = "contract"
    PROCUREMENT = "procurement"
    UNKNOWN = "unknown"


class RecognitionStatus(str, Enum):
    RECOGNIZED = "recognized"
    UNRECOGNIZED = "unrecognized"


class FailureCode(str, Enum):
    HEADER_NOT_FOUND = "header_not_found"
    INSUFFICIENT_MATCHES = "insufficient_matches"
    AMBIGUOUS = "ambiguous"
    EMPTY_SHEET = "empty_sheet"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorType(str, Enum):
    JOB = "job"         # orchestration fault, job failed
    FILE = "file"       # file skipped, job continues
    SHEET = "sheet"     # sheet skipped, file continues
    ROW = "row"         # row discarded, sheet continues
    FIELD = "field"     # one cell kept raw, row continues


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_CAMEL_KEYS = {
    "matchMode": "match_mode",
    "minMatchFields": "min_match_fields",
    "skipEmptyRows": "skip_empty_rows",
    "trimWhitespace": "trim_whitespace",
    "validateData": "validate_data",
    "autoUpdateEnabled": "auto_update_enabled",
    "updateFrequency": "update_frequency",
    "fuzzyThreshold": "fuzzy_threshold",
    "headerScanRows": "header_scan_rows",
}


@dataclass
class ImportSettings:
    """Validated options for one import job."""

    match_mode: MatchMode = MatchMode.STRICT
    min_match_fields: int = 3
    skip_empty_rows: bool = True
    trim_whitespace: bool = True
    validate_data: bool = False            # reject rows missing required fields
    auto_update_enabled: bool = False      # carried for the external re-import scheduler
    update_frequency: UpdateFrequency = UpdateFrequency.DAILY
    fuzzy_threshold: float = 0.8
    header_scan_rows: int = 10

    def validate(self) -> "ImportSettings":
        """
        Coerce enum fields and check ranges. Returns self for chaining.

        Raises:
            SettingsError: Any option is out of range or of the wrong type.
        """
        try:
            self.match_mode = MatchMode(self.match_mode)
        except ValueError:
            raise SettingsError(f"Unknown match mode: {self.match_mode!r}")
        try:
            self.update_frequency = UpdateFrequency(self.update_frequency)
        except ValueError:
            raise SettingsError(f"Unknown update frequency: {self.update_frequency!r}")

        for name in ("min_match_fields", "header_scan_rows"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise SettingsError(f"{name} must be a positive integer, got {value!r}")

        for name in ("skip_empty_rows", "trim_whitespace", "validate_data", "auto_update_enabled"):
            if not isinstance(getattr(self, name), bool):
                raise SettingsError(f"{name} must be true or false, got {getattr(self, name)!r}")

        if isinstance(self.fuzzy_threshold, bool) or not isinstance(self.fuzzy_threshold, (int, float)):
            raise SettingsError(f"fuzzy_threshold must be a number, got {self.fuzzy_threshold!r}")
        if not 0 < self.fuzzy_threshold <= 1:
            raise SettingsError(f"fuzzy_threshold must be in (0, 1], got {self.fuzzy_threshold}")

        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base: Optional["ImportSettings"] = None) -> "ImportSettings":
        """
        Build settings from a dict with camelCase (UI) or snake_case keys.

        Keys absent from ``data`` fall back to ``base`` (or dataclass defaults).
        Unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        values = asdict(base) if base is not None else {}
        for key, value in data.items():
            name = _CAMEL_KEYS.get(key, key)
            if name not in known:
                raise SettingsError(f"Unknown import setting: {key}")
            values[name] = value
        return cls(**values).validate()

    @classmethod
    def from_config(cls, **overrides: Any) -> "ImportSettings":
        """Defaults from ``imports.defaults`` in config.yaml, then ``overrides``."""
        from pcms.core.config import get_config_value

        defaults = get_config_value("imports", "defaults", default={}) or {}
        merged = dict(defaults)
        merged.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(merged)

    @classmethod
    def coerce(cls, data: Union["ImportSettings", Mapping[str, Any], None]) -> "ImportSettings":
        """Settings object, dict, or None (config defaults) to validated settings."""
        if data is None:
            return cls.from_config()
        if isinstance(data, cls):
            return data.validate()
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["match_mode"] = self.match_mode.value if isinstance(self.match_mode, MatchMode) else self.match_mode
        data["update_frequency"] = (
            self.update_frequency.value
            if isinstance(self.update_frequency, UpdateFrequency) else self.update_frequency
        )
        return data


# ---------------------------------------------------------------------------
# Matching and classification
# ---------------------------------------------------------------------------

@dataclass
class HeaderMatchResult:
    """Column-to-field mapping for one header row against one kind's fields."""

    mapping: Dict[int, FieldDefinition] = field(default_factory=dict)
    unmatched_columns: Set[int] = field(default_factory=set)
    confidence: Dict[int, float] = field(default_factory=dict)
    match_types: Dict[int, str] = field(default_factory=dict)   # exact | substring | fuzzy

    @property
    def matched_count(self) -> int:
        return len(self.mapping)

    @property
    def matched_fields(self) -> List[str]:
        """Canonical names in column order."""
        return [self.mapping[col].name for col in sorted(self.mapping)]

    def column_for(self, field_name: str) -> Optional[int]:
        for col, f in self.mapping.items():
            if f.name == field_name:
                return col
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mapping": {col: self.mapping[col].name for col in sorted(self.mapping)},
            "unmatched_columns": sorted(self.unmatched_columns),
            "matched_count": self.matched_count,
            "confidence": {col: self.confidence[col] for col in sorted(self.confidence)},
            "match_types": {col: self.match_types[col] for col in sorted(self.match_types)},
        }


@dataclass
class WorksheetClassification:
    """
    Recognition outcome for one worksheet.

    Build through ``recognized()`` / ``unrecognized()`` so that sheet_type is
    UNKNOWN exactly when the sheet is unrecognized.
    """

    sheet_type: SheetType
    recognition_status: RecognitionStatus
    matched_fields: List[str] = field(default_factory=list)
    failure_reason: Optional[str] = None
    failure_code: Optional[FailureCode] = None
    sheet_name: str = ""
    header_row_index: int = 0           # -1 when no header row was located
    total_rows: int = 0
    data_rows: int = 0
    contract_matches: int = 0
    procurement_matches: int = 0
    match_result: Optional[HeaderMatchResult] = field(default=None, repr=False, compare=False)

    @classmethod
    def recognized(
        cls,
        kind: FieldKind,
        match_result: HeaderMatchResult,
        contract_matches: int,
        procurement_matches: int,
    ) -> "WorksheetClassification":
        return cls(
            sheet_type=SheetType(FieldKind(kind).value),
            recognition_status=RecognitionStatus.RECOGNIZED,
            matched_fields=match_result.matched_fields,
            contract_matches=contract_matches,
            procurement_matches=procurement_matches,
            match_result=match_result,
        )

    @classmethod
    def unrecognized(
        cls,
        code: FailureCode,
        reason: str,
        contract_matches: int = 0,
        procurement_matches: int = 0,
        matched_fields: Optional[List[str]] = None,
    ) -> "WorksheetClassification":
        return cls(
            sheet_type=SheetType.UNKNOWN,
            recognition_status=RecognitionStatus.UNRECOGNIZED,
            matched_fields=list(matched_fields or []),
            failure_reason=reason,
            failure_code=code,
            contract_matches=contract_matches,
            procurement_matches=procurement_matches,
        )

    @property
    def matched_fields_count(self) -> int:
        return len(self.matched_fields)

    @property
    def is_recognized(self) -> bool:
        return self.recognition_status == RecognitionStatus.RECOGNIZED

    @property
    def kind(self) -> Optional[FieldKind]:
        return FieldKind(self.sheet_type.value) if self.is_recognized else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sheet_name": self.sheet_name,
            "sheet_type": self.sheet_type.value,
            "recognition_status": self.recognition_status.value,
            "matched_fields": list(self.matched_fields),
            "matched_fields_count": self.matched_fields_count,
            "failure_reason": self.failure_reason,
            "failure_code": self.failure_code.value if self.failure_code else None,
            "header_row_index": self.header_row_index,
            "total_rows": self.total_rows,
            "data_rows": self.data_rows,
            "contract_matches": self.contract_matches,
            "procurement_matches": self.procurement_matches,
        }


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

@dataclass
class FieldError:
    """One cell that failed cleaning (row index is 0-based in the sheet grid)."""

    row_index: int
    field_name: str
    raw_value: Any
    message: str


@dataclass
class ExtractedRecord:
    source_row_index: int
    fields: Dict[str, Any] = field(default_factory=dict)
    raw_fields: Dict[int, Any] = field(default_factory=dict)
    errors: List[FieldError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass
class RowRejection:
    """A row discarded because a required field was missing or uncleanable."""

    row_index: int
    reason: str
    missing_fields: List[str] = field(default_factory=list)
    field_errors: List[FieldError] = field(default_factory=list)


@dataclass
class SheetData:
    """One worksheet as read from disk: its name and a grid of raw cell values."""

    name: str
    rows: List[List[Any]] = field(default_factory=list)


@dataclass(frozen=True)
class FileMetadata:
    file_path: str
    file_name: str
    sheet_name: str


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

@dataclass
class JobError:
    """One entry of a job's error list."""

    type: ErrorType
    message: str
    file_path: Optional[str] = None
    sheet_name: Optional[str] = None
    row_index: Optional[int] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


@dataclass
class JobTotals:
    files: int = 0
    processed_files: int = 0
    sheets: int = 0
    processed_sheets: int = 0
    rows: int = 0
    processed_rows: int = 0
    error_rows: int = 0
    imported_rows: int = 0


@dataclass
class ImportJob:
    """Progress record of one import run, tracked until cleared."""

    id: str
    file_paths: List[str] = field(default_factory=list)
    settings: Optional[ImportSettings] = None
    status: JobStatus = JobStatus.PENDING
    totals: JobTotals = field(default_factory=JobTotals)
    progress: int = 0
    current_step: str = "Waiting to start"
    errors: List[JobError] = field(default_factory=list)
    worksheets: List[WorksheetClassification] = field(default_factory=list)
    cancelled: bool = False
    created_at: str = field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def snapshot(self) -> "ImportJob":
        """Independent deep copy for readers outside the worker thread."""
        return copy.deepcopy(self)

    def errors_of(self, error_type: ErrorType) -> List[JobError]:
        return [e for e in self.errors if e.type == error_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "file_paths": list(self.file_paths),
            "settings": self.settings.to_dict() if self.settings else None,
            "totals": asdict(self.totals),
            "progress": self.progress,
            "current_step": self.current_step,
            "errors": [e.to_dict() for e in self.errors],
            "worksheets": [w.to_dict() for w in self.worksheets],
            "cancelled": self.cancelled,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
