"""
Imports module: spreadsheet recognition and import pipeline.

Reader -> SheetClassifier (HeaderMatcher per kind) -> RowExtractor (cleaning
rules) -> record sink, driven per job by ImportOrchestrator and exposed to
callers through ImportService.
"""

from pcms.imports.classifier import SheetClassifier
from pcms.imports.engine import ImportOrchestrator
from pcms.imports.errors import (
    CleaningError,
    FileReadError,
    ImportPipelineError,
    JobNotFoundError,
    OrchestrationError,
    PersistError,
    SettingsError,
)
from pcms.imports.extractor import RowExtractor, WorksheetExtraction
from pcms.imports.matcher import HeaderMatcher
from pcms.imports.reader import read_workbook
from pcms.imports.specs import (
    ErrorType,
    ImportJob,
    ImportSettings,
    JobStatus,
    MatchMode,
    SheetType,
    WorksheetClassification,
)

__all__ = [
    "CleaningError",
    "ErrorType",
    "FileReadError",
    "HeaderMatcher",
    "ImportJob",
    "ImportOrchestrator",
    "ImportPipelineError",
    "ImportSettings",
    "JobNotFoundError",
    "JobStatus",
    "MatchMode",
    "OrchestrationError",
    "PersistError",
    "RowExtractor",
    "SettingsError",
    "SheetClassifier",
    "SheetType",
    "WorksheetClassification",
    "WorksheetExtraction",
    "read_workbook",
]
