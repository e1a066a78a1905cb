"""
ImportService: the job query surface used by the CLI and any UI shell.

Wraps ImportOrchestrator and returns a Result from every call instead of
raising, so callers branch on ``ok`` / ``error_kind``.
"""

import sqlite3
from functools import partial
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from pcms.core.config import update_config_section
from pcms.core.db import get_db
from pcms.core.logging import get_logger
from pcms.core.results import ErrorKind, Result
from pcms.fields.catalog import FieldCatalog, SqliteFieldProvider
from pcms.imports.classifier import SheetClassifier
from pcms.imports.engine import ImportOrchestrator
from pcms.imports.errors import FileReadError, JobNotFoundError, SettingsError
from pcms.imports.extractor import RowExtractor
from pcms.imports.history import save_job_summary
from pcms.imports.matcher import HeaderMatcher
from pcms.imports.specs import ImportJob, ImportSettings, WorksheetClassification
from pcms.records.store import open_record_sink

logger = get_logger("pcms.imports.service")

SettingsInput = Union[ImportSettings, Mapping[str, Any], None]


class ImportService:
    """
    Facade over one orchestrator.

    With no orchestrator given, builds the standard one: fields from the
    SQLite field tables, records into the SQLite record tables, and a history
    row written when each job finishes.
    """

    def __init__(
        self,
        orchestrator: Optional[ImportOrchestrator] = None,
        db_path: Optional[Path] = None,
        record_history: bool = True,
    ):
        self.db_path = db_path
        if orchestrator is None:
            orchestrator = ImportOrchestrator(
                FieldCatalog(SqliteFieldProvider(db_path)),
                partial(open_record_sink, db_path),
                on_finished=self._save_history if record_history else None,
            )
        self.orchestrator = orchestrator

    def start_import(
        self, file_paths: Iterable[Union[str, Path]], settings: SettingsInput = None, background: bool = True
    ) -> Result[str]:
        """Start a job. A job rejected for bad settings still gets an id; see its errors."""
        import_id = self.orchestrator.start(file_paths, settings, background=background)
        return Result.success(import_id)

    def get_progress(self, import_id: str) -> Result[ImportJob]:
        try:
            return Result.success(self.orchestrator.get_progress(import_id))
        except JobNotFoundError as e:
            return Result.failure(ErrorKind.NOT_FOUND, str(e))

    def wait(self, import_id: str, timeout: Optional[float] = None) -> Result[ImportJob]:
        try:
            return Result.success(self.orchestrator.wait(import_id, timeout))
        except JobNotFoundError as e:
            return Result.failure(ErrorKind.NOT_FOUND, str(e))

    def cancel_import(self, import_id: str) -> Result[bool]:
        try:
            return Result.success(self.orchestrator.cancel(import_id))
        except JobNotFoundError as e:
            return Result.failure(ErrorKind.NOT_FOUND, str(e))

    def clear_progress(self, import_id: str) -> Result[bool]:
        return Result.success(self.orchestrator.clear_progress(import_id))

    def clear_progress_by_file(self, file_path: Union[str, Path]) -> Result[int]:
        return Result.success(self.orchestrator.clear_progress_by_file(file_path))

    def list_progress(self) -> Result[List[ImportJob]]:
        return Result.success(self.orchestrator.list_progress())

    def validate_settings(self, data: SettingsInput) -> Result[ImportSettings]:
        try:
            return Result.success(ImportSettings.coerce(data))
        except SettingsError as e:
            return Result.failure(ErrorKind.INVALID_SETTINGS, str(e))

    def save_default_settings(self, data: Mapping[str, Any]) -> Result[ImportSettings]:
        """Merge ``data`` over the current defaults and write them to config.yaml."""
        try:
            merged = ImportSettings.from_dict(data, base=ImportSettings.from_config())
        except SettingsError as e:
            return Result.failure(ErrorKind.INVALID_SETTINGS, str(e))
        update_config_section("imports.defaults", merged.to_dict())
        logger.info("Import defaults updated: %s", ", ".join(sorted(data)))
        return Result.success(merged)

    def inspect_file(self, file_path: Union[str, Path], settings: SettingsInput = None) -> Result[List[WorksheetClassification]]:
        """Classify every worksheet of a file without importing anything."""
        try:
            resolved = ImportSettings.coerce(settings)
        except SettingsError as e:
            return Result.failure(ErrorKind.INVALID_SETTINGS, str(e))

        try:
            sheets = self.orchestrator.reader(str(file_path))
        except FileReadError as e:
            return Result.failure(ErrorKind.FILE_ERROR, str(e))

        try:
            matcher = HeaderMatcher(resolved.match_mode, resolved.fuzzy_threshold)
            classifier = SheetClassifier(self.orchestrator.catalog.snapshot(), matcher)
            extractor = RowExtractor(classifier, resolved)
            return Result.success(
                [extractor.extract(s.rows, s.name).classification for s in sheets]
            )
        except sqlite3.Error as e:
            logger.error("Field catalog unavailable: %s", e)
            return Result.failure(ErrorKind.INTERNAL, f"Field catalog unavailable: {e}")

    def _save_history(self, job: ImportJob) -> None:
        with get_db(db_path=self.db_path) as conn:
            save_job_summary(conn, job)
