"""
Import engine: runs import jobs over a list of spreadsheet files.

One background worker thread per job walks files in order and worksheets in
workbook order, hands every extracted record to a record sink, and folds
counters and errors into the job. Callers poll ``get_progress`` (a deep-copied
snapshot taken under the registry lock) or pass a listener.

Error handling is tiered: a bad file, sheet, row or cell is recorded on the
job and processing continues. Only an orchestration fault (invalid settings,
no files, an unexpected exception in the worker) fails the job.
"""

import threading
import uuid
from contextlib import AbstractContextManager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Union

from pcms.core.logging import get_logger
from pcms.fields.catalog import FieldCatalog, FieldKind
from pcms.imports.classifier import SheetClassifier
from pcms.imports.errors import FileReadError, JobNotFoundError, OrchestrationError, PersistError
from pcms.imports.extractor import RowExtractor, WorksheetExtraction
from pcms.imports.matcher import HeaderMatcher
from pcms.imports.reader import read_workbook
from pcms.imports.specs import (
    ErrorType,
    ExtractedRecord,
    FileMetadata,
    ImportJob,
    ImportSettings,
    JobError,
    JobStatus,
    SheetData,
)

logger = get_logger("pcms.imports.engine")


class RecordSink(Protocol):
    def persist(self, kind: FieldKind, record: ExtractedRecord, meta: FileMetadata) -> None:
        """Store one record. Raise PersistError on failure."""

    def flush(self) -> None:
        """Make everything persisted so far durable."""


SinkFactory = Callable[[], AbstractContextManager]
Reader = Callable[[str], List[SheetData]]
Listener = Callable[[ImportJob], None]


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class ImportOrchestrator:
    """
    Job registry and worker for spreadsheet imports.

    Args:
        catalog: Field catalog; snapshotted once per job.
        sink_factory: Zero-arg callable returning a context manager that
            yields a RecordSink. Entered inside the worker thread, so a
            SQLite connection opened there stays on that thread.
        reader: File reader, ``read_workbook`` by default.
        listener: Called with a job snapshot after each worksheet and at job end.
        on_finished: Called once with the final snapshot of each job.
    """

    def __init__(
        self,
        catalog: FieldCatalog,
        sink_factory: SinkFactory,
        reader: Reader = read_workbook,
        listener: Optional[Listener] = None,
        on_finished: Optional[Listener] = None,
    ):
        self.catalog = catalog
        self.sink_factory = sink_factory
        self.reader = reader
        self.listener = listener
        self.on_finished = on_finished
        self._jobs: Dict[str, ImportJob] = {}
        self._threads: Dict[str, threading.Thread] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Job control
    # ------------------------------------------------------------------

    def start(
        self,
        file_paths: Iterable[Union[str, Path]],
        settings: Union[ImportSettings, Mapping[str, Any], None] = None,
        background: bool = True,
    ) -> str:
        """
        Create a job and start processing it. Returns the job id immediately.

        Invalid settings or an empty file list fail the job up front; the id
        is still returned so the failure can be inspected.
        """
        job = ImportJob(id=uuid.uuid4().hex, file_paths=[str(p) for p in (file_paths or [])])
        with self._lock:
            self._jobs[job.id] = job

        try:
            job.settings = ImportSettings.coerce(settings)
            if not job.file_paths:
                raise OrchestrationError("No files provided")
        except OrchestrationError as e:
            logger.warning("Import %s rejected: %s", job.id, e)
            self._fail(job, str(e))
            self._finish(job)
            return job.id

        logger.info("Import %s queued: %d file(s)", job.id, len(job.file_paths))
        if background:
            thread = threading.Thread(
                target=self._run, args=(job,), daemon=True, name=f"pcms-import-{job.id[:8]}"
            )
            with self._lock:
                self._threads[job.id] = thread
            thread.start()
        else:
            self._run(job)
        return job.id

    def get_progress(self, import_id: str) -> ImportJob:
        """
        Snapshot of a tracked job.

        Raises:
            JobNotFoundError: Unknown or cleared id.
        """
        with self._lock:
            job = self._jobs.get(import_id)
            if job is None:
                raise JobNotFoundError(import_id)
            return job.snapshot()

    def list_progress(self) -> List[ImportJob]:
        with self._lock:
            jobs = [j.snapshot() for j in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.created_at)

    def cancel(self, import_id: str) -> bool:
        """
        Ask a running job to stop at the next worksheet boundary.

        Returns False if the job already finished.

        Raises:
            JobNotFoundError: Unknown or cleared id.
        """
        with self._lock:
            job = self._jobs.get(import_id)
            if job is None:
                raise JobNotFoundError(import_id)
            if job.is_finished:
                return False
            job.cancelled = True
        logger.info("Import %s cancel requested", import_id)
        return True

    def clear_progress(self, import_id: str) -> bool:
        """Forget a job (cancelling it if still running). Unknown ids are a no-op."""
        with self._lock:
            job = self._jobs.pop(import_id, None)
            self._threads.pop(import_id, None)
            if job is None:
                return False
            job.cancelled = job.cancelled or not job.is_finished
        logger.debug("Import %s cleared", import_id)
        return True

    def clear_progress_by_file(self, file_path: Union[str, Path]) -> int:
        """Forget every job that includes ``file_path``. Returns how many were cleared."""
        target = str(file_path)
        with self._lock:
            ids = [jid for jid, job in self._jobs.items() if target in job.file_paths]
        return sum(1 for jid in ids if self.clear_progress(jid))

    def wait(self, import_id: str, timeout: Optional[float] = None) -> ImportJob:
        """
        Block until the job's worker exits (or ``timeout`` passes), then snapshot.

        Raises:
            JobNotFoundError: Unknown or cleared id.
        """
        with self._lock:
            thread = self._threads.get(import_id)
        if thread is not None:
            thread.join(timeout)
        return self.get_progress(import_id)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _run(self, job: ImportJob) -> None:
        try:
            self._process(job)
        except Exception as e:
            logger.error("Import %s aborted: %s", job.id, e, exc_info=True)
            self._fail(job, f"Import aborted: {e}")
        finally:
            self._finish(job)

    def _process(self, job: ImportJob) -> None:
        settings = job.settings
        matcher = HeaderMatcher(settings.match_mode, settings.fuzzy_threshold)
        extractor = RowExtractor(SheetClassifier(self.catalog.snapshot(), matcher), settings)
        n_files = len(job.file_paths)

        with self._lock:
            job.status = JobStatus.PROCESSING
            job.started_at = _now()
            job.totals.files = n_files

        with self.sink_factory() as sink:
            for file_index, file_path in enumerate(job.file_paths):
                if job.cancelled:
                    break
                self._process_file(job, extractor, sink, file_path, file_index, n_files)

        with self._lock:
            job.status = JobStatus.COMPLETED
            job.progress = 100
            job.finished_at = _now()
            job.current_step = "Cancelled" if job.cancelled else "Completed"
        t = job.totals
        logger.info(
            "Import %s %s: %d/%d files, %d sheets, %d rows imported, %d error rows, %d errors",
            job.id, job.current_step.lower(), t.processed_files, t.files, t.processed_sheets,
            t.imported_rows, t.error_rows, len(job.errors),
        )

    def _process_file(
        self,
        job: ImportJob,
        extractor: RowExtractor,
        sink: RecordSink,
        file_path: str,
        file_index: int,
        n_files: int,
    ) -> None:
        name = Path(file_path).name
        with self._lock:
            job.current_step = f"Reading {name}"

        try:
            sheets = self.reader(file_path)
        except FileReadError as e:
            logger.warning("Import %s: skipping %s: %s", job.id, name, e.reason)
            with self._lock:
                job.errors.append(JobError(ErrorType.FILE, e.reason, file_path=file_path))
                job.totals.processed_files += 1
                job.progress = self._progress(file_index + 1, n_files)
            self._notify(job)
            return

        with self._lock:
            job.totals.sheets += len(sheets)

        for sheet_index, sheet in enumerate(sheets, start=1):
            if job.cancelled:
                return
            with self._lock:
                job.current_step = f"Importing {name} / {sheet.name}"
            self._process_sheet(job, extractor, sink, file_path, sheet)
            sink.flush()
            with self._lock:
                job.totals.processed_sheets += 1
                job.progress = self._progress(file_index + sheet_index / len(sheets), n_files)
            self._notify(job)

        with self._lock:
            job.totals.processed_files += 1
            job.progress = self._progress(file_index + 1, n_files)

    def _process_sheet(
        self,
        job: ImportJob,
        extractor: RowExtractor,
        sink: RecordSink,
        file_path: str,
        sheet: SheetData,
    ) -> None:
        extraction = extractor.extract(sheet.rows, sheet.name)
        classification = extraction.classification
        errors: List[JobError] = []

        if not classification.is_recognized:
            errors.append(JobError(
                ErrorType.SHEET,
                classification.failure_reason,
                file_path=file_path,
                sheet_name=sheet.name,
                details={
                    "failure_code": classification.failure_code.value,
                    "contract_matches": classification.contract_matches,
                    "procurement_matches": classification.procurement_matches,
                },
            ))
        for note in extraction.notes:
            errors.append(JobError(ErrorType.SHEET, note, file_path=file_path, sheet_name=sheet.name))

        meta = FileMetadata(file_path=file_path, file_name=Path(file_path).name, sheet_name=sheet.name)
        imported, sink_failures = 0, 0
        for record in extraction:
            try:
                sink.persist(extraction.kind, record, meta)
                imported += 1
            except PersistError as e:
                if not record.has_errors:
                    sink_failures += 1
                errors.append(JobError(
                    ErrorType.ROW, f"could not save row: {e}", file_path=file_path,
                    sheet_name=sheet.name, row_index=record.source_row_index,
                ))

        errors.extend(self._extraction_errors(extraction, file_path))

        with self._lock:
            job.worksheets.append(classification)
            job.errors.extend(errors)
            job.totals.rows += classification.data_rows
            job.totals.processed_rows += extraction.processed_rows
            job.totals.error_rows += extraction.error_rows + sink_failures
            job.totals.imported_rows += imported

    @staticmethod
    def _extraction_errors(extraction: WorksheetExtraction, file_path: str) -> List[JobError]:
        errors = [
            JobError(
                ErrorType.FIELD, fe.message, file_path=file_path, sheet_name=extraction.sheet_name,
                row_index=fe.row_index, details={"field": fe.field_name, "raw_value": str(fe.raw_value)},
            )
            for fe in extraction.field_errors
        ]
        errors.extend(
            JobError(
                ErrorType.ROW, rej.reason, file_path=file_path, sheet_name=extraction.sheet_name,
                row_index=rej.row_index, details={"missing_fields": list(rej.missing_fields)},
            )
            for rej in extraction.rejections
        )
        return errors

    @staticmethod
    def _progress(done_files: float, n_files: int) -> int:
        # 100 is reserved for the completed state
        return min(99, int(done_files / n_files * 100)) if n_files else 0

    def _fail(self, job: ImportJob, message: str) -> None:
        with self._lock:
            job.status = JobStatus.FAILED
            job.errors.append(JobError(ErrorType.JOB, message))
            job.current_step = "Failed"
            job.finished_at = _now()

    def _finish(self, job: ImportJob) -> None:
        self._notify(job)
        if self.on_finished is not None:
            with self._lock:
                snapshot = job.snapshot()
            try:
                self.on_finished(snapshot)
            except Exception as e:
                logger.error("Import %s finish callback failed: %s", job.id, e, exc_info=True)
        with self._lock:
            self._threads.pop(job.id, None)

    def _notify(self, job: ImportJob) -> None:
        if self.listener is None:
            return
        with self._lock:
            snapshot = job.snapshot()
        try:
            self.listener(snapshot)
        except Exception as e:
            logger.error("Import %s progress listener failed: %s", job.id, e, exc_info=True)
