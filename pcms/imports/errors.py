"""
Import pipeline exceptions.

Only faults that change control flow are raised. Everything a job survives
(bad file, unrecognized sheet, rejected row, uncleanable cell) is recorded as
a JobError on the job instead; see ErrorType in pcms.imports.specs.
"""


class ImportPipelineError(Exception):
    """Base class for import pipeline errors."""


class FileReadError(ImportPipelineError):
    """A file could not be opened or parsed (missing, unsupported, corrupt, too large)."""

    def __init__(self, file_path: str, message: str):
        super().__init__(f"{file_path}: {message}")
        self.file_path = file_path
        self.reason = message


class CleaningError(ImportPipelineError):
    """A cleaning rule could not parse its input value."""


class OrchestrationError(ImportPipelineError):
    """A job-level fault: the job cannot run at all."""


class SettingsError(OrchestrationError, ValueError):
    """ImportSettings failed validation."""


class PersistError(ImportPipelineError):
    """A record sink could not store one record."""


class JobNotFoundError(ImportPipelineError, KeyError):
    """No job is tracked under the given id (never created, or cleared)."""

    def __init__(self, import_id: str):
        super().__init__(import_id)
        self.import_id = import_id

    def __str__(self) -> str:
        return f"Import job not found: {self.import_id}"
