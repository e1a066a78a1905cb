"""Smoke-test that all public APIs can be imported without error.

Catches stale imports, circular dependencies, and missing deps.
No DB or fixtures needed: pure import checks.
"""


def test_import_pcms():
    import pcms
    assert pcms.__version__ == "0.1.0"


def test_import_core():
    from pcms.core import get_db, get_config, get_logger, PCMS_PATHS, migrate_all, execute_query  # noqa: F401


def test_import_core_results():
    from pcms.core.results import ErrorKind, Result  # noqa: F401


def test_import_fields():
    from pcms.fields import (  # noqa: F401
        DataType, FieldCatalog, FieldDefinition, FieldKind, RuleSpec,
        SqliteFieldProvider, StaticFieldProvider,
    )
    from pcms.fields.seed import default_field_definitions, seed_default_fields  # noqa: F401
    from pcms.fields.manage import add_alias, create_field, list_fields, set_cleaning_rule  # noqa: F401


def test_import_imports_pipeline():
    from pcms.imports import (  # noqa: F401
        HeaderMatcher, ImportOrchestrator, ImportSettings, RowExtractor,
        SheetClassifier, read_workbook,
    )
    from pcms.imports.cleaning import available_rule_types, build_rule  # noqa: F401
    from pcms.imports.history import get_import_history, save_job_summary  # noqa: F401


def test_import_service():
    from pcms.imports.service import ImportService  # noqa: F401


def test_import_records():
    from pcms.records import SqliteRecordSink, count_records, list_records, open_record_sink  # noqa: F401


def test_import_projects():
    from pcms.projects import ProjectLinker, create_project, find_project, list_projects  # noqa: F401


def test_import_cli():
    from pcms.cli.main import app, main  # noqa: F401
    from pcms.imports.cli import app as import_app  # noqa: F401
    from pcms.fields.cli import app as fields_app  # noqa: F401
    from pcms.records.cli import app as records_app  # noqa: F401
    from pcms.projects.cli import app as projects_app  # noqa: F401
