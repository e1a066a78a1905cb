"""Import CLI sub-commands."""

import time
from pathlib import Path
from typing import List, Optional

import typer

from pcms.core.output import OutputFormat, format_result, format_table

app = typer.Typer(no_args_is_help=True)


def _overrides(match_mode, min_match, fuzzy_threshold, validate, skip_empty, scan_rows) -> dict:
    values = {
        "match_mode": match_mode,
        "min_match_fields": min_match,
        "fuzzy_threshold": fuzzy_threshold,
        "validate_data": validate,
        "skip_empty_rows": skip_empty,
        "header_scan_rows": scan_rows,
    }
    return {k: v for k, v in values.items() if v is not None}


def _settings_or_exit(overrides: dict):
    from pcms.imports.errors import SettingsError
    from pcms.imports.specs import ImportSettings

    try:
        return ImportSettings.from_config(**overrides)
    except SettingsError as e:
        typer.echo(f"Invalid settings: {e}", err=True)
        raise typer.Exit(2)


@app.command()
def run(
    files: Optional[List[Path]] = typer.Argument(None, help="Spreadsheet files (default: every file in the inbox)"),
    match_mode: Optional[str] = typer.Option(None, "--match-mode", "-m", help="strict or fuzzy"),
    min_match: Optional[int] = typer.Option(None, "--min-match", help="Matched fields needed to recognize a sheet"),
    fuzzy_threshold: Optional[float] = typer.Option(None, "--fuzzy-threshold", help="Similarity cutoff in fuzzy mode"),
    validate: Optional[bool] = typer.Option(None, "--validate/--no-validate", help="Reject rows missing required fields"),
    skip_empty: Optional[bool] = typer.Option(None, "--skip-empty/--keep-empty", help="Skip blank data rows"),
    scan_rows: Optional[int] = typer.Option(None, "--scan-rows", help="Rows searched for the header"),
    show_errors: int = typer.Option(20, "--show-errors", help="Max errors to list"),
    fmt: OutputFormat = typer.Option(OutputFormat.HUMAN, "--format", "-f", help="Output format"),
):
    """Import contract/procurement spreadsheets into the database."""
    from pcms.core.config import PCMS_PATHS, get_config_value
    from pcms.core.paths import find_import_files
    from pcms.imports.service import ImportService

    if not files:
        extensions = get_config_value("imports", "limits", "allowed_extensions", default=[".xlsx"])
        files = find_import_files(PCMS_PATHS.inbox, extensions)
        if not files:
            typer.echo(f"No spreadsheet files in {PCMS_PATHS.inbox}")
            raise typer.Exit(1)

    settings = _settings_or_exit(
        _overrides(match_mode, min_match, fuzzy_threshold, validate, skip_empty, scan_rows)
    )
    service = ImportService()
    import_id = service.start_import(files, settings).unwrap()

    poll = get_config_value("imports", "poll_interval", default=0.2)
    last_step = None
    while True:
        job = service.get_progress(import_id).unwrap()
        if fmt == OutputFormat.HUMAN and job.current_step != last_step:
            typer.echo(f"[{job.progress:>3}%] {job.current_step}")
            last_step = job.current_step
        if job.is_finished:
            break
        time.sleep(poll)

    if fmt != OutputFormat.HUMAN:
        typer.echo(format_result(job, fmt))
    else:
        t = job.totals
        typer.echo()
        typer.echo(f"Import {job.id}: {job.status.value}" + (" (cancelled)" if job.cancelled else ""))
        typer.echo(f"  Files:    {t.processed_files}/{t.files}")
        typer.echo(f"  Sheets:   {t.processed_sheets}/{t.sheets}")
        typer.echo(f"  Rows:     {t.imported_rows} imported, {t.error_rows} with errors, {t.rows} total")
        for ws in job.worksheets:
            marker = "  " if ws.is_recognized else "!!"
            typer.echo(
                f"  {marker} {ws.sheet_name:<20} {ws.sheet_type.value:<12} "
                f"{ws.matched_fields_count} fields, {ws.data_rows} rows"
            )
        if job.errors:
            typer.echo(f"\nErrors ({len(job.errors)}):")
            for e in job.errors[:show_errors]:
                where = " / ".join(
                    str(p) for p in (
                        Path(e.file_path).name if e.file_path else None,
                        e.sheet_name,
                        f"row {e.row_index + 1}" if e.row_index is not None else None,
                    ) if p
                )
                typer.echo(f"  [{e.type.value}] {where}: {e.message}" if where else f"  [{e.type.value}] {e.message}")
            if len(job.errors) > show_errors:
                typer.echo(f"  ... {len(job.errors) - show_errors} more")

    service.clear_progress(import_id)
    if job.status.value == "failed":
        raise typer.Exit(1)


@app.command()
def inspect(
    file: Path = typer.Argument(..., help="Spreadsheet file"),
    match_mode: Optional[str] = typer.Option(None, "--match-mode", "-m", help="strict or fuzzy"),
    min_match: Optional[int] = typer.Option(None, "--min-match", help="Matched fields needed to recognize a sheet"),
    fuzzy_threshold: Optional[float] = typer.Option(None, "--fuzzy-threshold", help="Similarity cutoff in fuzzy mode"),
    scan_rows: Optional[int] = typer.Option(None, "--scan-rows", help="Rows searched for the header"),
    fmt: OutputFormat = typer.Option(OutputFormat.HUMAN, "--format", "-f", help="Output format"),
):
    """Show how each worksheet of a file would be recognized (nothing is imported)."""
    from pcms.imports.service import ImportService

    settings = _settings_or_exit(
        _overrides(match_mode, min_match, fuzzy_threshold, None, None, scan_rows)
    )
    result = ImportService(record_history=False).inspect_file(file, settings)
    if not result.ok:
        typer.echo(f"Cannot inspect {file}: {result.message}", err=True)
        raise typer.Exit(1)

    if fmt != OutputFormat.HUMAN:
        for ws in result.data:
            typer.echo(format_result(ws, fmt, title=ws.sheet_name))
        return

    rows = [
        {
            "sheet": ws.sheet_name,
            "type": ws.sheet_type.value,
            "header": ws.header_row_index + 1 if ws.header_row_index >= 0 else "-",
            "fields": ws.matched_fields_count,
            "rows": ws.data_rows,
            "contract": ws.contract_matches,
            "procurement": ws.procurement_matches,
            "reason": ws.failure_reason or "",
        }
        for ws in result.data
    ]
    typer.echo(format_table(rows, list(rows[0].keys()) if rows else [], max_width=40))


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of jobs"),
):
    """List recent import jobs."""
    from pcms.core.db import get_db
    from pcms.imports.history import get_import_history

    with get_db(readonly=True) as conn:
        jobs = get_import_history(conn, limit)

    if not jobs:
        typer.echo("No imports recorded.")
        return

    rows = [
        {
            "id": j["id"][:8],
            "created": j["created_at"],
            "status": j["status"] + ("*" if j["cancelled"] else ""),
            "files": f"{j['processed_files']}/{j['total_files']}",
            "imported": j["imported_rows"],
            "error_rows": j["error_rows"],
            "errors": j["error_count"],
        }
        for j in jobs
    ]
    typer.echo(format_table(rows, list(rows[0].keys())))


@app.command()
def defaults(
    set_values: Optional[List[str]] = typer.Option(None, "--set", "-s", help="key=value to save (repeatable)"),
    fmt: OutputFormat = typer.Option(OutputFormat.HUMAN, "--format", "-f", help="Output format"),
):
    """Show (or update) the default import settings in config.yaml."""
    import yaml

    from pcms.imports.service import ImportService
    from pcms.imports.specs import ImportSettings

    if not set_values:
        typer.echo(format_result(ImportSettings.from_config(), fmt, title="Import defaults"))
        return

    changes = {}
    for item in set_values:
        key, sep, raw = item.partition("=")
        if not sep:
            typer.echo(f"Expected key=value, got '{item}'", err=True)
            raise typer.Exit(2)
        # YAML scalars: "true" -> True, "0.85" -> 0.85, "fuzzy" -> "fuzzy"
        changes[key.strip()] = yaml.safe_load(raw)

    result = ImportService(record_history=False).save_default_settings(changes)
    if not result.ok:
        typer.echo(f"Invalid settings: {result.message}", err=True)
        raise typer.Exit(2)
    typer.echo(format_result(result.data, fmt, title="Import defaults"))
