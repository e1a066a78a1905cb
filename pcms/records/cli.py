"""Record CLI sub-commands."""

from typing import Optional

import typer

from pcms.core.output import OutputFormat, format_result, format_table

app = typer.Typer(no_args_is_help=True)

# Columns shown by `records list`; everything else is available via --format json
SUMMARY_COLUMNS = {
    "contract": [
        "id", "contract_number", "contract_name", "party_b", "contract_amount", "sign_date", "project_id",
    ],
    "procurement": [
        "id", "procurement_number", "procurement_name", "procurer", "winning_price", "winner", "project_id",
    ],
}


@app.command("list")
def list_cmd(
    kind: str = typer.Argument(..., help="contract or procurement"),
    file: Optional[str] = typer.Option(None, "--file", help="Only records from this source file"),
    errors_only: bool = typer.Option(False, "--errors", help="Only records with cleaning errors"),
    project: Optional[int] = typer.Option(None, "--project", help="Only records linked to this project id"),
    limit: int = typer.Option(50, "--limit", "-n"),
    fmt: OutputFormat = typer.Option(OutputFormat.HUMAN, "--format", "-f", help="Output format"),
):
    """List imported records."""
    from pcms.core.db import get_db
    from pcms.fields.catalog import FieldKind
    from pcms.records.store import list_records

    try:
        kind_enum = FieldKind(kind)
    except ValueError:
        typer.echo(f"Unknown kind '{kind}' (expected contract or procurement)", err=True)
        raise typer.Exit(2)

    with get_db(readonly=True) as conn:
        records = list_records(
            conn, kind_enum, file_path=file, errors_only=errors_only, project_id=project, limit=limit
        )

    if fmt != OutputFormat.HUMAN:
        typer.echo(format_result({"records": records}, fmt))
        return
    typer.echo(format_table(records, SUMMARY_COLUMNS[kind_enum.value]))


@app.command()
def count(
    file: Optional[str] = typer.Option(None, "--file", help="Only records from this source file"),
):
    """Count imported records per kind."""
    from pcms.core.db import get_db
    from pcms.records.store import count_records

    with get_db(readonly=True) as conn:
        counts = count_records(conn, file)
    for kind, n in counts.items():
        typer.echo(f"  {kind:<12} {n}")
