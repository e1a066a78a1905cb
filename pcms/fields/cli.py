"""Field catalog CLI sub-commands."""

import json
from typing import List, Optional

import typer

from pcms.core.output import format_table

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_cmd(
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="contract or procurement"),
    all_fields: bool = typer.Option(False, "--all", help="Include inactive fields"),
):
    """List catalog fields with their labels and aliases."""
    from pcms.core.db import get_db
    from pcms.fields.manage import list_fields

    with get_db(readonly=True) as conn:
        fields = list_fields(conn, kind, include_inactive=all_fields)

    if not fields:
        typer.echo("No fields configured. Run 'pcms migrate' to seed the defaults.")
        return

    rows = [
        {
            "kind": f["kind"],
            "name": f["field_name"],
            "label": f["label"],
            "type": f["data_type"],
            "req": "*" if f["is_required"] else "",
            "aliases": f["aliases"],
        }
        for f in fields
    ]
    typer.echo(format_table(rows, ["kind", "name", "label", "type", "req", "aliases"], max_width=30))


@app.command()
def seed():
    """Insert the default contract and procurement fields (existing rows are kept)."""
    from pcms.core.db import get_db
    from pcms.fields.seed import seed_default_fields

    with get_db() as conn:
        counts = seed_default_fields(conn)
    typer.echo(f"Seeded {counts['fields']} fields, {counts['rules']} cleaning rules.")


@app.command()
def add(
    kind: str = typer.Argument(..., help="contract or procurement"),
    name: str = typer.Argument(..., help="Canonical field name"),
    label: str = typer.Argument(..., help="Display label (also matched against headers)"),
    alias: Optional[List[str]] = typer.Option(None, "--alias", "-a", help="Accepted header alias (repeatable)"),
    data_type: str = typer.Option("text", "--type", "-t", help="text, number or date"),
    required: bool = typer.Option(False, "--required", help="Mark as required"),
):
    """Add a field to the catalog."""
    from pcms.core.db import get_db
    from pcms.fields.manage import create_field

    with get_db() as conn:
        try:
            field_id = create_field(conn, kind, name, label, alias or [], data_type, required)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Added {kind} field '{name}' (id {field_id}).")


@app.command("alias")
def alias_cmd(
    kind: str = typer.Argument(..., help="contract or procurement"),
    name: str = typer.Argument(..., help="Canonical field name"),
    alias: str = typer.Argument(..., help="Header text to accept"),
):
    """Add an accepted header alias to a field."""
    from pcms.core.db import get_db
    from pcms.fields.manage import add_alias

    with get_db() as conn:
        try:
            aliases = add_alias(conn, kind, name, alias)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"{name}: {', '.join(aliases)}")


@app.command()
def rule(
    kind: str = typer.Argument(..., help="contract or procurement"),
    name: str = typer.Argument(..., help="Canonical field name"),
    cleaning_type: str = typer.Argument(..., help="Cleaning rule type"),
    config: str = typer.Argument("{}", help="Rule config as JSON"),
    priority: int = typer.Option(0, "--priority", "-p", help="Lower runs first"),
):
    """Set a cleaning rule on a field."""
    from pcms.core.db import get_db
    from pcms.fields.manage import set_cleaning_rule

    try:
        parsed = json.loads(config)
    except json.JSONDecodeError as e:
        typer.echo(f"Invalid JSON config: {e}", err=True)
        raise typer.Exit(1)

    with get_db() as conn:
        try:
            set_cleaning_rule(conn, kind, name, cleaning_type, parsed, priority)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Rule '{cleaning_type}' set on {kind}.{name}.")
