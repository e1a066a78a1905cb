"""Projects CLI sub-commands."""

from typing import Optional

import typer

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_cmd():
    """List registered projects."""
    from pcms.projects.store import list_projects

    projects = list_projects()
    if not projects:
        typer.echo("No projects found.")
        return

    for p in projects:
        alias = f"  ({p['project_alias']})" if p.get("project_alias") else ""
        typer.echo(f"  {p['project_code'] or '-':<12} {p['project_name']}{alias}")
    typer.echo(f"\n  {len(projects)} project(s)")


@app.command()
def add(
    name: str = typer.Argument(..., help="Project name (项目名称)"),
    code: Optional[str] = typer.Option(None, "--code", "-c", help="Project code (项目编号)"),
    alias: Optional[str] = typer.Option(None, "--alias", help="Other names, comma separated"),
):
    """Register a project for imported records to link to."""
    from pcms.core.db import get_db
    from pcms.projects.store import create_project

    with get_db() as conn:
        try:
            project_id = create_project(conn, name, code=code, alias=alias)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Project {project_id} created: {name}")
