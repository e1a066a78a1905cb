"""
PCMS CLI - Main Entry Point

Unified Typer CLI that assembles all module sub-commands.

Usage:
    pcms version
    pcms migrate
    pcms import [command]
    pcms fields [command]
    pcms records [command]
    pcms projects [command]
"""

import importlib

import typer

import pcms

app = typer.Typer(
    name="pcms",
    help="Procurement and contract management: spreadsheet import and records.",
    no_args_is_help=True,
)


@app.command()
def version():
    """Show PCMS version."""
    typer.echo(f"pcms {pcms.__version__}")


@app.command()
def migrate(
    no_seed: bool = typer.Option(False, "--no-seed", help="Skip seeding the default field catalog"),
):
    """Run database schema migrations for all modules."""
    from pcms.core.db import migrate_all

    migrate_all(seed=not no_seed)
    typer.echo("Database migration complete.")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    if verbose:
        from pcms.core.logging import set_level

        set_level("DEBUG")


def _register_modules():
    """Register module CLI sub-apps."""
    module_registry = [
        ("pcms.imports.cli", "import", "Spreadsheet import and recognition"),
        ("pcms.fields.cli", "fields", "Field catalog and cleaning rules"),
        ("pcms.records.cli", "records", "Imported contract and procurement records"),
        ("pcms.projects.cli", "projects", "Project register for record linking"),
    ]

    for module_path, name, help_text in module_registry:
        mod = importlib.import_module(module_path)
        app.add_typer(mod.app, name=name, help=help_text)


_register_modules()


def main():
    """Entry point for the pcms CLI."""
    app()


if __name__ == "__main__":
    main()
