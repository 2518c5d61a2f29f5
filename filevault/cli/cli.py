"""
Main CLI application using Typer.

Entry point: python -m filevault.cli
CLI Name: filevault-admin
"""
import typer

from filevault import __version__ as app_version

app = typer.Typer(
    name="filevault-admin",
    help="FileVault Admin CLI - storage maintenance tools",
)

@app.command()
def version():
    """Show CLI version information."""
    typer.echo(f"FileVault CLI version {app_version}")

# Register command groups
from filevault.cli.commands import migrate
app.add_typer(migrate.app, name="migrate")
