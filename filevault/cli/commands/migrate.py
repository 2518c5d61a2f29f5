"""
Migration commands for FileVault data.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import Session

from filevault.cli.commands.utils import confirm_action
from filevault.cli.logging import setup_cli_logging
from filevault.core.config import settings
from filevault.core.database import create_db_and_tables, engine
from filevault.core.exceptions import AssetStoreCapabilityError
from filevault.schemas.migration import MigrationOptions
from filevault.services.file_migration_service import FileMigrationService

app = typer.Typer(help="Data migration commands")
console = Console()


@app.command("files")
def migrate_files(
    base: Optional[Path] = typer.Option(
        None, "--base", "-b", help="Absolute path legacy filenames are relative to (default: PUBLIC_ROOT)"
    ),
    keep_invalid: bool = typer.Option(
        False, "--keep-invalid", help="Keep records with disallowed extensions instead of deleting them"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompt"),
):
    """
    Migrate legacy file records to the content-addressed asset store.

    This command:
    - Moves files referenced by the legacy filename column into the asset store
    - Fixes record classes that don't match their file extension
    - Deletes records with disallowed extensions (unless --keep-invalid)
    - Normalises stored paths of already migrated files on every stage
    """
    if base is not None and not base.is_absolute():
        raise typer.BadParameter("Base path must be absolute.")

    logger = setup_cli_logging("migrate", verbose=verbose)
    logger.info("Starting file migration command")

    # Brings legacy databases up to the current schema before they are read
    create_db_and_tables()

    delete_invalid = settings.delete_invalid_files and not keep_invalid
    options = MigrationOptions.from_settings(delete_invalid_files=delete_invalid)
    logger.info(f"Options: base={base or settings.public_root}, delete_invalid_files={delete_invalid}")

    with Session(engine) as session:
        service = FileMigrationService(session, options=options)
        pending = service.repository.count_pending_legacy()
        logger.info(f"Found {pending} legacy files to migrate")

        header = Table(title="Legacy File Migration")
        header.add_column("Metric", style="cyan")
        header.add_column("Value", style="white")
        header.add_row("Legacy files pending", str(pending))
        header.add_row("Base path", str(base or settings.public_root))
        header.add_row("Asset root", str(settings.asset_root))
        header.add_row("Invalid files", "DELETE" if delete_invalid else "KEEP")
        header.add_row("Versioning", "enabled" if service.versioning.enabled else "disabled")
        console.print(header)

        if not force:
            if not confirm_action("\n⚠ This will move files and modify your database. Ensure you have a backup. Continue?", default=False):
                logger.info("Migration cancelled by user")
                console.print("[yellow]Migration cancelled[/yellow]")
                raise typer.Exit(code=0)

        started_at = datetime.now()
        try:
            total = service.run(base)
        except AssetStoreCapabilityError as exc:
            logger.error(str(exc))
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=2)

    duration = datetime.now() - started_at
    stats = service.stats

    summary = Table(title="Migration Summary")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="green")
    summary.add_row("Migrated", str(stats.migrated))
    summary.add_row("Already migrated", str(stats.already_migrated))
    summary.add_row("Reclassified", str(stats.reclassified))
    summary.add_row("Missing source file", str(stats.missing_source))
    summary.add_row("Disallowed extension", str(stats.invalid_extension))
    summary.add_row("Deleted", str(stats.deleted))
    summary.add_row("Not found in store", str(stats.unresolved))
    summary.add_row("Normalised", str(stats.normalised))
    summary.add_row("Duration", str(duration).split(".")[0])

    logger.info(f"Migration complete: {total} files migrated or normalised in {duration.total_seconds():.2f}s")
    console.print("\n[green]✓ Migration complete[/green]")
    console.print(summary)

    if stats.unresolved:
        console.print(f"\n[yellow]⚠ {stats.unresolved} legacy files could not be found in the asset store[/yellow]")
