"""Migration commands: migrate, deploy, push, baseline and reset."""

from typing import List, Optional

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table as RichTable

from schemashift.cli.utils import project_context
from schemashift.managers import flows
from schemashift.managers.runner import MigrationError
from schemashift.models import Collision, RenameSuggestion
from schemashift.utils.files import read_text, write_text
from schemashift.utils.naming import InvalidNameError

console = Console()


def _print_sql(sql: str) -> None:
    console.print(Syntax(sql, "sql", theme="ansi_dark", word_wrap=True))


def _print_renames(suggestions: List[RenameSuggestion]) -> None:
    for s in suggestions:
        console.print(
            f"[yellow]⚠️  '{s.table}.{s.old_column}' looks renamed to '{s.new_column}' "
            f"(confidence {s.confidence:.2f}). Review the SQL before applying.[/yellow]"
        )


def _print_collisions(collisions: List[Collision]) -> None:
    if not collisions:
        return
    table = RichTable(title="Migration number collisions")
    table.add_column("Number", style="cyan")
    table.add_column("Journal", style="yellow")
    table.add_column("On disk", style="red")
    table.add_column("Suggested", style="green")
    for c in collisions:
        table.add_row(str(c.sequence_number), c.existing_name, c.conflicting_name, c.suggested_name)
    console.print(table)


def migrate(
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="Migration description (default: derived from changes)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show the migration without writing or applying it"
    ),
):
    """Generate a migration from schema changes and apply it."""
    with project_context() as ctx:
        try:
            result = flows.migrate_dev(
                ctx.query_fn,
                ctx.require_schema(),
                ctx.previous_snapshot,
                migration_name=name,
                existing_files=ctx.existing_files,
                migrations_dir=str(ctx.migrations_dir),
                write_file=write_text,
                read_file=read_text,
                dry_run=dry_run,
                dialect=ctx.dialect,
                history_table=ctx.config_data.history_table,
            )
        except (InvalidNameError, MigrationError) as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    if not result.changes:
        console.print("[yellow]No schema changes detected[/yellow]")
        return

    _print_renames(result.rename_suggestions)
    _print_collisions(result.collisions)

    if result.dry_run:
        console.print(f"[bold]Would create {result.migration_file}[/bold]")
        if result.sql:
            _print_sql(result.sql)
        return

    console.print(f"[green]✅ Created and applied {result.migration_file}[/green]")


def deploy(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="List pending migrations without applying them"
    ),
):
    """Apply all pending migration files."""
    with project_context() as ctx:
        try:
            result = flows.migrate_deploy(
                ctx.query_fn,
                ctx.migration_files,
                dry_run=dry_run,
                dialect=ctx.dialect,
                history_table=ctx.config_data.history_table,
            )
        except MigrationError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    table = RichTable(title="Pending migrations" if dry_run else "Deploy")
    table.add_column("Migration", style="cyan")
    table.add_column("Status", style="green")
    for name in result.already_applied:
        table.add_row(name, "already applied")
    for name in result.applied:
        table.add_row(name, "pending" if dry_run else "applied")
    if result.error:
        table.add_row(result.error.name, "[red]failed[/red]")
    console.print(table)

    for name in result.drifted:
        console.print(f"[yellow]⚠️  {name} was modified after it was applied[/yellow]")

    if result.error:
        console.print(f"[red]❌ {result.error.message}[/red]")
        raise typer.Exit(1)

    if not dry_run:
        console.print(f"[green]✅ Applied {len(result.applied)} migration(s)[/green]")


def push():
    """Apply schema changes directly, without a migration file."""
    with project_context() as ctx:
        try:
            result = flows.push(
                ctx.query_fn, ctx.require_schema(), ctx.previous_snapshot, dialect=ctx.dialect
            )
        except MigrationError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)
        if result.sql:
            # The pushed schema becomes the baseline for the next diff
            write_text(ctx.migrations_dir / flows.SNAPSHOT_FILENAME, ctx.current_snapshot.to_json())

    if not result.sql:
        console.print("[yellow]No schema changes detected[/yellow]")
        return

    _print_renames(result.rename_suggestions)
    console.print(
        f"[green]✅ Pushed changes to {', '.join(result.tables_affected) or 'the schema'}[/green]"
    )


def baseline():
    """Mark all migration files as applied without running them."""
    with project_context() as ctx:
        try:
            result = flows.baseline(
                ctx.query_fn,
                ctx.migration_files,
                dialect=ctx.dialect,
                history_table=ctx.config_data.history_table,
            )
        except MigrationError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    for name in result.recorded:
        console.print(f"  [green]recorded[/green] {name}")
    console.print(f"[green]✅ Baselined {len(result.recorded)} migration(s)[/green]")


def reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Drop all tables and re-apply every migration."""
    if not force:
        confirm = typer.confirm("This drops every table in the database. Continue?")
        if not confirm:
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    with project_context() as ctx:
        try:
            result = flows.reset(
                ctx.query_fn,
                ctx.migration_files,
                ctx.dialect,
                history_table=ctx.config_data.history_table,
            )
        except MigrationError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    console.print(f"Dropped {len(result.dropped_tables)} table(s)")
    console.print(f"[green]✅ Re-applied {len(result.applied)} migration(s)[/green]")
