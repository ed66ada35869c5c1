"""Inspection commands: status and drift."""

import typer
from rich.console import Console
from rich.table import Table as RichTable

from schemashift.cli.utils import project_context, show_env_config
from schemashift.managers import flows

console = Console()


def status():
    """Show applied and pending migrations and unmigrated schema changes."""
    with project_context() as ctx:
        result = flows.migrate_status(
            ctx.query_fn,
            ctx.migration_files,
            current_snapshot=ctx.current_snapshot,
            saved_snapshot=ctx.saved_snapshot,
            dialect=ctx.dialect,
            detect_drift=False,
            history_table=ctx.config_data.history_table,
        )
        project_dir = ctx.config.project_dir
        dialect_name = ctx.dialect.name

    console.print("\n[bold]schemashift status[/bold]")
    console.print(f"Project: {project_dir}")
    console.print(f"Dialect: {dialect_name}")

    table = RichTable(title="Migrations")
    table.add_column("Migration", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Applied at", style="dim")
    for migration in result.applied:
        state = "[yellow]modified[/yellow]" if migration.name in result.drifted else "applied"
        table.add_row(migration.name, state, migration.applied_at.isoformat(sep=" "))
    for name in result.pending:
        state = "[red]out of order[/red]" if name in result.out_of_order else "pending"
        table.add_row(name, state, "-")
    console.print(table)

    if result.code_changes:
        console.print("\n[yellow]Schema changes without a migration:[/yellow]")
        for change in result.code_changes:
            console.print(f"  • {change.description}")

    show_env_config()


def drift():
    """Compare the live database with the expected schema."""
    with project_context() as ctx:
        expected = ctx.saved_snapshot or ctx.current_snapshot
        if expected is None:
            console.print("[red]❌ No schema snapshot to compare against[/red]")
            raise typer.Exit(1)
        actual = ctx.dialect.introspect(ctx.query_fn, exclude=[ctx.config_data.history_table])
        entries = flows.detect_schema_drift(expected, actual, ctx.dialect)

    if not entries:
        console.print("[green]✅ Database matches the schema[/green]")
        return

    table = RichTable(title="Schema drift")
    table.add_column("Type", style="yellow")
    table.add_column("Table", style="cyan")
    table.add_column("Column", style="cyan")
    table.add_column("Description")
    for entry in entries:
        table.add_row(entry.type, entry.table, entry.column or "-", entry.description)
    console.print(table)
    raise typer.Exit(1)
