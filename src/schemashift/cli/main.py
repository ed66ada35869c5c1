"""Main CLI entry point for schemashift."""

import typer
from typing import Optional
from pathlib import Path

from schemashift.cli.commands import migrate, status

app = typer.Typer(
    name="schemashift",
    help="schemashift - Declarative schema diffing and migrations",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """
    schemashift - Declarative schema diffing and migrations
    """
    if ctx.invoked_subcommand is None:
        print(ctx.get_help())
        raise typer.Exit(0)


app.command(name="migrate")(migrate.migrate)
app.command(name="deploy")(migrate.deploy)
app.command(name="push")(migrate.push)
app.command(name="baseline")(migrate.baseline)
app.command(name="reset")(migrate.reset)
app.command(name="status")(status.status)
app.command(name="drift")(status.drift)


@app.command()
def init(
    path: Optional[Path] = typer.Argument(
        None, help="Directory to initialize project in (default: current directory)"
    ),
    dialect: str = typer.Option("sqlite", "--dialect", help="Target dialect (sqlite, d1)"),
    database: str = typer.Option("app.db", "--database", "-d", help="SQLite database file"),
):
    """Initialize a new schemashift project."""
    from schemashift.config import Config

    project_path = path or Path.cwd()

    try:
        config = Config(project_path).init_project(dialect=dialect, database=database)
        typer.secho(
            f"✅ Initialized schemashift project in {project_path}", fg=typer.colors.GREEN
        )
        typer.secho(
            f"   Dialect: {config.dialect}, Database: {config.database}", fg=typer.colors.CYAN
        )
    except FileExistsError:
        typer.secho(f"❌ Project already exists in {project_path}", fg=typer.colors.RED)
        raise typer.Exit(1)


@app.command()
def version():
    """Show schemashift version."""
    from schemashift import __version__

    typer.echo(f"schemashift version {__version__}")


if __name__ == "__main__":
    app()
