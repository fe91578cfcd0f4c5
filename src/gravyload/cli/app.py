"""Main Typer application, entry point for the ``gravyload`` CLI."""

from __future__ import annotations

import typer

from gravyload import __version__
from gravyload.cli.init_cmd import init_cmd
from gravyload.cli.run import run_cmd, scenarios_cmd

app = typer.Typer(
    name="gravyload",
    help="Load test the SportsGravy API with scripted user sessions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run a scenario against the configured API.")(run_cmd)
app.command("scenarios", help="List the built-in scenarios.")(scenarios_cmd)
app.command("init", help="Write a sample config file.")(init_cmd)


def _version_callback(value: bool) -> None:
    """Print the version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"gravyload {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """gravyload: scripted load tests for the SportsGravy API."""
