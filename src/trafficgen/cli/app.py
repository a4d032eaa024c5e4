"""Main Typer application, the entry point for the ``trafficgen`` CLI."""

from __future__ import annotations

import typer

from trafficgen import __version__
from trafficgen.cli.run import run_cmd

app = typer.Typer(
    name="trafficgen",
    help="Bounded concurrent HTTP traffic generator.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Send concurrent GET requests to a target until interrupted.")(run_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"trafficgen {__version__}")
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
    """trafficgen: fire steady HTTP load at a service to exercise its monitoring."""
