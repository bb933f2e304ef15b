"""kitsync command line interface."""

import typer

from kitsync import __version__
from kitsync.cli.commands import install, migrate, status, sync, uninstall
from kitsync.cli.helpers import console, setup_logging

app = typer.Typer(
    name="kitsync",
    help="Install, update and remove kit files without losing local edits",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"kitsync {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show informational log messages"),
    debug: bool = typer.Option(False, "--debug", help="Show debug log messages"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    """Configure logging for every subcommand."""
    setup_logging(verbose=verbose, debug=debug)


app.command()(install)
app.command()(sync)
app.command()(uninstall)
app.command()(status)
app.command()(migrate)


def main():
    app()


if __name__ == "__main__":
    main()
