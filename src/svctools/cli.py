"""Command-line entry point for svctools."""

from __future__ import annotations

from types import SimpleNamespace

import typer

from . import __version__
from . import log as svctools_log
from .commands import self_update as self_update_cmd
from .commands import show_config as config_cmd
from .commands import update as update_cmd

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Administer backend services and keep svctools itself up to date.",
)


def _validate_log_level(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in svctools_log.LEVEL_NAMES:
        raise typer.BadParameter(f"expected one of: {', '.join(svctools_log.LEVEL_NAMES)}")
    return normalized


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"svctools {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        callback=_validate_log_level,
        help="Minimum log level (trace, debug, info, success, warning, error).",
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show the svctools version and exit.",
    ),
) -> None:
    del version
    if log_level is not None:
        svctools_log.set_level(log_level)
    if no_color:
        svctools_log.set_no_color(True)


@app.command("update")
def update(
    force: bool = typer.Option(
        False, "--force", "-f", help="Rebuild even when already up to date."
    ),
    check: bool = typer.Option(
        False, "--check", "-c", help="Only report whether an update is available."
    ),
) -> None:
    """Update svctools from its git remote and rebuild it."""
    update_cmd(SimpleNamespace(force=force, check=check))


@app.command("self-update")
def self_update() -> None:
    """Rebuild svctools from its current source tree and replace it."""
    self_update_cmd(SimpleNamespace())


@app.command("config")
def config(
    output_format: str = typer.Option(
        "table", "--format", help="Output format: table or json."
    ),
) -> None:
    """Show resolved settings and where each came from."""
    config_cmd(SimpleNamespace(format=output_format))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
