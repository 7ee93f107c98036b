"""Implementation for the ``svctools config`` command."""

from __future__ import annotations

import json

from rich import box
from rich.console import Console
from rich.table import Table

from .. import config
from ..io import die, say

_FORMATS = {"table", "json"}


def _json_payload(resolved: config.ResolvedConfig) -> dict[str, object]:
    dumped = resolved.config.model_dump(mode="json")
    settings: dict[str, object] = {}
    for key, _text, source in config.setting_rows(resolved):
        section, name = key.split(".", 1)
        settings[key] = {"value": dumped[section][name], "source": source}
    return {"path": str(resolved.path), "settings": settings}


def show_config(args: object) -> None:
    """Show each resolved setting and where its value came from."""
    format_value = str(getattr(args, "format", "table") or "table").lower()
    if format_value not in _FORMATS:
        die(f"unsupported format: {format_value}")

    resolved = config.load_config()
    if format_value == "json":
        say(json.dumps(_json_payload(resolved), indent=2))
        return

    console = Console()
    table = Table(title="svctools configuration", box=box.SIMPLE)
    table.add_column("Setting", style="bold", no_wrap=True)
    table.add_column("Value", overflow="fold")
    table.add_column("Source", no_wrap=True)
    for key, value, source in config.setting_rows(resolved):
        table.add_row(key, value or "-", source)
    console.print(table)
    say(f"Config file: {resolved.path}")
