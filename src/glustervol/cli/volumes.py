"""Volume inspection commands: list, inspect, capabilities.

These read the persisted state file directly, so they work whether or
not the plugin is running. Reference counts shown are as of the last
state write.
"""

from __future__ import annotations

import json
import sys

import click
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ._common import PLUGIN_ROOT, console, state_path_for


def _load_volumes(root: str):
    from ..exceptions import StateCorruptError
    from ..state import JsonStateStore

    try:
        return JsonStateStore(state_path_for(root)).load()
    except StateCorruptError as exc:
        console.print(f"[bold red]Cannot read volume state:[/] {escape(str(exc))}")
        sys.exit(1)


def register_volume_commands(main: click.Group) -> None:
    """Register the volumes command group and capabilities command."""

    @main.group()
    def volumes():
        """Inspect the registered volumes."""

    @volumes.command("list")
    @click.option("--root", default=PLUGIN_ROOT, type=click.Path(), help="Plugin root directory.")
    @click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
    def volumes_list(root: str, as_json: bool):
        """List every registered volume.

        \b
        Example:

            glustervol volumes list --root /mnt
        """
        records = _load_volumes(root)

        if as_json:
            click.echo(json.dumps(
                {name: r.model_dump(mode="json") for name, r in records.items()}, indent=2
            ))
            return

        if not records:
            console.print("\n  [dim]No volumes registered.[/]\n")
            return

        table = Table(title=f"Volumes ({len(records)})", show_lines=False)
        table.add_column("Name", style="cyan")
        table.add_column("Volume")
        table.add_column("Servers")
        table.add_column("Subdir")
        table.add_column("Refs", justify="right")
        table.add_column("Mountpoint", style="dim", overflow="fold")

        for name, record in sorted(records.items()):
            table.add_row(
                name,
                record.volname,
                ",".join(record.servers),
                record.subdir,
                str(record.connections),
                record.mountpoint,
            )

        console.print()
        console.print(table)
        console.print()

    @volumes.command("inspect")
    @click.argument("name")
    @click.option("--root", default=PLUGIN_ROOT, type=click.Path(), help="Plugin root directory.")
    @click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
    def volumes_inspect(name: str, root: str, as_json: bool):
        """Show one volume record."""
        record = _load_volumes(root).get(name)
        if record is None:
            console.print(f"[bold red]volume {escape(name)} not found[/]")
            sys.exit(1)

        if as_json:
            click.echo(json.dumps(record.model_dump(mode="json"), indent=2))
            return

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="dim")
        table.add_column("Value")
        table.add_row("Volume", record.volname)
        table.add_row("Source", record.source)
        table.add_row("Subdir", record.subdir)
        table.add_row("Options", ", ".join(record.options) or "[dim]—[/]")
        table.add_row("Mountpoint", record.mountpoint)
        table.add_row("Subdir mountpoint", record.subdir_mountpoint or "[dim]—[/]")
        table.add_row("Refs", str(record.connections))

        console.print()
        console.print(Panel(table, title=f"[bold]{name}[/]", border_style="cyan"))
        console.print()

    @main.command("capabilities")
    def capabilities():
        """Print the plugin capabilities as reported to Docker."""
        from ..models import Capabilities

        click.echo(json.dumps({"Capabilities": {"Scope": Capabilities().scope}}))
